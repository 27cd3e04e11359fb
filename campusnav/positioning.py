"""Position providers and the hybrid positioning service.

Providers return a PositionSample or None. Wi-Fi and manual samples are
already in normalized floor-plan space; GPS and IP samples are (lon, lat)
and are mapped onto the floor plan through a GeoCalibration by
HybridPositioning before they reach the rest of the system.
"""

import json
import subprocess
import time
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

import requests

from .config import CONFIG
from .errors import LocationUnavailableError
from .logger import Logger
from .models import PositionSample, WiFiFingerprint, WiFiNetwork
from .normalizer import GeoCalibration, normalize


def accuracy_to_confidence(accuracy_m: Optional[float]) -> float:
    """Map a GPS accuracy radius in meters to a 0..1 confidence (1 is best)."""
    if accuracy_m is None:
        return CONFIG["gps_unknown_accuracy_confidence"]
    ceiling = CONFIG["gps_accuracy_ceiling"]
    return 1 - min(max(accuracy_m, 0.0), ceiling) / ceiling


class GPSProvider:
    """GPS access via Termux API"""
    method = "gps"

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or CONFIG["gps_timeout"]
        self.last_sample: Optional[PositionSample] = None
        self.last_accuracy_m: Optional[float] = None
        self.consecutive_failures = 0

    def get_position(self) -> Optional[PositionSample]:
        """Get current location using termux-location"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )

            if result.returncode != 0 or not result.stdout or not result.stdout.strip():
                self.consecutive_failures += 1
                return None

            data = json.loads(result.stdout)
            self.last_accuracy_m = data.get("accuracy")
            sample = PositionSample(
                coordinates=(data["longitude"], data["latitude"]),
                accuracy=accuracy_to_confidence(self.last_accuracy_m),
                method=self.method,
                timestamp=time.time()
            )
            self.last_sample = sample
            self.consecutive_failures = 0
            return sample

        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            return None
        except (json.JSONDecodeError, KeyError):
            self.consecutive_failures += 1
            return None
        except FileNotFoundError:
            self.consecutive_failures += 1
            return None

    def get_status(self) -> str:
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_accuracy_m:.0f}m" if self.last_accuracy_m else ""
            return f"GPS OK{acc}"
        return f"GPS: {self.consecutive_failures} consecutive failures"


class IPGeolocationProvider:
    """Coarse position from the public IP address (city-level at best)"""
    method = "ip-geolocation"

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        self.url = url or CONFIG["ip_geolocation_url"]
        self.timeout = timeout or CONFIG["request_timeout"]
        self.last_sample: Optional[PositionSample] = None
        self.last_error: Optional[str] = None

    def get_position(self) -> Optional[PositionSample]:
        """Query the geolocation service; falls back to the last sample on failure"""
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self.last_error = str(e)
            return self.last_sample

        if data.get("status") != "success" or data.get("lat") is None or data.get("lon") is None:
            self.last_error = data.get("message", "lookup failed")
            return self.last_sample

        self.last_error = None
        self.last_sample = PositionSample(
            coordinates=(float(data["lon"]), float(data["lat"])),
            accuracy=CONFIG["ip_geolocation_accuracy"],
            method=self.method,
            timestamp=time.time()
        )
        return self.last_sample

    def get_status(self) -> str:
        if self.last_error:
            return f"IP geolocation: {self.last_error}"
        return "IP geolocation OK" if self.last_sample else "IP geolocation: no fix yet"


def termux_wifi_scan(timeout: int = 30) -> list[WiFiNetwork]:
    """Scan visible access points using termux-wifi-scaninfo"""
    try:
        result = subprocess.run(
            ["termux-wifi-scaninfo"],
            capture_output=True,
            text=True,
            timeout=timeout
        )
        if result.returncode != 0 or not result.stdout.strip():
            return []
        entries = json.loads(result.stdout)
    except (subprocess.TimeoutExpired, json.JSONDecodeError, FileNotFoundError):
        return []

    now = time.time()
    return [
        WiFiNetwork(
            ssid=entry.get("ssid", ""),
            bssid=entry["bssid"],
            rssi=float(entry["rssi"]),
            frequency=int(entry.get("frequency_mhz", 0)),
            timestamp=now,
        )
        for entry in entries
        if isinstance(entry, dict) and "bssid" in entry and "rssi" in entry
    ]


def fingerprint_similarity(current: Iterable[WiFiNetwork], stored: Iterable[WiFiNetwork]) -> float:
    """Similarity in [0, 1] of two scans, from the mean RSSI gap over shared BSSIDs"""
    current_rssi = {n.bssid: n.rssi for n in current}
    stored_rssi = {n.bssid: n.rssi for n in stored}
    common = [b for b in current_rssi if b in stored_rssi]
    if not common:
        return 0.0
    avg_difference = sum(abs(current_rssi[b] - stored_rssi[b]) for b in common) / len(common)
    return max(0.0, 1 - avg_difference / CONFIG["wifi_max_rssi_difference"])


class WiFiFingerprintProvider:
    """Indoor position by matching a Wi-Fi scan against surveyed fingerprints.

    The estimate is the similarity-weighted mean of the k best matching
    fingerprint locations; its accuracy is the best match's similarity.
    """
    method = "wifi"

    def __init__(self, scan: Callable[[], list[WiFiNetwork]],
                 fingerprints: Union[Callable[[], list[WiFiFingerprint]], list[WiFiFingerprint]],
                 neighbors: Optional[int] = None):
        self.scan = scan
        self.fingerprints = fingerprints
        self.neighbors = neighbors or CONFIG["wifi_neighbors"]
        self.last_scan: list[WiFiNetwork] = []

    def _stored(self) -> list[WiFiFingerprint]:
        return self.fingerprints() if callable(self.fingerprints) else self.fingerprints

    def get_position(self) -> Optional[PositionSample]:
        self.last_scan = self.scan()
        stored = self._stored()
        if not self.last_scan or not stored:
            return None

        scored = [(fingerprint_similarity(self.last_scan, fp.networks), fp) for fp in stored]
        scored.sort(key=lambda item: item[0], reverse=True)
        top = [(s, fp) for s, fp in scored[:self.neighbors] if s > 0]
        if not top:
            return None

        total = sum(s for s, _ in top)
        x = sum(fp.coordinates[0] * s for s, fp in top) / total
        y = sum(fp.coordinates[1] * s for s, fp in top) / total
        return PositionSample(
            coordinates=(x, y),
            accuracy=min(top[0][0], 1.0),
            method=self.method,
            timestamp=time.time()
        )

    def get_status(self) -> str:
        return f"Wi-Fi: {len(self.last_scan)} networks, {len(self._stored())} fingerprints"


class ManualProvider:
    """Position placed by hand on the floor plan"""
    method = "manual"

    def __init__(self, coordinates: Optional[tuple[float, float]] = None, accuracy: float = 1.0):
        self.coordinates = coordinates
        self.accuracy = accuracy

    def place(self, x: float, y: float):
        self.coordinates = (x, y)

    def get_position(self) -> Optional[PositionSample]:
        if self.coordinates is None:
            return None
        return PositionSample(self.coordinates, self.accuracy, self.method, time.time())

    def get_status(self) -> str:
        return "Manual position set" if self.coordinates else "Manual position not set"


class PositionRecorder:
    """Records the samples of another provider to a trace file"""

    def __init__(self, provider, record_path: str):
        self.provider = provider
        self.method = provider.method
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def get_position(self) -> Optional[PositionSample]:
        sample = self.provider.get_position()

        # Record even failed attempts
        self.trace.append({
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "sample": sample.to_dict() if sample else None,
            "status": self.provider.get_status()
        })
        return sample

    def get_status(self) -> str:
        return self.provider.get_status()

    def save(self):
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)


class PositionPlayback:
    """Plays back a recorded position trace"""

    def __init__(self, playback_path: str, speed: float = 1.0, method: str = "playback"):
        self.playback_path = playback_path
        self.speed = speed
        self.method = method
        self.index = 0
        self.consecutive_failures = 0

        with open(playback_path) as f:
            data = json.load(f)
        self.trace: list[dict] = data["trace"]

    def get_position(self) -> Optional[PositionSample]:
        """Next sample of the trace, in order"""
        if self.index >= len(self.trace):
            return None

        entry = self.trace[self.index]
        self.index += 1

        if entry.get("sample"):
            self.consecutive_failures = 0
            return PositionSample.from_dict(entry["sample"])
        self.consecutive_failures += 1
        return None

    def get_poll_interval(self) -> float:
        """Wait before the next poll, from the recorded timing and playback speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["tracking_poll_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        interval = (curr_elapsed - prev_elapsed) / self.speed
        return max(0.1, min(interval, 5.0))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"


class HybridPositioning:
    """Combines providers, filters weak fixes and smooths the result.

    Providers are tried in order (or with the preferred method first); the
    first sample at or above the accuracy floor wins. A provider returning
    None and a provider raising are treated the same way. When every
    provider fails the last known sample is returned, and when there is none
    LocationUnavailableError is raised.
    """

    def __init__(self, providers: list, preferred: str = "auto",
                 calibration: Optional[GeoCalibration] = None,
                 logger: Optional[Logger] = None):
        self.providers = list(providers)
        self.preferred = preferred
        self.calibration = calibration
        self.logger = logger or Logger(echo=False)
        self.history: list[PositionSample] = []
        self.last_known: Optional[PositionSample] = None

    def ordered_providers(self) -> list:
        if self.preferred == "auto":
            return list(self.providers)
        first = [p for p in self.providers if p.method == self.preferred]
        rest = [p for p in self.providers if p.method != self.preferred]
        return first + rest

    def _to_floor_plan(self, sample: PositionSample) -> PositionSample:
        if not sample.is_geographic:
            return sample
        x, y = normalize(sample.coordinates, "geo", self.calibration)
        return PositionSample((x, y), sample.accuracy, sample.method, sample.timestamp)

    def get_position(self) -> PositionSample:
        for provider in self.ordered_providers():
            try:
                sample = provider.get_position()
                if sample is None:
                    continue
                sample = self._to_floor_plan(sample)
            except Exception as e:
                self.logger.log("Positioning method failed", {
                    "method": provider.method, "error": str(e),
                })
                continue

            if sample.accuracy >= CONFIG["min_position_accuracy"]:
                self._remember(sample)
                return sample

        if self.last_known is not None:
            return self.last_known
        raise LocationUnavailableError("No position provider could determine a location")

    def _remember(self, sample: PositionSample):
        self.history.append(sample)
        del self.history[:-CONFIG["position_history_size"]]
        self.last_known = sample

    def get_smoothed_position(self) -> Optional[PositionSample]:
        """Accuracy-weighted mean of the latest samples, newest weighted most"""
        if not self.history:
            return None
        if len(self.history) == 1:
            return self.history[0]

        weights = CONFIG["smoothing_weights"]
        recent = self.history[-len(weights):]
        weights = weights[-len(recent):]

        total = 0.0
        x = y = 0.0
        for sample, weight in zip(recent, weights):
            w = weight * sample.accuracy
            total += w
            x += sample.coordinates[0] * w
            y += sample.coordinates[1] * w

        if total == 0:
            return self.last_known
        return PositionSample(
            coordinates=(x / total, y / total),
            accuracy=sum(s.accuracy for s in recent) / len(recent),
            method="hybrid",
            timestamp=recent[-1].timestamp
        )

    def clear_history(self):
        self.history = []
        self.last_known = None

    def get_status(self) -> str:
        return "; ".join(p.get_status() for p in self.ordered_providers())
