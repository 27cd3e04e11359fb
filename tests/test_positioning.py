"""Unit tests for campusnav.positioning."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest
import requests

from campusnav.errors import LocationUnavailableError
from campusnav.models import PositionSample, WiFiFingerprint, WiFiNetwork
from campusnav.normalizer import GeoCalibration
from campusnav.positioning import (
    GPSProvider,
    HybridPositioning,
    IPGeolocationProvider,
    ManualProvider,
    PositionPlayback,
    PositionRecorder,
    WiFiFingerprintProvider,
    accuracy_to_confidence,
    fingerprint_similarity,
)


class FakeProvider:
    """Returns queued results; exceptions in the queue are raised."""

    def __init__(self, method: str, results: list) -> None:
        self.method = method
        self.results = list(results)
        self.calls = 0

    def get_position(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result

    def get_status(self) -> str:
        return f"{self.method}: {self.calls} calls"


def _sample(x: float, y: float, accuracy: float = 0.9, method: str = "wifi") -> PositionSample:
    return PositionSample((x, y), accuracy, method, 0.0)


def _net(bssid: str, rssi: float) -> WiFiNetwork:
    return WiFiNetwork(ssid="campus", bssid=bssid, rssi=rssi)


def test_first_good_provider_wins() -> None:
    """Providers are tried in order until one gives a usable fix."""
    wifi = FakeProvider("wifi", [None])
    gps = FakeProvider("manual", [_sample(0.4, 0.4, method="manual")])
    hybrid = HybridPositioning([wifi, gps])

    assert hybrid.get_position().coordinates == (0.4, 0.4)
    assert wifi.calls == 1 and gps.calls == 1


def test_preferred_method_goes_first() -> None:
    """A preferred method is asked before the others."""
    wifi = FakeProvider("wifi", [_sample(0.1, 0.1)])
    manual = FakeProvider("manual", [_sample(0.9, 0.9, method="manual")])
    hybrid = HybridPositioning([wifi, manual], preferred="manual")

    assert hybrid.get_position().method == "manual"
    assert wifi.calls == 0


def test_none_and_errors_fall_back_to_last_known() -> None:
    """A failing provider, raising or returning None, yields the last fix."""
    provider = FakeProvider("wifi", [_sample(0.3, 0.3), None, RuntimeError("scan failed")])
    hybrid = HybridPositioning([provider])

    first = hybrid.get_position()
    assert hybrid.get_position() is first
    assert hybrid.get_position() is first


def test_no_fix_at_all_is_unavailable() -> None:
    """Without any fix ever, the location is unavailable."""
    hybrid = HybridPositioning([FakeProvider("wifi", [None, OSError("no radio")])])
    with pytest.raises(LocationUnavailableError):
        hybrid.get_position()
    with pytest.raises(LocationUnavailableError):
        hybrid.get_position()


def test_weak_samples_are_rejected() -> None:
    """Samples under the accuracy floor are ignored."""
    provider = FakeProvider("wifi", [_sample(0.3, 0.3, accuracy=0.05)])
    with pytest.raises(LocationUnavailableError):
        HybridPositioning([provider]).get_position()


def test_geographic_samples_are_mapped_to_floor_plan() -> None:
    """GPS fixes are converted through the calibration."""
    cal = GeoCalibration.from_bounds(north=40.001, south=40.0, east=-75.0, west=-75.001)
    gps = FakeProvider("gps", [PositionSample((-75.0005, 40.0005), 0.8, "gps", 0.0)])
    sample = HybridPositioning([gps], calibration=cal).get_position()
    assert sample.coordinates == pytest.approx((0.5, 0.5))


def test_geographic_sample_without_calibration_is_skipped() -> None:
    """An unmappable GPS fix counts as a failure and the next provider is used."""
    gps = FakeProvider("gps", [PositionSample((-75.0, 40.0), 0.8, "gps", 0.0)])
    manual = FakeProvider("manual", [_sample(0.2, 0.2, method="manual")])
    assert HybridPositioning([gps, manual]).get_position().method == "manual"


def test_history_is_bounded_and_smoothed() -> None:
    """History keeps the last 10 fixes; smoothing weights recent ones most."""
    samples = [_sample(i / 20, 0.5, accuracy=1.0) for i in range(12)]
    hybrid = HybridPositioning([FakeProvider("wifi", samples)])
    for _ in range(12):
        hybrid.get_position()

    assert len(hybrid.history) == 10
    assert hybrid.history[0].coordinates[0] == pytest.approx(2 / 20)

    smoothed = hybrid.get_smoothed_position()
    expected_x = (0.2 * 9 + 0.3 * 10 + 0.5 * 11) / 20
    assert smoothed.coordinates == pytest.approx((expected_x, 0.5))
    assert smoothed.method == "hybrid"

    hybrid.clear_history()
    assert hybrid.get_smoothed_position() is None


def test_accuracy_to_confidence() -> None:
    """Smaller GPS error means higher confidence."""
    assert accuracy_to_confidence(0) == 1.0
    assert accuracy_to_confidence(25) == pytest.approx(0.75)
    assert accuracy_to_confidence(500) == 0.0


def test_fingerprint_similarity() -> None:
    """Similarity falls with the mean RSSI gap over shared access points."""
    current = [_net("a", -50), _net("b", -70)]
    assert fingerprint_similarity(current, [_net("a", -60), _net("b", -70)]) == pytest.approx(0.95)
    assert fingerprint_similarity(current, [_net("z", -50)]) == 0.0


def test_wifi_knn_estimate() -> None:
    """The estimate is the similarity-weighted mean of the best matches."""
    fingerprints = [
        WiFiFingerprint("f1", "L1", (0.2, 0.2), [_net("a", -50)]),
        WiFiFingerprint("f2", "L2", (0.4, 0.2), [_net("a", -50)]),
        WiFiFingerprint("f3", "L3", (0.9, 0.9), [_net("z", -50)]),
    ]
    provider = WiFiFingerprintProvider(lambda: [_net("a", -50)], fingerprints)
    sample = provider.get_position()

    assert sample.coordinates == pytest.approx((0.3, 0.2))
    assert sample.accuracy == 1.0
    assert sample.method == "wifi"


def test_wifi_without_matches_returns_none() -> None:
    """No shared access points means no estimate."""
    fingerprints = [WiFiFingerprint("f1", "L1", (0.2, 0.2), [_net("a", -50)])]
    provider = WiFiFingerprintProvider(lambda: [_net("q", -50)], lambda: fingerprints)
    assert provider.get_position() is None


def test_ip_geolocation_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """A successful lookup gives a (lon, lat) sample at fixed accuracy."""

    class Response:
        def raise_for_status(self) -> None:
            pass

        def json(self) -> dict:
            return {"status": "success", "lat": 40.0, "lon": -75.0}

    monkeypatch.setattr(requests, "get", lambda url, timeout: Response())
    sample = IPGeolocationProvider().get_position()
    assert sample.coordinates == (-75.0, 40.0)
    assert sample.accuracy == 0.3
    assert sample.is_geographic


def test_ip_geolocation_failure_keeps_last(monkeypatch: pytest.MonkeyPatch) -> None:
    """Network errors fall back to the previous result."""

    def fail(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests, "get", fail)
    provider = IPGeolocationProvider()
    assert provider.get_position() is None
    assert "offline" in provider.get_status()


def test_gps_parses_termux_output(monkeypatch: pytest.MonkeyPatch) -> None:
    """termux-location JSON becomes a geographic sample."""
    payload = json.dumps({"latitude": 40.0, "longitude": -75.0, "accuracy": 10.0})
    monkeypatch.setattr(
        subprocess, "run",
        lambda *a, **kw: subprocess.CompletedProcess(a, 0, stdout=payload, stderr=""),
    )
    gps = GPSProvider()
    sample = gps.get_position()
    assert sample.coordinates == (-75.0, 40.0)
    assert sample.accuracy == pytest.approx(0.9)
    assert gps.get_status() == "GPS OK, accuracy 10m"


def test_gps_missing_tool_counts_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without termux-location the provider reports failures."""

    def missing(*args, **kwargs):
        raise FileNotFoundError("termux-location")

    monkeypatch.setattr(subprocess, "run", missing)
    gps = GPSProvider()
    assert gps.get_position() is None
    assert gps.get_position() is None
    assert gps.get_status() == "GPS: 2 consecutive failures"


def test_manual_provider() -> None:
    """Manual placement gives a full-confidence sample."""
    manual = ManualProvider()
    assert manual.get_position() is None
    manual.place(0.6, 0.4)
    assert manual.get_position().coordinates == (0.6, 0.4)


def test_record_then_playback(tmp_path: Path) -> None:
    """A recorded trace plays back in order, including failed fixes."""
    trace = tmp_path / "trace.json"
    source = FakeProvider("wifi", [_sample(0.1, 0.1), None, _sample(0.2, 0.2)])
    recorder = PositionRecorder(source, str(trace))
    for _ in range(3):
        recorder.get_position()
    recorder.save()

    playback = PositionPlayback(str(trace))
    assert playback.get_position().coordinates == (0.1, 0.1)
    assert playback.get_position() is None
    assert playback.get_position().coordinates == (0.2, 0.2)
    assert playback.is_finished()
    assert playback.get_position() is None
