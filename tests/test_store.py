"""Unit tests for campusnav.store."""

from __future__ import annotations

from pathlib import Path

import pytest

from campusnav.models import WiFiFingerprint, WiFiNetwork
from campusnav.normalizer import GeoCalibration
from campusnav.store import NavigationStore


@pytest.fixture()
def store(tmp_path: Path) -> NavigationStore:
    """A store backed by a temporary database file."""
    db = NavigationStore(str(tmp_path / "campusnav.db"))
    yield db
    db.close()


def test_dataset_save_load_clear(store: NavigationStore, campus_data: dict) -> None:
    """Saved documents come back intact and can be cleared."""
    assert store.load_dataset() is None
    store.save_dataset(campus_data)
    assert store.load_dataset() == campus_data

    campus_data["rooms"] = []
    store.save_dataset(campus_data)
    assert store.load_dataset()["rooms"] == []

    store.clear_dataset()
    assert store.load_dataset() is None


def test_calibration_persists(store: NavigationStore) -> None:
    """GPS corners survive a round trip through the database."""
    cal = GeoCalibration.from_bounds(north=40.001, south=40.0, east=-75.0, west=-75.001)
    store.save_calibration(cal)
    assert store.load_calibration() == cal
    store.clear_calibration()
    assert store.load_calibration() is None


def test_fingerprints(store: NavigationStore) -> None:
    """Fingerprints are stored in survey order and cleared together."""
    store.add_fingerprint(WiFiFingerprint(
        "f1", "lobby", (0.2, 0.3), [WiFiNetwork("campus", "aa:bb", -48.0, 2412)], 100.0,
    ))
    store.add_fingerprint(WiFiFingerprint("f2", "lab", (0.6, 0.3), [], 101.0))

    fingerprints = store.get_fingerprints()
    assert [f.id for f in fingerprints] == ["f1", "f2"]
    assert fingerprints[0].coordinates == (0.2, 0.3)
    assert fingerprints[0].networks[0].bssid == "aa:bb"
    assert fingerprints[0].networks[0].rssi == -48.0

    store.clear_fingerprints()
    assert store.get_fingerprints() == []


def test_data_survives_reopen(tmp_path: Path, campus_data: dict) -> None:
    """A second connection sees what the first wrote."""
    path = str(tmp_path / "campusnav.db")
    first = NavigationStore(path)
    first.save_dataset(campus_data, name="main")
    first.close()

    second = NavigationStore(path)
    assert second.load_dataset("main") == campus_data
    second.close()
