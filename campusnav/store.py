"""Persistent store for the navigation dataset, calibration and Wi-Fi fingerprints."""

import json
import sqlite3
from datetime import datetime
from typing import Optional

from .models import WiFiFingerprint, WiFiNetwork
from .normalizer import GeoCalibration


class NavigationStore:
    """SQLite database holding the authored map and positioning survey data"""

    def __init__(self, db_path: str = "campusnav.db"):
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self):
        """Create database tables"""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS datasets (
                name TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                saved_at TEXT NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS calibration (
                name TEXT PRIMARY KEY,
                corners TEXT NOT NULL,
                saved_at TEXT NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS fingerprints (
                id TEXT PRIMARY KEY,
                location_id TEXT NOT NULL,
                x REAL NOT NULL,
                y REAL NOT NULL,
                networks TEXT NOT NULL,
                timestamp REAL
            )
        """)
        self.conn.commit()

    # -- dataset ----------------------------------------------------------------

    def save_dataset(self, data: dict, name: str = "default"):
        """Store a dataset document, replacing any previous one of that name"""
        now = datetime.now().isoformat()
        self.conn.execute("""
            INSERT INTO datasets (name, data, saved_at) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET data = ?, saved_at = ?
        """, (name, json.dumps(data), now, json.dumps(data), now))
        self.conn.commit()

    def load_dataset(self, name: str = "default") -> Optional[dict]:
        """Stored dataset document, or None if nothing was saved"""
        row = self.conn.execute(
            "SELECT data FROM datasets WHERE name = ?", (name,)
        ).fetchone()
        if row:
            return json.loads(row[0])
        return None

    def clear_dataset(self, name: str = "default"):
        self.conn.execute("DELETE FROM datasets WHERE name = ?", (name,))
        self.conn.commit()

    # -- GPS calibration ----------------------------------------------------------

    def save_calibration(self, calibration: GeoCalibration, name: str = "default"):
        now = datetime.now().isoformat()
        corners = json.dumps(calibration.to_dict())
        self.conn.execute("""
            INSERT INTO calibration (name, corners, saved_at) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET corners = ?, saved_at = ?
        """, (name, corners, now, corners, now))
        self.conn.commit()

    def load_calibration(self, name: str = "default") -> Optional[GeoCalibration]:
        row = self.conn.execute(
            "SELECT corners FROM calibration WHERE name = ?", (name,)
        ).fetchone()
        if row:
            return GeoCalibration.from_dict(json.loads(row[0]))
        return None

    def clear_calibration(self, name: str = "default"):
        self.conn.execute("DELETE FROM calibration WHERE name = ?", (name,))
        self.conn.commit()

    # -- Wi-Fi fingerprints ---------------------------------------------------------

    def add_fingerprint(self, fingerprint: WiFiFingerprint):
        """Store a surveyed fingerprint (replaces one with the same id)"""
        x, y = fingerprint.coordinates
        self.conn.execute(
            "INSERT OR REPLACE INTO fingerprints (id, location_id, x, y, networks, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (fingerprint.id, fingerprint.location_id, x, y,
             json.dumps([n.to_dict() for n in fingerprint.networks]),
             fingerprint.timestamp)
        )
        self.conn.commit()

    def get_fingerprints(self) -> list[WiFiFingerprint]:
        cursor = self.conn.execute(
            "SELECT id, location_id, x, y, networks, timestamp FROM fingerprints ORDER BY rowid"
        )
        fingerprints = []
        for row in cursor.fetchall():
            fingerprints.append(WiFiFingerprint(
                id=row[0],
                location_id=row[1],
                coordinates=(row[2], row[3]),
                networks=[WiFiNetwork.from_dict(n) for n in json.loads(row[4])],
                timestamp=row[5],
            ))
        return fingerprints

    def clear_fingerprints(self):
        self.conn.execute("DELETE FROM fingerprints")
        self.conn.commit()

    def close(self):
        self.conn.close()
