"""Data classes for campusnav."""

from dataclasses import dataclass, field, asdict
from typing import Optional

WAYPOINT_KINDS = ("corridor", "junction", "entrance", "room", "destination")
POINT_KINDS = ("waypoint", "room", "current", "destination")
POSITION_METHODS = ("wifi", "gps", "hybrid", "ip-geolocation", "manual", "browser")


@dataclass
class Waypoint:
    """A graph node placed on the floor plan (normalized image coordinates)"""
    id: str
    name: str
    x: float
    y: float
    kind: str = "corridor"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Waypoint":
        return cls(
            id=str(d["id"]),
            name=d.get("name") or str(d["id"]),
            x=float(d["x"]),
            y=float(d["y"]),
            # Older exports call the kind "type"
            kind=d.get("kind") or d.get("type") or "corridor",
        )


@dataclass
class Room:
    """A selectable origin/destination; not a graph node by itself"""
    id: str
    name: str
    x: float
    y: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Room":
        return cls(id=str(d["id"]), name=d.get("name") or str(d["id"]),
                   x=float(d["x"]), y=float(d["y"]))


@dataclass
class Path:
    """An authored edge: waypoint-waypoint, or a waypoint-room spur"""
    id: str
    waypoint_a: str
    waypoint_b: Optional[str] = None
    room_b: Optional[str] = None

    @property
    def is_spur(self) -> bool:
        return self.room_b is not None

    @property
    def other_end(self) -> str:
        return self.room_b if self.room_b is not None else self.waypoint_b

    def pair_key(self) -> frozenset:
        """Unordered endpoint pair; rooms are prefixed so ids cannot collide"""
        if self.room_b is not None:
            return frozenset((f"wp:{self.waypoint_a}", f"room:{self.room_b}"))
        return frozenset((f"wp:{self.waypoint_a}", f"wp:{self.waypoint_b}"))

    def touches(self, waypoint_id: str) -> bool:
        return self.waypoint_a == waypoint_id or self.waypoint_b == waypoint_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "waypointA": self.waypoint_a,
            "waypointB": self.waypoint_b,
            "roomB": self.room_b,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Path":
        return cls(
            id=str(d["id"]),
            waypoint_a=str(d["waypointA"]),
            waypoint_b=str(d["waypointB"]) if d.get("waypointB") is not None else None,
            room_b=str(d["roomB"]) if d.get("roomB") is not None else None,
        )


@dataclass
class RoutePoint:
    """One entry of a composed route.

    kind is one of "waypoint", "room", "current" (the device position) or
    "destination" (the final point, which the direction text names).
    """
    id: str
    name: str
    x: float
    y: float
    kind: str

    @classmethod
    def from_waypoint(cls, waypoint: Waypoint) -> "RoutePoint":
        return cls(waypoint.id, waypoint.name, waypoint.x, waypoint.y, "waypoint")

    @classmethod
    def from_room(cls, room: Room) -> "RoutePoint":
        return cls(room.id, room.name, room.x, room.y, "room")

    @classmethod
    def current_location(cls, x: float, y: float) -> "RoutePoint":
        return cls("current", "your current location", x, y, "current")

    def as_destination(self) -> "RoutePoint":
        return RoutePoint(self.id, self.name, self.x, self.y, "destination")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PositionSample:
    """A best-effort position fix from a position provider.

    coordinates is (x, y) normalized for wifi/manual/hybrid/browser samples,
    and (lon, lat) for gps and ip-geolocation samples.
    """
    coordinates: tuple[float, float]
    accuracy: float  # confidence 0..1
    method: str
    timestamp: Optional[float] = None

    @property
    def is_geographic(self) -> bool:
        return self.method in ("gps", "ip-geolocation")

    def to_dict(self) -> dict:
        d = asdict(self)
        d["coordinates"] = list(self.coordinates)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "PositionSample":
        x, y = d["coordinates"]
        return cls(coordinates=(float(x), float(y)), accuracy=float(d["accuracy"]),
                   method=d["method"], timestamp=d.get("timestamp"))


@dataclass
class Route:
    """A composed route with its directions; replaced wholesale on recompute"""
    points: list[RoutePoint]
    directions: list[str]
    distance_feet: float
    sequence: int = 0
    reliable: bool = True

    @property
    def start(self) -> RoutePoint:
        return self.points[0]

    @property
    def destination(self) -> RoutePoint:
        return self.points[-1]

    def to_dict(self) -> dict:
        return {
            "points": [p.to_dict() for p in self.points],
            "directions": list(self.directions),
            "distance_feet": self.distance_feet,
            "sequence": self.sequence,
            "reliable": self.reliable,
        }


@dataclass
class WiFiNetwork:
    ssid: str
    bssid: str
    rssi: float  # dBm
    frequency: int = 0
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "WiFiNetwork":
        return cls(**d)


@dataclass
class WiFiFingerprint:
    """Networks observed at a surveyed spot on the floor plan"""
    id: str
    location_id: str
    coordinates: tuple[float, float]
    networks: list[WiFiNetwork] = field(default_factory=list)
    timestamp: Optional[float] = None
