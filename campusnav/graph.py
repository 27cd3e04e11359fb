"""Navigation graph: waypoints, rooms and the paths authored between them."""

import math
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

import networkx as nx

from .errors import InputValidationError
from .geo import euclidean_distance
from .models import Path, Room, Waypoint, WAYPOINT_KINDS


@dataclass(frozen=True)
class GraphSnapshot:
    """Read-only copy of the waypoint graph taken at the start of a search.

    Edge costs come from the `length` stored on each networkx edge; spurs map
    a room id to the waypoint of its first authored spur path.
    """
    positions: dict[str, tuple[float, float]]
    adjacency: dict[str, tuple[str, ...]]
    revision: int
    lengths: dict[tuple[str, str], float] = field(default_factory=dict)
    waypoints: dict[str, Waypoint] = field(default_factory=dict)
    spurs: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.positions)

    def distance(self, a: str, b: str) -> float:
        ax, ay = self.positions[a]
        bx, by = self.positions[b]
        return euclidean_distance(ax, ay, bx, by)

    def edge_length(self, a: str, b: str) -> float:
        length = self.lengths.get((a, b))
        return length if length is not None else self.distance(a, b)

    def spur_anchor(self, room_id: str) -> Optional[str]:
        return self.spurs.get(room_id)

    def nearest(self, x: float, y: float) -> Optional[str]:
        """Id of the nearest waypoint; ties go to the first inserted"""
        min_dist = float("inf")
        nearest = None
        for waypoint_id, (wx, wy) in self.positions.items():
            dist = euclidean_distance(x, y, wx, wy)
            if dist < min_dist:
                min_dist = dist
                nearest = waypoint_id
        return nearest


class NavigationGraph:
    """Graph representation of a building's walkable network.

    Waypoint-waypoint paths live in a networkx graph (bidirectional by
    construction). Waypoint-room paths ("spurs") are kept only in `paths`;
    they are looked up when anchoring a room and never appear in adjacency.

    Every edit holds `lock` until its listeners have run, so an edit and the
    route regeneration it triggers are one step for any other thread that
    takes the same lock.
    """

    def __init__(self):
        self.graph = nx.Graph()
        self.waypoints: dict[str, Waypoint] = {}
        self.rooms: dict[str, Room] = {}
        self.paths: dict[str, Path] = {}
        self._pairs: dict[frozenset, str] = {}  # unordered endpoint pair -> path_id
        self._listeners: list[Callable[[str, dict], None]] = []
        self.revision = 0
        self.lock = threading.RLock()

    # -- change notification -------------------------------------------------

    def subscribe(self, callback: Callable[[str, dict], None]):
        """Register callback(event, data), called after each edit is fully applied"""
        with self.lock:
            self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[str, dict], None]):
        with self.lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _changed(self, event: str, data: dict):
        self.revision += 1
        for callback in list(self._listeners):
            callback(event, data)

    # -- validation -----------------------------------------------------------

    @staticmethod
    def _check_point(item_id: str, x: float, y: float):
        if not item_id:
            raise InputValidationError("An id is required")
        for value in (x, y):
            if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
                raise InputValidationError(
                    f"Coordinates of {item_id!r} must be normalized to [0, 1], got ({x}, {y})"
                )

    # -- waypoints ------------------------------------------------------------

    def add_waypoint(self, waypoint: Waypoint) -> Waypoint:
        """Add a waypoint node"""
        self._check_point(waypoint.id, waypoint.x, waypoint.y)
        if waypoint.kind not in WAYPOINT_KINDS:
            raise InputValidationError(f"Unknown waypoint kind {waypoint.kind!r}")

        with self.lock:
            if waypoint.id in self.waypoints:
                raise InputValidationError(f"Waypoint {waypoint.id!r} already exists")
            self.waypoints[waypoint.id] = waypoint
            self.graph.add_node(waypoint.id)
            self._changed("waypoint_added", {"waypoint": waypoint.id})
        return waypoint

    def move_waypoint(self, waypoint_id: str, x: float, y: float) -> Waypoint:
        """Move a waypoint and refresh the length of its edges"""
        with self.lock:
            waypoint = self.get_waypoint(waypoint_id)
            self._check_point(waypoint_id, x, y)
            waypoint.x = x
            waypoint.y = y
            for neighbor in self.graph.neighbors(waypoint_id):
                other = self.waypoints[neighbor]
                self.graph[waypoint_id][neighbor]["length"] = euclidean_distance(x, y, other.x, other.y)
            self._changed("waypoint_moved", {"waypoint": waypoint_id})
        return waypoint

    def remove_waypoint(self, waypoint_id: str) -> list[Path]:
        """Remove a waypoint and every path that references it.

        Returns the removed paths.
        """
        with self.lock:
            self.get_waypoint(waypoint_id)
            removed = [p for p in self.paths.values() if p.touches(waypoint_id)]
            for path in removed:
                self._drop_path(path)
            self.graph.remove_node(waypoint_id)
            del self.waypoints[waypoint_id]
            self._changed("waypoint_removed", {
                "waypoint": waypoint_id,
                "paths": [p.id for p in removed],
            })
        return removed

    def get_waypoint(self, waypoint_id: str) -> Waypoint:
        waypoint = self.waypoints.get(waypoint_id)
        if waypoint is None:
            raise InputValidationError(f"Unknown waypoint {waypoint_id!r}")
        return waypoint

    def neighbors(self, waypoint_id: str) -> list[Waypoint]:
        """Waypoints directly connected to a waypoint, in insertion order"""
        with self.lock:
            self.get_waypoint(waypoint_id)
            return [self.waypoints[n] for n in self.graph.neighbors(waypoint_id)]

    # -- rooms ------------------------------------------------------------------

    def add_room(self, room: Room) -> Room:
        self._check_point(room.id, room.x, room.y)
        with self.lock:
            if room.id in self.rooms:
                raise InputValidationError(f"Room {room.id!r} already exists")
            self.rooms[room.id] = room
            self._changed("room_added", {"room": room.id})
        return room

    def rename_room(self, room_id: str, name: str) -> Room:
        if not name or not name.strip():
            raise InputValidationError("Room name cannot be empty")
        with self.lock:
            room = self.get_room(room_id)
            room.name = name.strip()
            self._changed("room_renamed", {"room": room_id})
        return room

    def remove_room(self, room_id: str) -> list[Path]:
        """Remove a room and its spur paths; listeners clear any selection of it"""
        with self.lock:
            self.get_room(room_id)
            removed = [p for p in self.paths.values() if p.room_b == room_id]
            for path in removed:
                self._drop_path(path)
            del self.rooms[room_id]
            self._changed("room_removed", {"room": room_id, "paths": [p.id for p in removed]})
        return removed

    def get_room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            raise InputValidationError(f"Unknown room {room_id!r}")
        return room

    def search_rooms(self, query: str) -> list[Room]:
        """Rooms whose id or name contains the query (case-insensitive)"""
        needle = query.strip().lower()
        if not needle:
            return []
        with self.lock:
            return [r for r in self.rooms.values()
                    if needle in r.name.lower() or needle in r.id.lower()]

    # -- paths ------------------------------------------------------------------

    @staticmethod
    def make_path_id(waypoint_a: str, waypoint_b: Optional[str] = None,
                     room_b: Optional[str] = None) -> str:
        if room_b is not None:
            return f"{waypoint_a}~room:{room_b}"
        first, second = sorted((waypoint_a, waypoint_b))
        return f"{first}~{second}"

    def add_path(self, waypoint_a: str, waypoint_b: Optional[str] = None,
                 room_b: Optional[str] = None, path_id: Optional[str] = None) -> Path:
        """Connect a waypoint to another waypoint, or to a room (a spur).

        A path between an already connected pair is not duplicated; the
        existing path is returned instead.
        """
        if (waypoint_b is None) == (room_b is None):
            raise InputValidationError("A path needs exactly one of waypoint_b or room_b")

        with self.lock:
            self.get_waypoint(waypoint_a)
            if waypoint_b is not None:
                self.get_waypoint(waypoint_b)
                if waypoint_b == waypoint_a:
                    raise InputValidationError(f"Cannot connect waypoint {waypoint_a!r} to itself")
            else:
                self.get_room(room_b)

            path = Path(id=path_id or "", waypoint_a=waypoint_a, waypoint_b=waypoint_b, room_b=room_b)
            key = path.pair_key()
            if key in self._pairs:
                return self.paths[self._pairs[key]]

            if not path.id:
                path.id = self.make_path_id(waypoint_a, waypoint_b, room_b)
                suffix = 2
                while path.id in self.paths:
                    path.id = f"{self.make_path_id(waypoint_a, waypoint_b, room_b)}#{suffix}"
                    suffix += 1
            elif path.id in self.paths:
                raise InputValidationError(f"Path {path.id!r} already exists")

            self.paths[path.id] = path
            self._pairs[key] = path.id
            if waypoint_b is not None:
                a = self.waypoints[waypoint_a]
                b = self.waypoints[waypoint_b]
                self.graph.add_edge(waypoint_a, waypoint_b,
                                    path_id=path.id,
                                    length=euclidean_distance(a.x, a.y, b.x, b.y))
            self._changed("path_added", {"path": path.id})
        return path

    def remove_path(self, path_id: str) -> Path:
        with self.lock:
            path = self.paths.get(path_id)
            if path is None:
                raise InputValidationError(f"Unknown path {path_id!r}")
            self._drop_path(path)
            self._changed("path_removed", {"path": path_id})
        return path

    def _drop_path(self, path: Path):
        del self.paths[path.id]
        self._pairs.pop(path.pair_key(), None)
        if path.waypoint_b is not None and self.graph.has_edge(path.waypoint_a, path.waypoint_b):
            self.graph.remove_edge(path.waypoint_a, path.waypoint_b)

    def spur_anchor(self, room_id: str) -> Optional[Waypoint]:
        """Waypoint of the first authored spur path to a room, if any"""
        with self.lock:
            for path in self.paths.values():
                if path.room_b == room_id:
                    return self.waypoints[path.waypoint_a]
        return None

    # -- queries ----------------------------------------------------------------

    def nearest(self, x: float, y: float, candidates: Optional[Iterable] = None):
        """Nearest element (by Euclidean distance) among candidates.

        Candidates default to all waypoints. Returns None when there are no
        candidates; ties go to the earliest candidate.
        """
        with self.lock:
            if candidates is None:
                candidates = list(self.waypoints.values())

        min_dist = float("inf")
        nearest = None
        for candidate in candidates:
            dist = euclidean_distance(x, y, candidate.x, candidate.y)
            if dist < min_dist:
                min_dist = dist
                nearest = candidate
        return nearest

    def snapshot(self) -> GraphSnapshot:
        """Copy the waypoint graph so a search never sees a concurrent edit"""
        with self.lock:
            lengths = {}
            for a, b, length in self.graph.edges(data="length"):
                lengths[(a, b)] = length
                lengths[(b, a)] = length
            spurs = {}
            for path in self.paths.values():
                if path.room_b is not None and path.room_b not in spurs:
                    spurs[path.room_b] = path.waypoint_a
            return GraphSnapshot(
                positions={wid: (w.x, w.y) for wid, w in self.waypoints.items()},
                adjacency={n: tuple(self.graph.neighbors(n)) for n in self.graph.nodes},
                revision=self.revision,
                lengths=lengths,
                waypoints={wid: replace(w) for wid, w in self.waypoints.items()},
                spurs=spurs,
            )

    def component_count(self) -> int:
        """Number of disconnected waypoint islands"""
        with self.lock:
            if not self.waypoints:
                return 0
            return nx.number_connected_components(self.graph)

    def is_connected(self, waypoint_a: str, waypoint_b: str) -> bool:
        with self.lock:
            self.get_waypoint(waypoint_a)
            self.get_waypoint(waypoint_b)
            return nx.has_path(self.graph, waypoint_a, waypoint_b)

    def replace_with(self, other: "NavigationGraph"):
        """Take over the contents of another graph in one step (used by import)"""
        with self.lock:
            self.graph = other.graph
            self.waypoints = other.waypoints
            self.rooms = other.rooms
            self.paths = other.paths
            self._pairs = other._pairs
            self._changed("replaced", {
                "waypoints": len(self.waypoints),
                "rooms": len(self.rooms),
                "paths": len(self.paths),
            })

    def stats(self) -> dict:
        with self.lock:
            return {
                "waypoints": len(self.waypoints),
                "rooms": len(self.rooms),
                "paths": len(self.paths),
                "components": self.component_count(),
            }
