"""Shortest-path search over the waypoint graph.

Purpose:
- Find the cheapest waypoint chain between two waypoints (A* with a
  Euclidean heuristic, or breadth-first search for hop-count routing).
- Resolve rooms and free-standing coordinates to the waypoint a route
  enters or leaves the graph through (its anchor).

Usage example:
    >>> finder = PathFinder(graph)
    >>> start = finder.resolve_anchor(graph.get_room("R1"))
    >>> end = finder.resolve_anchor(graph.get_room("R2"))
    >>> finder.find_path(start, end)
"""

from __future__ import annotations

import heapq
import itertools
from collections import deque
from typing import Optional, Union

from .config import CONFIG
from .errors import InputValidationError, NoPathFoundError
from .geo import euclidean_distance
from .graph import GraphSnapshot, NavigationGraph
from .logger import Logger
from .models import Room, RoutePoint, Waypoint

ALGORITHMS = ("astar", "bfs")


def _reconstruct(came_from: dict[str, str], current: str) -> list[str]:
    path = [current]
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path


def astar(snapshot: GraphSnapshot, start: str, goal: str,
          max_iterations: Optional[int] = None) -> list[str]:
    """Compute the shortest waypoint chain via A*.

    Edge cost is the length stored on each path and the heuristic is the
    straight-line distance, both in normalized coordinates, so the heuristic
    never overestimates. Open-set entries carry an insertion counter:
    entries with equal f-score pop in the order they were pushed, which
    makes the result depend only on the graph and its insertion order.

    Args:
        snapshot: Graph snapshot to search.
        start: Start waypoint id.
        goal: Goal waypoint id.
        max_iterations: Cap on open-set pops; defaults to node_count ** 2.

    Returns:
        List of waypoint ids from start to goal. Empty list if no path
        exists or the iteration cap was exceeded.
    """
    if start not in snapshot.positions or goal not in snapshot.positions:
        raise InputValidationError("Start and goal must be waypoints of the graph")
    if start == goal:
        return [start]

    cap = max_iterations if max_iterations is not None else max(len(snapshot) ** 2, 1)
    counter = itertools.count()

    open_heap: list[tuple[float, int, str]] = []
    heapq.heappush(open_heap, (snapshot.distance(start, goal), next(counter), start))

    came_from: dict[str, str] = {}
    g_score: dict[str, float] = {start: 0.0}
    closed: set[str] = set()
    iterations = 0

    while open_heap:
        iterations += 1
        if iterations > cap:
            return []

        _, _, current = heapq.heappop(open_heap)

        if current in closed:
            continue

        if current == goal:
            return _reconstruct(came_from, current)

        closed.add(current)

        for neighbor in snapshot.adjacency.get(current, ()):
            if neighbor in closed:
                continue

            tentative_g = g_score[current] + snapshot.edge_length(current, neighbor)
            if tentative_g < g_score.get(neighbor, float("inf")):
                came_from[neighbor] = current
                g_score[neighbor] = tentative_g
                f = tentative_g + snapshot.distance(neighbor, goal)
                heapq.heappush(open_heap, (f, next(counter), neighbor))

    return []


def bfs(snapshot: GraphSnapshot, start: str, goal: str) -> list[str]:
    """Fewest-hops waypoint chain; neighbors are expanded in insertion order."""
    if start not in snapshot.positions or goal not in snapshot.positions:
        raise InputValidationError("Start and goal must be waypoints of the graph")
    if start == goal:
        return [start]

    came_from: dict[str, str] = {}
    visited = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in snapshot.adjacency.get(current, ()):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            came_from[neighbor] = current
            if neighbor == goal:
                return _reconstruct(came_from, neighbor)
            queue.append(neighbor)
    return []


def path_cost(nodes: list) -> float:
    """Total Euclidean length of a chain of points (anything with x and y)."""
    return sum(
        euclidean_distance(a.x, a.y, b.x, b.y)
        for a, b in zip(nodes, nodes[1:])
    )


Anchorable = Union[Waypoint, Room, RoutePoint, tuple]


class PathFinder:
    """Finds waypoint paths and resolves route endpoints onto the graph"""

    def __init__(self, graph: NavigationGraph, algorithm: Optional[str] = None,
                 logger: Optional[Logger] = None):
        algorithm = algorithm or CONFIG["pathfinding_algorithm"]
        if algorithm not in ALGORITHMS:
            raise InputValidationError(f"Unknown pathfinding algorithm {algorithm!r}")
        self.graph = graph
        self.algorithm = algorithm
        self.logger = logger or Logger(echo=False)

    def resolve_anchor(self, point: Anchorable,
                       snapshot: Optional[GraphSnapshot] = None) -> Waypoint:
        """Waypoint through which a route enters or leaves the graph.

        A waypoint anchors to itself. A room anchors to the waypoint of an
        authored spur path when one exists, otherwise to the nearest
        waypoint. Any other position anchors to the nearest waypoint.
        Lookups use the given snapshot, or a fresh one.
        """
        if snapshot is None:
            snapshot = self.graph.snapshot()
        if not snapshot.waypoints:
            raise NoPathFoundError("The map has no waypoints to route through")

        if isinstance(point, Waypoint) or (isinstance(point, RoutePoint) and point.kind == "waypoint"):
            waypoint = snapshot.waypoints.get(point.id)
            if waypoint is None:
                raise InputValidationError(f"Unknown waypoint {point.id!r}")
            return waypoint

        room_id = None
        if isinstance(point, Room):
            room_id = point.id
        elif isinstance(point, RoutePoint) and point.kind in ("room", "destination"):
            room_id = point.id

        if room_id is not None:
            spur = snapshot.spur_anchor(room_id)
            if spur is not None:
                return snapshot.waypoints[spur]

        if isinstance(point, tuple):
            x, y = point
        else:
            x, y = point.x, point.y
        return snapshot.waypoints[snapshot.nearest(x, y)]

    def find_path(self, start: Union[Waypoint, str], end: Union[Waypoint, str],
                  snapshot: Optional[GraphSnapshot] = None) -> list[Waypoint]:
        """Shortest waypoint path from start to end; empty list means no path."""
        start_id = start.id if isinstance(start, Waypoint) else start
        end_id = end.id if isinstance(end, Waypoint) else end

        if snapshot is None:
            snapshot = self.graph.snapshot()
        if self.algorithm == "bfs":
            ids = bfs(snapshot, start_id, end_id)
        else:
            ids = astar(snapshot, start_id, end_id)

        if not ids:
            self.logger.log("No path found", {
                "start": start_id, "end": end_id,
                "algorithm": self.algorithm, "waypoints": len(snapshot),
            })
            return []

        return [snapshot.waypoints[i] for i in ids]
