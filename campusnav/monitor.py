"""Off-route detection and the continuous tracking poll."""

import math
import threading
from typing import Callable, Optional, Union

from .config import CONFIG
from .geo import euclidean_distance, point_to_segment_distance
from .models import Route, RoutePoint

RouteLike = Union[Route, list[RoutePoint]]


def _points(route: RouteLike) -> list[RoutePoint]:
    return route.points if isinstance(route, Route) else list(route)


def route_deviation(position: tuple[float, float], route: RouteLike) -> float:
    """Smallest distance from a position to any segment of the route.

    A single-point route measures to that point; an empty route is
    infinitely far away.
    """
    points = _points(route)
    px, py = position
    if not points:
        return math.inf
    if len(points) == 1:
        return euclidean_distance(px, py, points[0].x, points[0].y)
    return min(
        point_to_segment_distance(px, py, a.x, a.y, b.x, b.y)
        for a, b in zip(points, points[1:])
    )


def is_on_route(position: tuple[float, float], route: RouteLike,
                tolerance: Optional[float] = None) -> bool:
    """True when the position is within tolerance (inclusive) of the route"""
    if tolerance is None:
        tolerance = CONFIG["off_route_tolerance"]
    return route_deviation(position, route) <= tolerance


class OffRouteMonitor:
    """Watches live positions and asks for a recompute when the walker strays.

    Positions closer than min_movement to the last evaluated one are
    ignored, so sensor jitter while standing still never triggers a
    recompute. on_deviation(position, distance) is only a request; the
    monitor never touches the route itself.
    """

    def __init__(self, on_deviation: Callable[[tuple[float, float], float], None],
                 tolerance: Optional[float] = None,
                 min_movement: Optional[float] = None):
        self.on_deviation = on_deviation
        self.tolerance = CONFIG["off_route_tolerance"] if tolerance is None else tolerance
        self.min_movement = CONFIG["min_movement"] if min_movement is None else min_movement
        self.last_position: Optional[tuple[float, float]] = None
        self.last_distance: Optional[float] = None

    def check(self, position: tuple[float, float], route: Optional[RouteLike]) -> Optional[bool]:
        """Evaluate one position against the active route.

        Returns True/False for on/off route, or None when the position was
        skipped (no route, or not enough movement).
        """
        if route is None or not _points(route):
            return None

        if self.last_position is not None:
            moved = euclidean_distance(*self.last_position, *position)
            if moved <= self.min_movement:
                return None

        self.last_position = tuple(position)
        distance = route_deviation(position, route)
        self.last_distance = distance
        if distance <= self.tolerance:
            return True

        self.on_deviation(tuple(position), distance)
        return False

    def reset(self):
        self.last_position = None
        self.last_distance = None


class TrackingTask:
    """A cancellable background poll calling step() every interval seconds.

    The poll also ends on its own when step() returns False.

    Usage:
        task = TrackingTask(navigator.update, 3).start()
        ...
        task.cancel()  # returns after the worker thread has exited
    """

    def __init__(self, step: Callable[[], None], interval: Optional[float] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.step = step
        self.interval = CONFIG["tracking_poll_interval"] if interval is None else interval
        self.on_error = on_error
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "TrackingTask":
        """Start polling; starting a running task does nothing"""
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def cancel(self):
        """Stop polling and wait for the worker to finish; safe to call twice"""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def _run(self):
        while not self._stop.is_set():
            try:
                if self.step() is False:
                    break
            except Exception as e:
                if self.on_error is None:
                    raise
                self.on_error(e)
            self._stop.wait(self.interval)
