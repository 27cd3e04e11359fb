"""Main campusnav application: ties the graph, planner, positioning and monitor together."""

import time
from typing import Optional

from .config import CONFIG
from .dataset import build_graph, dump_dataset, import_dataset
from .directions import ScaleCalibration
from .errors import LocationUnavailableError
from .geo import euclidean_distance, retry_with_backoff
from .graph import NavigationGraph
from .logger import Logger
from .models import PositionSample, Route
from .monitor import OffRouteMonitor, TrackingTask
from .normalizer import GeoCalibration, ImageFrame
from .pathfinder import PathFinder
from .planner import Endpoint, RoutePlanner
from .positioning import HybridPositioning, PositionPlayback, PositionRecorder
from .store import NavigationStore


class Navigator:
    """Main application.

    `lock` is the graph's own lock. Graph edits, the route regeneration they
    trigger and each tracking step all hold it, so the tracking thread never
    sees a half-applied edit.
    """

    def __init__(self, frame: ImageFrame,
                 scale: Optional[ScaleCalibration] = None,
                 calibration: Optional[GeoCalibration] = None,
                 algorithm: Optional[str] = None,
                 log_path: Optional[str] = None,
                 logger: Optional[Logger] = None,
                 store: Optional[NavigationStore] = None):
        self.logger = logger or Logger(log_path)
        self.frame = frame
        self.calibration = calibration
        self.store = store
        self.graph = NavigationGraph()
        self.finder = PathFinder(self.graph, algorithm, logger=self.logger)
        self.planner = RoutePlanner(self.graph, frame, scale, self.finder, self.logger)
        self.monitor = OffRouteMonitor(self._request_recompute)
        self.lock = self.graph.lock

        self.positioning: Optional[HybridPositioning] = None
        self.position_source = None
        self.tracking: Optional[TrackingTask] = None
        self.current_position: Optional[tuple[float, float]] = None
        self.arrived = False
        self.recalculations = 0
        self._pending_recompute: Optional[tuple[float, float]] = None
        self._start_time = 0.0

    # -- setup --------------------------------------------------------------------

    def set_position_source(self, source):
        """Use a provider, a list of providers, or a ready HybridPositioning"""
        self.position_source = source
        if isinstance(source, HybridPositioning):
            self.positioning = source
        else:
            providers = source if isinstance(source, (list, tuple)) else [source]
            self.positioning = HybridPositioning(providers, calibration=self.calibration,
                                                 logger=self.logger)

    def load(self, path: str) -> dict:
        """Import a dataset file; the current map is kept if the file is bad"""
        with self.lock:
            stats = import_dataset(path, self.graph, self.frame)
        self.logger.log("Dataset loaded", {"path": path, **stats})
        return stats

    def load_from_store(self, name: str = "default") -> bool:
        if self.store is None:
            return False
        data = self.store.load_dataset(name)
        if data is None:
            return False
        fresh = build_graph(data, self.frame)
        with self.lock:
            self.graph.replace_with(fresh)
        calibration = self.store.load_calibration(name)
        if calibration is not None:
            self.calibration = calibration
            if self.positioning is not None:
                self.positioning.calibration = calibration
        self.logger.log("Dataset restored from store", self.graph.stats())
        return True

    def save_to_store(self, name: str = "default"):
        if self.store is None:
            return
        with self.lock:
            data = dump_dataset(self.graph)
        self.store.save_dataset(data, name)
        if self.calibration is not None:
            self.store.save_calibration(self.calibration, name)

    def get_state(self) -> dict:
        """Get current state as dict for logging"""
        route = self.planner.route
        return {
            "position": self.current_position,
            "start": self.planner.start.id if self.planner.start else None,
            "destination": self.planner.end.id if self.planner.end else None,
            "route_points": len(route.points) if route else 0,
            "route_reliable": route.reliable if route else None,
            "recalculations": self.recalculations,
            "arrived": self.arrived,
            "tracking": self.tracking is not None and self.tracking.running,
        }

    # -- routing ------------------------------------------------------------------

    def navigate(self, start: Endpoint, end: Endpoint) -> Route:
        """Plan a route and make it the active one"""
        with self.lock:
            route = self.planner.calculate_route(start, end)
            self.monitor.reset()
            self.arrived = False
        return route

    def _request_recompute(self, position: tuple[float, float], distance: float):
        self.logger.log("Off route", {"position": position, "distance": round(distance, 4)})
        self._pending_recompute = position

    # -- positioning --------------------------------------------------------------

    def _try_fix(self) -> Optional[PositionSample]:
        try:
            return self.positioning.get_position()
        except LocationUnavailableError:
            return None

    def acquire_fix(self, max_time: Optional[float] = None) -> Optional[PositionSample]:
        """Wait (with backoff) for a first position fix"""
        if self.positioning is None:
            return None
        return retry_with_backoff(
            self._try_fix,
            max_time=max_time if max_time is not None else CONFIG["gps_timeout"],
            description="position fix",
            log=self.logger.log,
        )

    def update(self) -> bool:
        """One tracking step - returns False once the destination is reached"""
        if self.positioning is None:
            return False

        try:
            sample = self.positioning.get_position()
        except LocationUnavailableError as e:
            self.logger.log("Position fix failed", {
                "error": str(e), "status": self.positioning.get_status(),
            })
            return True  # Keep going even with positioning errors

        with self.lock:
            position = sample.coordinates
            self.current_position = position
            route = self.planner.route
            if route is None:
                return True

            self.monitor.check(position, route)

            if self._pending_recompute is not None:
                pending, self._pending_recompute = self._pending_recompute, None
                self.recalculations += 1
                new_route = self.planner.recompute_from(pending)
                if new_route is not None:
                    self.logger.log("Route recalculated", {
                        "points": len(new_route.points),
                        "first_step": new_route.directions[0] if new_route.directions else None,
                    })
                route = self.planner.route
                if route is None:
                    return True

            destination = route.destination
            if euclidean_distance(*position, destination.x, destination.y) <= self.monitor.tolerance:
                self.arrived = True
                self.logger.log("Arrived", {"destination": destination.name})
                return False

        return True

    # -- continuous tracking --------------------------------------------------------

    def _tracking_step(self) -> bool:
        # False ends the worker loop; disable_tracking still owns the join
        return self.update()

    def _tracking_error(self, error: Exception):
        self.logger.log("Tracking step failed", {"error": str(error)})

    def enable_tracking(self, interval: Optional[float] = None) -> TrackingTask:
        """Start polling positions in the background; a no-op when already on"""
        with self.lock:
            if self.tracking is not None and self.tracking.running:
                return self.tracking
            task = self.tracking = TrackingTask(self._tracking_step, interval,
                                                on_error=self._tracking_error).start()
        self.logger.log("Tracking enabled", {"interval": task.interval})
        return task

    def disable_tracking(self):
        """Stop the background poll; returns once no poll can run any more"""
        with self.lock:
            task, self.tracking = self.tracking, None
        if task is not None:
            task.cancel()
            self.logger.log("Tracking disabled")

    # -- foreground loop ----------------------------------------------------------

    def get_poll_interval(self) -> float:
        """Get poll interval, respecting playback speed if applicable"""
        if isinstance(self.position_source, PositionPlayback):
            return self.position_source.get_poll_interval()
        return CONFIG["tracking_poll_interval"]

    def is_playback_finished(self) -> bool:
        if isinstance(self.position_source, PositionPlayback):
            return self.position_source.is_finished()
        return False

    def run(self):
        """Follow the active route in the foreground until arrival or Ctrl+C"""
        self._start_time = time.time()
        try:
            while self.update():
                if self.is_playback_finished():
                    self.logger.log("Playback finished")
                    break
                time.sleep(self.get_poll_interval())
        except KeyboardInterrupt:
            self.logger.log("Navigation interrupted by user")
        finally:
            if isinstance(self.position_source, PositionRecorder):
                self.position_source.save()

            self.logger.log("Navigation summary", {
                "arrived": self.arrived,
                "recalculations": self.recalculations,
                "duration": time.time() - self._start_time,
            })

    def close(self):
        self.disable_tracking()
        self.planner.close()
        if self.store is not None:
            self.store.close()
        self.logger.close()
