"""Geometry helpers for floor-plan and geographic coordinates."""

from __future__ import annotations

import math
import time

from .config import CONFIG


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    R = 6371000  # Earth's radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def euclidean_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def image_bearing(x1: float, y1: float, x2: float, y2: float) -> float:
    """Bearing from point 1 to point 2 in image space (0-360, 0=up, clockwise).

    Image y grows downward, so "up" on the floor plan is negative dy.
    """
    bearing = math.degrees(math.atan2(x2 - x1, -(y2 - y1)))
    return (bearing + 360) % 360


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def turn_angle(from_bearing: float, to_bearing: float) -> float:
    """Signed turn from one bearing to another, in (-180, 180].

    Positive is clockwise (a right turn), negative is counter-clockwise.
    """
    diff = (to_bearing - from_bearing) % 360
    if diff > 180:
        diff -= 360
    return diff


def relative_direction(from_bearing: float, to_bearing: float) -> str:
    """Get relative direction: "straight", "right" or "left"."""
    angle = turn_angle(from_bearing, to_bearing)
    if abs(angle) < CONFIG["turn_threshold"]:
        return "straight"
    return "right" if angle > 0 else "left"


def point_to_segment_distance(px: float, py: float,
                              ax: float, ay: float,
                              bx: float, by: float) -> float:
    """Distance from point P to segment AB (projection clamped to the segment)"""
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)

    t = ((px - ax) * dx + (py - ay) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    cx = ax + t * dx
    cy = ay + t * dy
    return math.hypot(px - cx, py - cy)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       log=print):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        log: Callable receiving progress messages

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            log(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            log(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            time.sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
