"""Turn-by-turn directions from a composed route.

Distances are measured on the natural floor-plan image and converted to
feet through a scale calibration. Turns are relative to the walker: each
segment's bearing is compared with the bearing of the segment walked just
before it (the facing bearing), not with a fixed compass heading.

Bearings follow image space with 0 degrees pointing up the floor plan and
angles growing clockwise, so walking east and then south is a right turn.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .config import CONFIG
from .errors import InputValidationError
from .geo import bearing_to_compass, haversine_distance, image_bearing, relative_direction
from .models import RoutePoint
from .normalizer import GeoCalibration, ImageFrame


@dataclass(frozen=True)
class ScaleCalibration:
    """Real-world size of one natural image pixel"""
    feet_per_pixel: float

    def __post_init__(self):
        if not self.feet_per_pixel > 0:
            raise InputValidationError("feet_per_pixel must be > 0")

    @classmethod
    def default(cls) -> "ScaleCalibration":
        return cls(CONFIG["default_feet_per_pixel"])

    @classmethod
    def from_geo_calibration(cls, calibration: GeoCalibration, frame: ImageFrame) -> "ScaleCalibration":
        """Derive the scale from the GPS corners of the image.

        Averages the top/bottom edge lengths against the image width and
        the left/right edge lengths against its height.
        """
        frame.validate()
        tl, tr = calibration.top_left, calibration.top_right
        bl, br = calibration.bottom_left, calibration.bottom_right
        width_m = (haversine_distance(*tl, *tr) + haversine_distance(*bl, *br)) / 2
        height_m = (haversine_distance(*tl, *bl) + haversine_distance(*tr, *br)) / 2
        to_feet = CONFIG["meters_to_feet"]
        factors = [
            width_m * to_feet / frame.natural_width,
            height_m * to_feet / frame.natural_height,
        ]
        return cls(sum(factors) / len(factors))

    @classmethod
    def from_reference_segments(cls, segments: list[tuple[tuple[float, float], tuple[float, float], float]]
                                ) -> "ScaleCalibration":
        """Average feet-per-pixel over surveyed ((x1, y1), (x2, y2), feet) pixel segments."""
        factors = []
        for (x1, y1), (x2, y2), feet in segments:
            pixels = math.hypot(x2 - x1, y2 - y1)
            if pixels > 0:
                factors.append(feet / pixels)
        if not factors:
            raise InputValidationError("At least one non-empty reference segment is required")
        return cls(sum(factors) / len(factors))


@dataclass(frozen=True)
class DirectionStep:
    """One walked segment of a route"""
    origin: RoutePoint
    target: RoutePoint
    feet: float
    bearing: Optional[float]  # None for zero-length segments
    turn: str  # "start", "straight", "left" or "right"


def segment_feet(a: RoutePoint, b: RoutePoint, frame: ImageFrame, scale: ScaleCalibration) -> float:
    """Real-world length of a segment between two normalized points."""
    frame.validate()
    pixels = math.hypot((b.x - a.x) * frame.natural_width, (b.y - a.y) * frame.natural_height)
    return pixels * scale.feet_per_pixel


def describe_route(route: list[RoutePoint], frame: ImageFrame,
                   scale: Optional[ScaleCalibration] = None) -> list[DirectionStep]:
    """Measure every segment and classify the turn into it."""
    if len(route) < 2:
        return []
    scale = scale or ScaleCalibration.default()

    steps = []
    facing: Optional[float] = None
    for a, b in zip(route, route[1:]):
        feet = segment_feet(a, b, frame, scale)
        if feet == 0:
            steps.append(DirectionStep(a, b, 0.0, None, "start" if facing is None else "straight"))
            continue

        # Bearings use natural pixels so non-square images keep true angles
        bearing = image_bearing(a.x * frame.natural_width, a.y * frame.natural_height,
                                b.x * frame.natural_width, b.y * frame.natural_height)
        turn = "start" if facing is None else relative_direction(facing, bearing)
        steps.append(DirectionStep(a, b, feet, bearing, turn))
        facing = bearing
    return steps


def format_feet(feet: float) -> str:
    n = int(round(feet))
    return "1 foot" if n == 1 else f"{n} feet"


def format_duration(seconds: float) -> str:
    total = int(round(seconds))
    if total < 60:
        return "1 second" if total == 1 else f"{total} seconds"
    minutes, secs = divmod(total, 60)
    if secs == 0:
        return f"{minutes} min"
    return f"{minutes} min {secs} sec"


def _phrase(step: DirectionStep, index: int, count: int) -> str:
    is_first = index == 0
    is_last = index == count - 1
    distance = format_feet(step.feet)

    if is_first:
        if is_last:
            return f"Start at {step.origin.name} and walk {distance} to {step.target.name}."
        if step.bearing is None:
            return f"Start at {step.origin.name}."
        return f"Start at {step.origin.name} and head {bearing_to_compass(step.bearing)} for {distance}."

    if is_last:
        if int(round(step.feet)) == 0:
            return f"Arrive at {step.target.name}."
        if step.turn == "straight":
            return f"Continue straight for {distance} to arrive at {step.target.name}."
        return f"Turn {step.turn} and walk {distance} to arrive at {step.target.name}."

    if step.turn in ("left", "right"):
        return f"Turn {step.turn} and walk {distance}."
    return f"Continue straight for {distance}."


def generate_directions(route: list[RoutePoint], frame: ImageFrame,
                        scale: Optional[ScaleCalibration] = None,
                        walking_speed: Optional[float] = None) -> list[str]:
    """Natural-language steps for a route, plus a closing summary line.

    Pure: the same route, frame and scale always give the same text.
    Returns an empty list for routes with fewer than two points.
    """
    steps = describe_route(route, frame, scale)
    if not steps:
        return []

    speed = walking_speed or CONFIG["walking_speed_fps"]
    lines = [_phrase(step, i, len(steps)) for i, step in enumerate(steps)]

    total_feet = sum(step.feet for step in steps)
    lines.append(
        f"Total distance: {format_feet(total_feet)}, "
        f"about {format_duration(total_feet / speed)} of walking."
    )
    return lines
