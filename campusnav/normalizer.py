"""Coordinate normalization.

Every point the routing core sees lives in normalized image space: x and y
in [0, 1], origin at the top-left of the floor-plan image, y growing
downward. This module converts the other spaces points arrive in:

- "pixel": natural image pixels
- "percent": percentage of the image (0-100), as stored by older room lists
- "display": container pixels after object-contain fitting, zoom and pan
- "geo": (lon, lat) from a position provider, mapped through GPS corners

Usage example:
    >>> frame = ImageFrame(1200, 800)
    >>> normalize((600, 200), "pixel", frame)
    (0.5, 0.25)
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import CONFIG
from .errors import InputValidationError, UnmappedLocationError
from .geo import clamp01

Point = tuple[float, float]
SPACES = ("pixel", "percent", "display", "geo")


@dataclass(frozen=True)
class ImageFrame:
    """Natural (intrinsic) size of the floor-plan image"""
    natural_width: float
    natural_height: float

    def validate(self) -> None:
        if self.natural_width <= 0 or self.natural_height <= 0:
            raise UnmappedLocationError("Floor plan image size is unknown (image not loaded?)")


@dataclass(frozen=True)
class DisplayFrame:
    """How the image is shown: object-contain fitted into a container, then zoomed and panned.

    Zoom is applied about the container centre, pan is a translation in
    container pixels applied after zoom.
    """
    image: ImageFrame
    container_width: float
    container_height: float
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def fit(self) -> tuple[float, float, float]:
        """Return (scale, offset_x, offset_y) of the object-contain fit."""
        self.image.validate()
        if self.container_width <= 0 or self.container_height <= 0 or self.zoom <= 0:
            raise UnmappedLocationError("Display container has no visible area")
        scale = min(self.container_width / self.image.natural_width,
                    self.container_height / self.image.natural_height)
        offset_x = (self.container_width - self.image.natural_width * scale) / 2
        offset_y = (self.container_height - self.image.natural_height * scale) / 2
        return scale, offset_x, offset_y

    def to_natural(self, px: float, py: float) -> Point:
        """Display pixel -> natural image pixel."""
        scale, offset_x, offset_y = self.fit()
        cx = self.container_width / 2
        cy = self.container_height / 2
        # Undo pan, then zoom about the centre
        fx = (px - self.pan_x - cx) / self.zoom + cx
        fy = (py - self.pan_y - cy) / self.zoom + cy
        # Undo letterboxing, then the fit scale
        return (fx - offset_x) / scale, (fy - offset_y) / scale

    def from_natural(self, nx: float, ny: float) -> Point:
        scale, offset_x, offset_y = self.fit()
        cx = self.container_width / 2
        cy = self.container_height / 2
        fx = nx * scale + offset_x
        fy = ny * scale + offset_y
        return (fx - cx) * self.zoom + cx + self.pan_x, (fy - cy) * self.zoom + cy + self.pan_y


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


@dataclass(frozen=True)
class GeoCalibration:
    """GPS coordinates, as (lat, lon), of the four corners of the floor-plan image.

    Mapping a position uses a one-step inverse of the bilinear patch spanned
    by the corners. It is exact when the corners form a lat/lon-aligned
    rectangle; for skewed corners it is an approximation and the residual
    error is accepted rather than corrected.
    """
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @classmethod
    def from_bounds(cls, north: float, south: float, east: float, west: float) -> "GeoCalibration":
        """Build from a north/south/east/west bounding box (two-corner calibration)."""
        return cls(
            top_left=(north, west),
            top_right=(north, east),
            bottom_left=(south, west),
            bottom_right=(south, east),
        )

    def to_normalized(self, lon: float, lat: float) -> Point:
        """Map (lon, lat) to normalized image space.

        Raises:
            UnmappedLocationError: If the point lies outside the campus bounds
                (beyond the configured margin) or the corners are degenerate.
        """
        north = (self.top_left[0] + self.top_right[0]) / 2
        south = (self.bottom_left[0] + self.bottom_right[0]) / 2
        if north == south:
            raise UnmappedLocationError("GPS calibration corners have no latitude extent")
        approx_lat_factor = (lat - south) / (north - south)

        left = _lerp(self.bottom_left[1], self.top_left[1], approx_lat_factor)
        right = _lerp(self.bottom_right[1], self.top_right[1], approx_lat_factor)
        if left == right:
            raise UnmappedLocationError("GPS calibration corners have no longitude extent")
        lon_factor = (lon - left) / (right - left)

        bottom = _lerp(self.bottom_left[0], self.bottom_right[0], lon_factor)
        top = _lerp(self.top_left[0], self.top_right[0], lon_factor)
        if top == bottom:
            raise UnmappedLocationError("GPS calibration corners have no latitude extent")
        lat_factor = (lat - bottom) / (top - bottom)

        margin = CONFIG["campus_bounds_margin"]
        for factor in (lon_factor, lat_factor):
            if factor < -margin or factor > 1 + margin:
                raise UnmappedLocationError(
                    f"Position ({lat:.6f}, {lon:.6f}) is outside the calibrated campus bounds"
                )

        return clamp01(lon_factor), 1 - clamp01(lat_factor)

    def to_geo(self, x: float, y: float) -> Point:
        """Map normalized image space back to (lon, lat) by bilinear interpolation."""
        lat_factor = 1 - y
        top = (_lerp(self.top_left[0], self.top_right[0], x),
               _lerp(self.top_left[1], self.top_right[1], x))
        bottom = (_lerp(self.bottom_left[0], self.bottom_right[0], x),
                  _lerp(self.bottom_left[1], self.bottom_right[1], x))
        lat = _lerp(bottom[0], top[0], lat_factor)
        lon = _lerp(bottom[1], top[1], lat_factor)
        return lon, lat

    def to_dict(self) -> dict:
        return {
            "top_left": list(self.top_left),
            "top_right": list(self.top_right),
            "bottom_left": list(self.bottom_left),
            "bottom_right": list(self.bottom_right),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GeoCalibration":
        return cls(**{k: tuple(d[k]) for k in ("top_left", "top_right", "bottom_left", "bottom_right")})


def _check_inside(x: float, y: float, what: str) -> Point:
    if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
        raise UnmappedLocationError(f"{what} point lies outside the floor plan")
    return x, y


def normalize(raw: Point, space: str, frame=None) -> Point:
    """Convert a point from `space` into normalized image space.

    Args:
        raw: The point in its source space. Geographic points are (lon, lat).
        space: One of "pixel", "percent", "display", "geo".
        frame: ImageFrame for pixel, DisplayFrame for display,
            GeoCalibration for geo; unused for percent.

    Returns:
        (x, y) with both components in [0, 1].

    Raises:
        UnmappedLocationError: If the point cannot be placed on the floor plan.
        InputValidationError: If the space is unknown or the frame is the wrong type.
    """
    if space not in SPACES:
        raise InputValidationError(f"Unknown coordinate space: {space!r}")

    if space == "percent":
        return _check_inside(raw[0] / 100.0, raw[1] / 100.0, "Percentage")

    if space == "pixel":
        if not isinstance(frame, ImageFrame):
            raise InputValidationError("Pixel coordinates need an ImageFrame")
        frame.validate()
        return _check_inside(raw[0] / frame.natural_width, raw[1] / frame.natural_height, "Pixel")

    if space == "display":
        if not isinstance(frame, DisplayFrame):
            raise InputValidationError("Display coordinates need a DisplayFrame")
        nx, ny = frame.to_natural(raw[0], raw[1])
        return _check_inside(nx / frame.image.natural_width, ny / frame.image.natural_height, "Display")

    if not isinstance(frame, GeoCalibration):
        raise UnmappedLocationError("No GPS calibration is available for geographic positions")
    return frame.to_normalized(raw[0], raw[1])


def denormalize(point: Point, space: str, frame=None) -> Point:
    """Inverse of normalize for the pixel, percent and display spaces (and geo)."""
    x, y = point
    if space == "percent":
        return x * 100.0, y * 100.0
    if space == "pixel":
        if not isinstance(frame, ImageFrame):
            raise InputValidationError("Pixel coordinates need an ImageFrame")
        frame.validate()
        return x * frame.natural_width, y * frame.natural_height
    if space == "display":
        if not isinstance(frame, DisplayFrame):
            raise InputValidationError("Display coordinates need a DisplayFrame")
        return frame.from_natural(x * frame.image.natural_width, y * frame.image.natural_height)
    if space == "geo":
        if not isinstance(frame, GeoCalibration):
            raise UnmappedLocationError("No GPS calibration is available for geographic positions")
        return frame.to_geo(x, y)
    raise InputValidationError(f"Unknown coordinate space: {space!r}")


def migrate_legacy_point(x: float, y: float, frame: ImageFrame) -> Point:
    """Convert an absolute-pixel point from an old export, clamped to the image."""
    frame.validate()
    return clamp01(x / frame.natural_width), clamp01(y / frame.natural_height)
