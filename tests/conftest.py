"""Pytest shared fixtures."""

from __future__ import annotations

import pytest

from campusnav.graph import NavigationGraph
from campusnav.logger import Logger
from campusnav.models import Room, Waypoint
from campusnav.normalizer import ImageFrame


@pytest.fixture()
def frame() -> ImageFrame:
    """A square 1000x1000 floor plan."""
    return ImageFrame(1000, 1000)


@pytest.fixture()
def quiet_logger() -> Logger:
    """Logger that neither prints nor writes a file."""
    return Logger(echo=False)


@pytest.fixture()
def campus() -> NavigationGraph:
    """Three-waypoint L-shaped corridor with a room at each end."""
    graph = NavigationGraph()
    graph.add_waypoint(Waypoint("W1", "W1", 0.2, 0.2))
    graph.add_waypoint(Waypoint("W2", "W2", 0.5, 0.2, "junction"))
    graph.add_waypoint(Waypoint("W3", "W3", 0.5, 0.5))
    graph.add_path("W1", "W2")
    graph.add_path("W2", "W3")
    graph.add_room(Room("R1", "Room 101", 0.2, 0.2))
    graph.add_room(Room("R2", "Room 102", 0.5, 0.5))
    graph.add_path("W1", room_b="R1")
    graph.add_path("W3", room_b="R2")
    return graph


@pytest.fixture()
def campus_data() -> dict:
    """The campus fixture as a dataset document."""
    return {
        "version": "1.0",
        "coordinateSystem": "normalized",
        "waypoints": [
            {"id": "W1", "name": "W1", "x": 0.2, "y": 0.2, "kind": "corridor"},
            {"id": "W2", "name": "W2", "x": 0.5, "y": 0.2, "kind": "junction"},
            {"id": "W3", "name": "W3", "x": 0.5, "y": 0.5, "kind": "corridor"},
        ],
        "rooms": [
            {"id": "R1", "name": "Room 101", "x": 0.2, "y": 0.2},
            {"id": "R2", "name": "Room 102", "x": 0.5, "y": 0.5},
        ],
        "paths": [
            {"id": "W1~W2", "waypointA": "W1", "waypointB": "W2", "roomB": None},
            {"id": "W2~W3", "waypointA": "W2", "waypointB": "W3", "roomB": None},
            {"id": "W1~room:R1", "waypointA": "W1", "waypointB": None, "roomB": "R1"},
            {"id": "W3~room:R2", "waypointA": "W3", "waypointB": None, "roomB": "R2"},
        ],
    }
