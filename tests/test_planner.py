"""Unit tests for campusnav.planner."""

from __future__ import annotations

import pytest

from campusnav.errors import InputValidationError, NoPathFoundError
from campusnav.graph import NavigationGraph
from campusnav.models import Room, RoutePoint, Waypoint
from campusnav.normalizer import ImageFrame
from campusnav.planner import RoutePlanner, compose_route


def test_end_to_end_route(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Room 101 coincides with W1 and is dropped; Room 102 closes the route."""
    route = RoutePlanner(campus, frame).calculate_route("R1", "R2")

    assert [p.id for p in route.points] == ["W1", "W2", "W3", "R2"]
    assert [p.kind for p in route.points] == ["waypoint", "waypoint", "waypoint", "destination"]
    assert len(route.directions) == 4
    assert route.distance_feet == pytest.approx(300)


def test_compose_keeps_distinct_start_point() -> None:
    """A start away from its anchor leads the route."""
    w1 = Waypoint("W1", "W1", 0.2, 0.2)
    w2 = Waypoint("W2", "W2", 0.5, 0.2)
    start = RoutePoint.current_location(0.25, 0.3)
    end = RoutePoint.from_room(Room("R", "Lab", 0.6, 0.2))

    points = compose_route(start, w1, [w1, w2], end, w2)
    assert [p.id for p in points] == ["current", "W1", "W2", "R"]
    assert points[-1].kind == "destination"


def test_compose_retags_anchor_destination() -> None:
    """A waypoint destination is the last path node, tagged destination."""
    w1 = Waypoint("W1", "W1", 0.2, 0.2)
    w2 = Waypoint("W2", "W2", 0.5, 0.2)
    points = compose_route(RoutePoint.from_waypoint(w1), w1, [w1, w2],
                           RoutePoint.from_waypoint(w2), w2)
    assert [(p.id, p.kind) for p in points] == [("W1", "waypoint"), ("W2", "destination")]


def test_compose_without_path_fails() -> None:
    """An empty waypoint path is never bridged with a straight line."""
    w1 = Waypoint("W1", "W1", 0.2, 0.2)
    with pytest.raises(NoPathFoundError):
        compose_route(RoutePoint.from_waypoint(w1), w1, [], RoutePoint.from_waypoint(w1), w1)


def test_disconnected_rooms_raise(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Rooms on separate islands report no route."""
    campus.add_waypoint(Waypoint("X", "X", 0.9, 0.9))
    campus.add_room(Room("R9", "Annex", 0.9, 0.9))
    campus.add_path("X", room_b="R9")
    planner = RoutePlanner(campus, frame)

    with pytest.raises(NoPathFoundError):
        planner.calculate_route("R1", "R9")
    assert planner.route is None
    assert isinstance(planner.last_error, NoPathFoundError)


def test_missing_endpoint_rejected(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Both endpoints must be chosen."""
    planner = RoutePlanner(campus, frame)
    planner.set_start("R1")
    with pytest.raises(InputValidationError):
        planner.calculate_route()
    with pytest.raises(InputValidationError):
        planner.set_end("nowhere")


def test_select_room_click_flow(campus: NavigationGraph, frame: ImageFrame) -> None:
    """First click picks the start, second the destination, more are ignored."""
    planner = RoutePlanner(campus, frame)
    assert planner.select_room("R1") == "start"
    assert planner.select_room("R1") is None
    assert planner.select_room("R2") == "end"
    assert planner.select_room("R1") is None
    assert planner.calculate_route().destination.id == "R2"

    planner.clear()
    assert planner.start is None and planner.end is None and planner.route is None


def test_stale_result_is_rejected(campus: NavigationGraph, frame: ImageFrame) -> None:
    """A slower, older request cannot replace a newer route."""
    planner = RoutePlanner(campus, frame)
    start = RoutePoint.from_room(campus.get_room("R1"))
    end = RoutePoint.from_room(campus.get_room("R2"))

    old = planner.begin_request()
    new = planner.begin_request()
    newer_route = planner.build_route(start, end, new)
    older_route = planner.build_route(end, start, old)

    assert planner.apply_route(new, newer_route)
    assert not planner.apply_route(old, older_route)
    assert planner.route is newer_route


def test_route_regenerates_after_edit(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Editing the graph recomputes the active route."""
    planner = RoutePlanner(campus, frame)
    first = planner.calculate_route("R1", "R2")

    campus.add_waypoint(Waypoint("W4", "W4", 0.2, 0.5))
    campus.add_path("W1", "W4")
    campus.add_path("W4", "W3")

    assert planner.route is not first
    assert planner.route.sequence > first.sequence


def test_route_cleared_when_edit_disconnects(campus: NavigationGraph, frame: ImageFrame) -> None:
    """An edit that breaks the only path leaves no route."""
    planner = RoutePlanner(campus, frame)
    planner.calculate_route("R1", "R2")
    campus.remove_path("W2~W3")
    assert planner.route is None


def test_room_removal_clears_selection(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Deleting a selected room drops it from the selection and the route."""
    planner = RoutePlanner(campus, frame)
    planner.calculate_route("R1", "R2")
    campus.remove_room("R2")
    assert planner.end is None
    assert planner.route is None
    assert planner.start.id == "R1"


def test_recompute_from_position(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Recomputing starts from the live position."""
    planner = RoutePlanner(campus, frame)
    planner.calculate_route("R1", "R2")
    route = planner.recompute_from((0.45, 0.3))
    assert route.start.kind == "current"
    assert [p.id for p in route.points][1:] == ["W2", "W3", "R2"]


def test_failed_recompute_keeps_stale_route(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Without a path the old route stays, marked unreliable."""
    planner = RoutePlanner(campus, frame)
    old = planner.calculate_route("R1", "R2")
    campus.add_waypoint(Waypoint("X", "X", 0.95, 0.95))  # re-plans the same route

    assert planner.recompute_from((0.94, 0.94)) is None
    assert planner.route.reliable is False
    assert [p.id for p in planner.route.points] == [p.id for p in old.points]


def test_replaced_graph_drops_missing_room_selection(campus: NavigationGraph,
                                                     frame: ImageFrame) -> None:
    """A reload without the destination room clears it instead of routing to it."""
    planner = RoutePlanner(campus, frame)
    planner.calculate_route("R1", "R2")

    fresh = NavigationGraph()
    fresh.add_waypoint(Waypoint("W1", "W1", 0.2, 0.2))
    fresh.add_waypoint(Waypoint("W3", "W3", 0.5, 0.5))
    fresh.add_path("W1", "W3")
    fresh.add_room(Room("R1", "Room 101", 0.2, 0.2))
    campus.replace_with(fresh)

    assert planner.start.id == "R1"
    assert planner.end is None
    assert planner.route is None


def test_replaced_graph_reroutes_kept_rooms(campus: NavigationGraph, frame: ImageFrame) -> None:
    """Rooms that survive a reload keep their selection and get a new route."""
    planner = RoutePlanner(campus, frame)
    planner.calculate_route("R1", "R2")

    fresh = NavigationGraph()
    fresh.add_waypoint(Waypoint("W1", "W1", 0.2, 0.2))
    fresh.add_waypoint(Waypoint("W3", "W3", 0.5, 0.5))
    fresh.add_path("W1", "W3")
    fresh.add_room(Room("R1", "Room 101", 0.2, 0.2))
    fresh.add_room(Room("R2", "Room 102", 0.5, 0.5))
    campus.replace_with(fresh)

    assert [p.id for p in planner.route.points] == ["W1", "W3", "R2"]
    assert "Arrive at Room 102." in planner.route.directions


def test_closed_planner_ignores_edits(campus: NavigationGraph, frame: ImageFrame) -> None:
    """After close the planner no longer follows the graph."""
    planner = RoutePlanner(campus, frame)
    route = planner.calculate_route("R1", "R2")
    planner.close()
    planner.close()

    campus.remove_path("W2~W3")
    assert planner.route is route
