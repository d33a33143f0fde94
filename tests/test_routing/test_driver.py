"""
Tests for the bidirectional search driver.

Tests the search lifecycle, cooperative batching, cancellation, events
and end-to-end scenarios on a stub terrain.
"""

import math

import networkx as nx
import pytest

from terrapath.core.errors import ConfigurationError, SearchStateError, ValidationError
from terrapath.core.routing.driver import SearchDriver, SearchState, StepResult
from terrapath.core.routing.policy import OutcomeKind
from terrapath.core.routing.route import RoutePath
from terrapath.core.routing.terrain_policy import TerrainPathPolicy
from terrapath.models.settings import PathfinderSettings


def make_driver(terrain, settings, batch_size=None):
    return SearchDriver(TerrainPathPolicy(terrain, settings), batch_size=batch_size)


@pytest.fixture
def corridor_driver(stub_terrain, one_way_settings):
    """One-way driver on open, permissive terrain."""
    return make_driver(stub_terrain, one_way_settings)


@pytest.fixture
def meeting_driver(make_terrain, surface_settings):
    """Bidirectional driver whose frontiers step four cells at a time."""
    settings = surface_settings.model_copy(update={"segment_mask_resolution": [4]})
    return make_driver(make_terrain(step=4), settings)


class TestLifecycle:
    """Tests for driver state transitions."""

    def test_initial_state(self, corridor_driver):
        """Test a new driver is idle and unsolved."""
        assert corridor_driver.state == SearchState.IDLE
        assert not corridor_driver.is_solved
        assert corridor_driver.solution == []
        assert corridor_driver.solution_kind is None

    def test_begin_seeds_both_frontiers(self, stub_terrain, surface_settings):
        """Test begin pushes one head on each side."""
        driver = make_driver(stub_terrain, surface_settings)

        driver.begin((0, 0), (10.2, -0.4))

        assert driver.state == SearchState.RUNNING
        assert driver.start_position == (0, 0)
        assert driver.destination == (10, 0)
        assert driver.start_frontier.open_count == 1
        assert driver.end_frontier.open_count == 1
        start_head = driver.arena[0]
        end_head = driver.arena[1]
        assert start_head.head and end_head.head
        assert start_head.goal == end_head.world_position
        assert end_head.goal == start_head.world_position
        assert start_head.cost.distance_to_goal == pytest.approx(10.0)

    def test_begin_sets_solve_distances(self, stub_terrain):
        """Test solve distances come from the mask of the path priority."""
        settings = PathfinderSettings(
            segment_mask_value=[5, 3],
            segment_mask_resolution=[4, 2],
            tunnel_segment_mask_value=[10, 2],
            tunnel_segment_mask_resolution=[4, 3],
            max_slope=[10.0, 10.0],
            max_curvature=[10.0, 10.0],
            allow_both_sides_connection=[True, False],
            tunnel_cost=[10.0, 10.0],
            bridge_cost=[10.0, 10.0],
        )
        driver = make_driver(stub_terrain, settings)

        driver.begin((0, 0), (50, 0), priority=1)

        assert driver.context.priority == 1
        assert driver.context.surface_solve_distance == 6.0
        assert driver.context.tunnel_solve_distance == 6.0
        assert driver.context.tunnel_mask_value == 2
        assert driver.context.tunnel_mask_resolution == 3
        assert not driver.context.allow_meeting_point

    def test_begin_twice_raises(self, corridor_driver):
        """Test a search cannot begin while another is running."""
        corridor_driver.begin((0, 0), (10, 0))

        with pytest.raises(SearchStateError) as exc_info:
            corridor_driver.begin((0, 0), (10, 0))
        assert exc_info.value.details["current_state"] == "running"

    def test_step_before_begin_raises(self, corridor_driver):
        """Test stepping an idle driver is rejected."""
        with pytest.raises(SearchStateError):
            corridor_driver.step()

    def test_step_after_finish_raises(self, corridor_driver):
        """Test a finished search cannot be stepped."""
        corridor_driver.solve((0, 0), (0, 0))

        with pytest.raises(SearchStateError):
            corridor_driver.step()

    def test_invalid_batch_size(self, stub_terrain, surface_settings):
        """Test the batch size must be positive."""
        with pytest.raises(ValidationError):
            make_driver(stub_terrain, surface_settings, batch_size=0)


class TestInputValidation:
    """Tests for begin input checks."""

    @pytest.mark.parametrize("start", [(math.nan, 0.0), (0.0, math.inf), (1.0,)])
    def test_rejects_bad_points(self, corridor_driver, start):
        """Test non-finite or short points are rejected."""
        with pytest.raises(ValidationError):
            corridor_driver.begin(start, (10, 0))
        assert corridor_driver.state == SearchState.IDLE

    def test_rejects_negative_priority(self, corridor_driver):
        """Test priorities are non-negative."""
        with pytest.raises(ValidationError):
            corridor_driver.begin((0, 0), (10, 0), priority=-1)

    def test_unknown_priority(self, corridor_driver):
        """Test a priority without settings is a configuration error."""
        with pytest.raises(ConfigurationError):
            corridor_driver.begin((0, 0), (10, 0), priority=3)

    def test_rejects_point_off_terrain(self, make_terrain, one_way_settings):
        """Test points without a terrain height are rejected."""
        driver = make_driver(make_terrain(bound=5), one_way_settings)

        with pytest.raises(ValidationError):
            driver.begin((0, 0), (50, 0))
        assert driver.state == SearchState.IDLE


class TestScenarios:
    """End-to-end search scenarios."""

    def test_coincident_endpoints(self, corridor_driver):
        """Test start and destination in the same cell solve at once."""
        route = corridor_driver.solve((3.2, 4.4), (2.8, 3.6))

        assert corridor_driver.is_solved
        assert corridor_driver.state == SearchState.SOLVED
        assert corridor_driver.steps == 1
        assert corridor_driver.solution_kind == OutcomeKind.GOAL_REACHED
        assert len(corridor_driver.solution) == 1
        assert corridor_driver.solution[0].position == (3, 4)
        assert route.total_length == pytest.approx(0.0)

    def test_straight_corridor(self, corridor_driver):
        """Test an open corridor finishes at the destination."""
        route = corridor_driver.solve((0, 0), (10, 0))

        assert isinstance(route, RoutePath)
        assert corridor_driver.solution_kind == OutcomeKind.GOAL_REACHED
        assert corridor_driver.solved_by == "start"
        assert [node.position for node in route.nodes] == [(x, 0) for x in range(9)] + [(10, 0)]
        assert route.segments[-1].start[:2] == (8.0, 0.0)
        assert route.segments[-1].end[:2] == (10.0, 0.0)
        assert route.total_cost == pytest.approx(10.0)
        assert route.total_length == pytest.approx(10.0)
        assert not route.metadata["meeting_point"]
        assert route.metadata["steps"] == corridor_driver.steps

    def test_frontiers_meet(self, meeting_driver):
        """Test both frontiers join halfway between the origins."""
        solutions = []
        meeting_driver.on_solution(solutions.append)

        route = meeting_driver.solve((0, 0), (40, 0))

        assert meeting_driver.is_solved
        assert meeting_driver.solution_kind == OutcomeKind.MEETING_POINT
        assert meeting_driver.solved_by == "end"
        assert [node.position for node in meeting_driver.solution] == [(20, 0), (20, 0)]
        assert solutions == [meeting_driver]
        assert [node.position for node in route.nodes] == [(x, 0) for x in range(0, 44, 4)]
        assert route.total_cost == pytest.approx(40.0)
        assert route.metadata["meeting_point"]

    def test_meeting_disabled_reaches_goal(self, make_terrain, surface_settings):
        """Test frontiers pass each other when meeting points are off."""
        settings = surface_settings.model_copy(
            update={"segment_mask_resolution": [4], "allow_both_sides_connection": [False]}
        )
        driver = make_driver(make_terrain(step=4), settings)

        route = driver.solve((0, 0), (40, 0))

        assert driver.solution_kind == OutcomeKind.GOAL_REACHED
        assert route.nodes[0].position == (0, 0)
        assert route.nodes[-1].position == (40, 0)

    def test_stop_mid_run(self, make_terrain, one_way_settings):
        """Test a stop request halts the search before the next dequeue."""
        driver = make_driver(make_terrain(), one_way_settings, batch_size=3)
        closed = []
        solved = []
        driver.on_node_closed(lambda side, node: closed.append(node.position))
        driver.on_solution(solved.append)

        run = driver.graph((0, 0), (1000, 0))
        assert next(run) == 3
        driver.stop_graph()
        open_before = driver.start_frontier.open_count

        with pytest.raises(StopIteration):
            next(run)

        assert driver.state == SearchState.STOPPED
        assert not driver.is_solved
        assert len(closed) == 3
        assert driver.start_frontier.open_count == open_before
        assert solved == []

    def test_stop_is_checked_before_step(self, corridor_driver):
        """Test step reports STOPPED without touching the frontiers."""
        corridor_driver.begin((0, 0), (1000, 0))
        assert corridor_driver.step() == StepResult.CONTINUE
        corridor_driver.stop_graph()
        open_before = corridor_driver.start_frontier.open_count

        assert corridor_driver.step() == StepResult.STOPPED
        assert corridor_driver.start_frontier.open_count == open_before
        assert corridor_driver.steps == 1

    def test_illegal_terrain_exhausts(self, make_terrain, surface_settings):
        """Test a search that can never connect ends by exhaustion."""
        terrain = make_terrain(bound=6, legal=False)
        driver = make_driver(terrain, surface_settings)
        solved = []
        driver.on_solution(solved.append)

        route = driver.solve((0, 0), (2, 0))

        assert route is None
        assert not driver.is_solved
        assert driver.state == SearchState.EXHAUSTED
        assert driver.solution == []
        assert solved == []
        assert len(driver.start_frontier.closed) == 13 * 13
        assert len(driver.end_frontier.closed) == 13 * 13

    def test_one_way_exhaustion_ignores_end_side(self, make_terrain, one_way_settings):
        """Test only the start frontier counts when searching one way."""
        driver = make_driver(make_terrain(bound=3, legal=False), one_way_settings)

        assert driver.solve((0, 0), (1, 0)) is None
        assert driver.state == SearchState.EXHAUSTED
        assert driver.end_frontier.open_count == 1
        assert len(driver.start_frontier.closed) == 7 * 7


class TestInvariants:
    """Tests for properties that hold for every run."""

    def test_closed_positions_are_unique(self, make_terrain, surface_settings):
        """Test every position is closed at most once per side."""
        driver = make_driver(make_terrain(bound=6, legal=False), surface_settings)
        closed = {"start": [], "end": []}
        driver.on_node_closed(lambda side, node: closed[side].append(node.position))

        driver.solve((0, 0), (3, 3))

        for side, frontier in (("start", driver.start_frontier), ("end", driver.end_frontier)):
            assert len(closed[side]) == len(set(closed[side]))
            assert set(closed[side]) == set(frontier.closed)

    def test_reset_is_equivalent_to_fresh(self, stub_terrain, one_way_settings):
        """Test a reset driver repeats a fresh driver's search exactly."""
        driver = make_driver(stub_terrain, one_way_settings)
        first = driver.solve((0, 0), (10, 3))

        driver.reset()

        assert driver.state == SearchState.IDLE
        assert not driver.is_solved
        assert len(driver.arena) == 0
        assert driver.start_frontier.open_count == 0
        assert driver.end_frontier.open_count == 0
        assert driver.steps == 0

        second = driver.solve((0, 0), (10, 3))
        fresh = make_driver(stub_terrain, one_way_settings)
        third = fresh.solve((0, 0), (10, 3))

        assert second.get_waypoints() == first.get_waypoints() == third.get_waypoints()
        assert second.total_cost == pytest.approx(third.total_cost)
        assert driver.steps == fresh.steps

    def test_solution_event_fires_once(self, meeting_driver):
        """Test the solution event fires once per run."""
        calls = []
        meeting_driver.on_solution(lambda driver: calls.append(driver.solution_kind))

        meeting_driver.solve((0, 0), (40, 0))
        meeting_driver.reset()
        meeting_driver.solve((0, 0), (40, 0))

        assert calls == [OutcomeKind.MEETING_POINT, OutcomeKind.MEETING_POINT]

    def test_structure_nodes_hold_grade(self, make_terrain, one_way_settings):
        """Test tunnel and bridge nodes never take the terrain height."""
        settings = one_way_settings.model_copy(
            update={"generate_tunnel_paths": True, "generate_bridge_paths": True}
        )
        terrain = make_terrain(height=2.0)
        for x in range(2, 7):
            terrain.heights[(x, 0)] = 30.0
        terrain.tunnels[(1, 0)] = [(1.0, (7, 0))]
        terrain.bridges[(1, 0)] = [(1.0, (4, 0))]
        driver = make_driver(terrain, settings)
        driver.begin((0, 0), (40, 0))
        for _ in range(6):
            driver.step()

        structures = [node for node in driver.arena if node.cost.is_structure]
        assert structures
        for node in structures:
            assert node.elevation == driver.arena.parent_of(node).elevation == 2.0


class TestBatching:
    """Tests for the cooperative generator."""

    def test_yields_every_batch(self, stub_terrain, one_way_settings):
        """Test the generator yields the step count after each batch."""
        driver = make_driver(stub_terrain, one_way_settings, batch_size=2)

        counts = list(driver.graph((0, 0), (10, 0)))

        assert counts
        assert all(count % 2 == 0 for count in counts)
        assert counts == sorted(counts)
        assert counts[-1] < driver.steps
        assert driver.is_solved

    def test_reset_ends_suspended_generator(self, stub_terrain, one_way_settings):
        """Test a generator paused across a reset finishes without stepping."""
        driver = make_driver(stub_terrain, one_way_settings, batch_size=3)
        run = driver.graph((0, 0), (1000, 0))
        assert next(run) == 3

        driver.reset()

        assert list(run) == []
        assert driver.state == SearchState.IDLE
        assert driver.steps == 0

    def test_old_generator_leaves_new_search_alone(self, stub_terrain, one_way_settings):
        """Test a generator from a reset run never steps the next search."""
        driver = make_driver(stub_terrain, one_way_settings, batch_size=3)
        old_run = driver.graph((0, 0), (1000, 0))
        next(old_run)
        driver.reset()
        new_run = driver.graph((0, 0), (1000, 0))
        assert next(new_run) == 3

        assert list(old_run) == []
        assert driver.state == SearchState.RUNNING
        assert driver.steps == 3

    def test_manual_stepping_matches_solve(self, stub_terrain, one_way_settings):
        """Test explicit steps reach the same solution as solve."""
        stepped = make_driver(stub_terrain, one_way_settings)
        stepped.begin((0, 0), (10, 0))
        result = StepResult.CONTINUE
        while result is StepResult.CONTINUE:
            result = stepped.step()

        solved = make_driver(stub_terrain, one_way_settings)
        route = solved.solve((0, 0), (10, 0))

        assert result == StepResult.SOLVED
        assert stepped.route().get_waypoints() == route.get_waypoints()

    def test_route_requires_solution(self, corridor_driver):
        """Test a route is only available after solving."""
        with pytest.raises(SearchStateError):
            corridor_driver.route()


class TestExplorationExport:
    """Tests for exporting the explored trees."""

    def test_exploration_graph(self, meeting_driver):
        """Test the explored trees form one directed forest per side."""
        meeting_driver.solve((0, 0), (40, 0))

        tree = meeting_driver.exploration_graph()

        assert isinstance(tree, nx.DiGraph)
        assert nx.is_directed_acyclic_graph(tree)
        assert tree.has_edge(("start", (0, 0)), ("start", (4, 0)))
        assert tree.has_edge(("end", (40, 0)), ("end", (36, 0)))
        assert tree.nodes[("start", (0, 0))]["head"]
        expected = len(meeting_driver.start_frontier.closed) + len(meeting_driver.end_frontier.closed)
        assert tree.number_of_nodes() == expected

    def test_export_to_geojson(self, meeting_driver):
        """Test the explored trees export as GeoJSON."""
        meeting_driver.solve((0, 0), (40, 0))
        tree = meeting_driver.exploration_graph()

        geojson = meeting_driver.export_to_geojson()

        assert geojson["type"] == "FeatureCollection"
        kinds = [feature["properties"]["type"] for feature in geojson["features"]]
        assert kinds.count("node") == tree.number_of_nodes()
        assert kinds.count("edge") == tree.number_of_edges()
        point = next(f for f in geojson["features"] if f["geometry"]["type"] == "Point")
        assert len(point["geometry"]["coordinates"]) == 3
