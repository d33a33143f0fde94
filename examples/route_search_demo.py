"""
Demo script for terrain-aware route search.

This example demonstrates the complete search pipeline:
1. Create a synthetic height map with a ridge and a river
2. Search a surface-only route around the obstacles
3. Search again with tunnels and bridges enabled
4. Step a search cooperatively and inspect its exploration graph
"""

import logging

import numpy as np

from terrapath.core.logging_config import LogContext, setup_logging
from terrapath.core.routing import SearchState, create_terrain_pathfinder
from terrapath.core.terrain import HeightMap, TerrainRules
from terrapath.models.settings import PathfinderSettings
from terrapath.utils.logging import PerformanceTimer, log_with_context

START = (40.0, 200.0)
END = (460.0, 200.0)


def build_height_map() -> HeightMap:
    """500m x 400m site with a ridge in the west and a river with a ford in the east."""
    rows, cols = 400, 500
    elevation = np.full((rows, cols), 100.0)

    # Ridge running north-south, open to the north
    elevation[60:, 150:170] = 220.0

    # Gentle slope down towards the river
    elevation[:, 300:] -= np.linspace(0.0, 5.0, cols - 300)

    water = np.zeros((rows, cols), dtype=bool)
    # River running north-south, dry ford along the northern edge
    water[120:, 330:345] = True

    return HeightMap.from_bounds(elevation, (0, 0, cols, rows), water_mask=water)


def print_route(route) -> None:
    data = route.to_dict()
    print(f"   - Nodes: {data['num_nodes']}")
    print(f"   - Total cost: {data['total_cost']:.1f}")
    print(f"   - Length: {data['total_length']:.1f}m")
    print(f"   - Tunnel length: {data['tunnel_length']:.1f}m")
    print(f"   - Bridge length: {data['bridge_length']:.1f}m")
    print(f"   - Max grade: {data['max_grade']:.2f}%")
    print(f"   - Meeting point: {data['metadata']['meeting_point']}")


def main():
    """Run route search demo."""
    setup_logging(log_level="WARNING")

    print("=" * 60)
    print("Terrain Route Search Demo")
    print("=" * 60)

    # 1. Terrain
    print("\n1. Creating terrain data...")
    height_map = build_height_map()
    print(f"   - {height_map!r}")
    print(f"   - Bounds: {height_map.bounds}")

    # 2. Surface-only search
    print("\n2. Searching a surface route...")
    surface_settings = PathfinderSettings(
        generate_tunnel_paths=False,
        generate_bridge_paths=False,
        max_slope=[8.0],
        max_curvature=[60.0],
    )
    pathfinder = create_terrain_pathfinder(
        TerrainRules(height_map, surface_settings), surface_settings
    )

    with PerformanceTimer("surface search", log_level=logging.WARNING) as timer:
        route = pathfinder.solve(START, END)

    print(f"   - State: {pathfinder.state.value} after {pathfinder.steps} steps")
    print(f"   - Time: {timer.duration_ms:.0f}ms")
    if route is not None:
        print_route(route)

    # 3. Search with structures
    print("\n3. Searching with tunnels and bridges...")
    structure_settings = surface_settings.model_copy(
        update={"generate_tunnel_paths": True, "generate_bridge_paths": True}
    )
    pathfinder = create_terrain_pathfinder(
        TerrainRules(height_map, structure_settings), structure_settings
    )

    route = pathfinder.solve(START, END)
    print(f"   - State: {pathfinder.state.value} after {pathfinder.steps} steps")
    if route is not None:
        print_route(route)

        data = route.to_dict()
        log_with_context(
            logging.WARNING,
            "Route found",
            search_id=data["metadata"]["search_id"],
            steps=data["metadata"]["steps"],
        )

    # 4. Cooperative stepping
    print("\n4. Stepping a search in batches...")
    pathfinder.reset()
    closed = {"start": 0, "end": 0}
    pathfinder.on_node_closed(lambda side, node: closed.__setitem__(side, closed[side] + 1))

    with LogContext(direction="both"):
        for steps in pathfinder.graph(START, END):
            if steps >= 4 * pathfinder.batch_size:
                pathfinder.stop_graph()

    print(f"   - State: {pathfinder.state.value} after {pathfinder.steps} steps")
    print(f"   - Closed nodes: start={closed['start']}, end={closed['end']}")

    exploration = pathfinder.exploration_graph()
    print(f"   - Explored nodes: {exploration.number_of_nodes()}")
    print(f"   - Explored edges: {exploration.number_of_edges()}")

    geojson = pathfinder.export_to_geojson()
    print(f"   - GeoJSON features: {len(geojson['features'])}")

    # 5. Checks
    print("\n5. Checks:")
    print("-" * 60)

    checks = {
        "Structures route found": route is not None,
        "Cooperative search stopped": pathfinder.state in (SearchState.STOPPED, SearchState.SOLVED),
        "Exploration exported": len(geojson["features"]) > 0,
    }

    for check, passed in checks.items():
        status = "✓ PASS" if passed else "✗ FAIL"
        print(f"   {status}: {check}")

    print("\n" + "=" * 60)
    print("Demo Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
