"""
Placement simulation core: occupancy grid, shape transform, validator,
registry and the step-driven engine.

Import submodules directly, e.g.
    from truckpacker.simulator.placement_engine import PlacementEngine
"""
