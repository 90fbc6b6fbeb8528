import json
import math

import numpy as np
import pytest

from parasketch.constraints import (
    ConstraintType, make_coincident, make_distance, make_fixed, make_horizontal,
    make_length, make_parallel, make_point_on_circle, make_radius, make_tangent,
)
from parasketch.dimensions import DimensionConstraint, DisplayMode
from parasketch.scene import Scene
from parasketch.solver import constraint_residuals


@pytest.fixture
def rich_scene(scene):
    scene.set_variable("w", 20)
    scene.set_variable("h", "w / 2")
    base = scene.add_segment(0, 0, 20, 0, layer="kontur", color="#00ff00")
    side = scene.add_segment(20, 0, 20, 10)
    top = scene.add_segment(0, 12, 18, 12, merge=False)
    circle = scene.add_circle(10, 5, 2)
    scene.add_arc(30, 0, 4, 0.0, math.pi / 2)
    scene.add_text(1, -3, "Deckel", height=2.5)
    loose = scene.add_point(25, 25)

    scene.add_constraint(make_fixed(base.p1), solve=False)
    scene.add_constraint(make_horizontal(base), solve=False)
    scene.add_constraint(make_length(base, "w"), solve=False)
    scene.add_dimension(side, is_constraint=True, formula="h")
    scene.add_constraint(make_parallel(base, top), solve=False)
    scene.add_constraint(make_radius(circle, 3), solve=False)
    scene.add_constraint(make_point_on_circle(loose, circle), solve=False)
    scene.add_constraint(make_tangent(top, circle), solve=False)
    scene.add_dimension(base, top, variable_name="gap", display_mode=DisplayMode.BOTH)
    scene.solve()
    return scene


class TestRoundTrip:

    def test_dict_round_trip_is_stable(self, rich_scene):
        data = rich_scene.to_dict()
        restored = Scene.from_dict(data)
        assert restored.to_dict() == data

    def test_json_round_trip(self, rich_scene):
        text = rich_scene.to_json()
        restored = Scene.from_json(text)
        assert json.loads(restored.to_json()) == json.loads(text)

    def test_constraint_order_and_residuals_survive(self, rich_scene):
        restored = Scene.from_dict(rich_scene.to_dict())
        assert [c.type for c in restored.constraints] == [c.type for c in rich_scene.constraints]
        assert np.allclose(constraint_residuals(restored.constraints),
                           constraint_residuals(rich_scene.constraints))

    def test_active_dimension_keeps_solver_position(self, rich_scene):
        data = rich_scene.to_dict()
        active = [d for d in data['dimensions'] if d['isConstraint']]
        assert [d['order'] for d in active] == [3]
        assert all(c['type'] != 'dimension' for c in data['constraints'])

        restored = Scene.from_dict(data)
        assert isinstance(restored.constraints[3], DimensionConstraint)
        assert restored.constraints[3].dimension.formula == "h"

    def test_references_are_shared_objects(self, rich_scene):
        restored = Scene.from_dict(rich_scene.to_dict())
        base, side = restored.segments[0], restored.segments[1]
        assert base.p2 is side.p1
        fixed = [c for c in restored.constraints if c.type is ConstraintType.FIXED]
        assert fixed[0].pt is base.p1
        assert base.p1.fixed

    def test_variables_restored(self, rich_scene):
        restored = Scene.from_dict(rich_scene.to_dict())
        assert restored.variables.get("h") == "w / 2"
        assert restored.resolve_value("h") == pytest.approx(10.0)
        assert restored.resolve_value("gap") == pytest.approx(rich_scene.resolve_value("gap"))


class TestLoading:

    def test_counters_continue_after_max_id(self, rich_scene):
        restored = Scene.from_dict(rich_scene.to_dict())
        highest = max(p.id for p in restored.all_primitives())
        highest_constraint = max(c.id for c in restored.constraints
                                 if not isinstance(c, DimensionConstraint))
        assert restored.add_point(0, 0).id == highest + 1
        c = restored.add_constraint(make_distance(restored.points[0], restored.points[1], 3),
                                    solve=False)
        assert c.id == highest_constraint + 1

    def test_segment_with_missing_point_is_skipped(self):
        data = {
            'points': [{'id': 1, 'x': 0, 'y': 0}, {'id': 2, 'x': 5, 'y': 0}],
            'segments': [{'id': 3, 'p1': 1, 'p2': 2}, {'id': 4, 'p1': 1, 'p2': 99}],
            'constraints': [{'id': 1, 'type': 'horizontal', 'seg': 4},
                            {'id': 2, 'type': 'length', 'seg': 3, 'value': 7}],
        }
        scene = Scene.from_dict(data)
        assert [s.id for s in scene.segments] == [3]
        assert [c.type for c in scene.constraints] == [ConstraintType.LENGTH]
        assert scene.solve().converged
        assert scene.segments[0].length == pytest.approx(7.0, abs=1e-6)

    def test_load_replaces_content_and_emits_once(self, rich_scene):
        data = rich_scene.to_dict()
        target = Scene("ziel")
        target.add_segment(-1, -1, -2, -2)
        events = []
        target.subscribe(events.append)
        target.load_dict(data)
        assert events == ["change"]
        assert len(target.segments) == 3
        assert target.to_dict() == data

    def test_coincident_survives(self, scene):
        a = scene.add_segment(0, 0, 5, 0)
        b = scene.add_segment(5.2, 0, 9, 3, merge=False)
        scene.add_constraint(make_coincident(a.p2, b.p1))
        restored = Scene.from_dict(scene.to_dict())
        c = restored.constraints[0]
        assert c.type is ConstraintType.COINCIDENT
        assert c.pt_a is restored.segments[0].p2
        assert c.pt_b is restored.segments[1].p1


def test_removing_loaded_fixed_releases_point(scene):
    p = scene.add_point(2, 3)
    scene.add_constraint(make_fixed(p))
    restored = Scene.from_dict(scene.to_dict())
    restored.remove_constraint(restored.constraints[0])
    assert not restored.points[0].fixed
