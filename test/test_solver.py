import math

import numpy as np
import pytest

from parasketch.config.feature_flags import set_flag
from parasketch.constraints import (
    make_distance, make_fixed, make_horizontal, make_parallel, make_tangent,
)
from parasketch.solver import ConstraintSolver, SolverStatus, constraint_residuals, solve

TOL = 1e-6


def _coords(scene):
    return [(p.x, p.y) for p in scene.points]


class TestScenarios:

    def test_horizontal_then_distance(self, scene):
        seg = scene.add_segment(0, 0, 3, 4)
        scene.add_constraint(make_horizontal(seg))
        assert seg.y1 == pytest.approx(2.0)
        assert seg.y2 == pytest.approx(2.0)
        assert seg.length == pytest.approx(3.0)

        scene.add_constraint(make_distance(seg.p1, seg.p2, 5))
        assert scene.last_solve_result.converged
        # Halber Fehler je Seite entlang x, Mittelpunkt bleibt
        assert (seg.x1, seg.y1) == pytest.approx((-1.0, 2.0))
        assert (seg.x2, seg.y2) == pytest.approx((4.0, 2.0))
        assert seg.midpoint == pytest.approx((1.5, 2.0))

    def test_parallel_with_fixed_reference(self, scene):
        a = scene.add_segment(0, 0, 1, 0)
        b = scene.add_segment(0, 2, 1, 3)
        scene.add_constraint(make_fixed(a.p1), solve=False)
        scene.add_constraint(make_fixed(a.p2), solve=False)
        scene.add_constraint(make_parallel(a, b))

        ux, uy = b.direction()
        assert (ux, uy) == pytest.approx((1.0, 0.0), abs=TOL)
        assert b.midpoint == pytest.approx((0.5, 2.5))
        assert (a.x1, a.y1, a.x2, a.y2) == (0.0, 0.0, 1.0, 0.0)

    def test_tangent_picks_closer_side(self, scene):
        seg = scene.add_segment(-5, 1, 5, 1)
        circle = scene.add_circle(0, 0, 0.5)
        scene.add_constraint(make_tangent(seg, circle))
        assert seg.y1 == pytest.approx(0.5)
        assert seg.y2 == pytest.approx(0.5)


class TestSolverProperties:

    def test_empty_scene_converges_immediately(self, scene):
        scene.add_segment(0, 0, 3, 4)
        before = _coords(scene)
        result = scene.solve()
        assert result.converged
        assert result.iterations == 0
        assert result.status is SolverStatus.NO_CONSTRAINTS
        assert _coords(scene) == before

    def test_converged_residuals_within_tolerance(self, scene):
        seg = scene.add_segment(0, 0, 3, 4)
        scene.add_constraint(make_horizontal(seg), solve=False)
        scene.add_constraint(make_distance(seg.p1, seg.p2, 5), solve=False)
        result = scene.solve()
        assert result.converged
        assert np.all(constraint_residuals(scene.constraints) <= TOL)
        assert result.max_error <= TOL

    def test_solve_is_idempotent(self, scene):
        seg = scene.add_segment(0, 0, 3, 4)
        scene.add_constraint(make_horizontal(seg), solve=False)
        scene.add_constraint(make_distance(seg.p1, seg.p2, 5))
        first = _coords(scene)
        residuals = constraint_residuals(scene.constraints)
        scene.solve()
        assert _coords(scene) == first
        assert np.array_equal(constraint_residuals(scene.constraints), residuals)

    def test_contradiction_reports_non_convergence(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_distance(a, b, 5), solve=False)
        scene.add_constraint(make_distance(a, b, 10), solve=False)
        result = scene.solve()
        assert not result.converged
        assert not result.success
        assert result.iterations == 200
        assert result.status is SolverStatus.MAX_ITERATIONS
        assert result.max_error > TOL
        assert scene.last_solve_result is result

    def test_iteration_cap_and_tolerance_overrides(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_distance(a, b, 5), solve=False)
        scene.add_constraint(make_distance(a, b, 10), solve=False)
        assert scene.solve(max_iterations=7).iterations == 7
        assert scene.solve(tolerance=10.0).converged

    def test_constraints_apply_in_list_order(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_distance(a, b, 5), solve=False)
        scene.add_constraint(make_distance(a, b, 10), solve=False)
        scene.solve(max_iterations=1)
        # Der letzte Constraint gewinnt innerhalb einer Iteration
        assert a.distance_to_point(b) == pytest.approx(10.0)


class TestProgressCallback:

    def _contradiction(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_distance(a, b, 5), solve=False)
        scene.add_constraint(make_distance(a, b, 10), solve=False)

    def test_callback_every_interval(self, scene):
        calls = []
        scene.solver.progress_callback = lambda it, err: calls.append((it, err))
        self._contradiction(scene)
        scene.solve()
        assert len(calls) == 20
        assert calls[0][0] == 10

    def test_callback_disabled_by_flag(self, scene):
        set_flag("solver_progress_callbacks", False)
        calls = []
        scene.solver.progress_callback = lambda it, err: calls.append(it)
        self._contradiction(scene)
        scene.solve()
        assert calls == []


def test_module_level_solve_on_plain_list(scene):
    a = scene.add_point(0, 0)
    b = scene.add_point(0, 2)
    c = make_distance(a, b, 4)
    result = solve([c])
    assert result.converged
    assert a.distance_to_point(b) == pytest.approx(4.0)
    assert ConstraintSolver().max_iterations == 200
    assert math.isclose(ConstraintSolver().tolerance, 1e-6)
