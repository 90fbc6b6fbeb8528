import pytest

from parasketch.constraints import (
    ConstraintType, make_coincident, make_distance, make_fixed, make_horizontal, make_length,
    make_midpoint, make_parallel, make_point_on_line, make_tangent,
)
from parasketch.errors import EditOperationError, PrimitiveNotInSceneError
from parasketch.geometry import Segment2D
from parasketch.operations import (
    MergeCollinearOperation, MovePointOperation, OperationResult, ResultStatus, SketchOperation,
    SplitOperation, TrimOperation, disconnect, merge_collinear_at_point, move_point, move_shape,
    split, trim, union,
)

from conftest import assert_no_orphans

TOL = 1e-6


def _of_type(scene, ctype):
    return [c for c in scene.constraints if c.type is ctype]


class TestDisconnectUnion:

    def test_disconnect_then_union_restores_topology(self, l_shape):
        scene, a, b = l_shape
        corner = a.p2
        coords = [(p.x, p.y) for p in scene.points]

        new_points = disconnect(scene, corner)
        assert len(new_points) == 1
        assert a.p2 is corner
        assert b.p1 is new_points[0]
        assert len(scene.points) == 4

        assert union(scene, corner, new_points[0]) is corner
        assert b.p1 is corner
        assert [(p.x, p.y) for p in scene.points] == coords
        assert_no_orphans(scene)

    def test_disconnect_single_shape_is_noop(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        events = []
        scene.subscribe(events.append)
        assert disconnect(scene, seg.p1) == []
        assert len(scene.points) == 2
        assert events == []

    def test_disconnect_drops_coincident(self, l_shape):
        scene, a, b = l_shape
        other = scene.add_segment(10, 0.5, 20, 0.5, merge=False)
        scene.add_constraint(make_coincident(a.p2, other.p1))
        disconnect(scene, a.p2)
        assert _of_type(scene, ConstraintType.COINCIDENT) == []
        assert_no_orphans(scene)

    def test_union_of_free_points_meets_in_the_middle(self, scene):
        a = scene.add_segment(-5, 0, 0, 0)
        b = scene.add_segment(2, 2, 5, 5)
        kept = union(scene, a.p2, b.p1)
        assert (kept.x, kept.y) == (1.0, 1.0)
        assert b.p1 is kept
        assert len(scene.points) == 3

    def test_union_adopts_fixed_point(self, scene):
        a = scene.add_segment(-5, 0, 0, 0)
        b = scene.add_segment(2, 2, 5, 5)
        b.p1.fixed = True
        kept = union(scene, a.p2, b.p1)
        assert (kept.x, kept.y) == (2.0, 2.0)
        assert kept.fixed

    def test_union_rewires_constraints_and_dimension_sources(self, scene):
        a = scene.add_segment(-5, 0, 0, 0)
        b = scene.add_segment(0.5, 0, 5, 0, merge=False)
        scene.add_constraint(make_coincident(a.p2, b.p1))
        far = scene.add_point(0.5, 8)
        dim = scene.add_dimension(b.p1, far)
        old = b.p1

        union(scene, a.p2, old)
        assert dim.source_a is a.p2
        assert _of_type(scene, ConstraintType.COINCIDENT) == []
        assert not any(p is old for p in scene.points)
        assert_no_orphans(scene)

    def test_union_removes_collapsed_segment(self, scene):
        seg = scene.add_segment(0, 0, 1, 0)
        scene.add_constraint(make_horizontal(seg))
        union(scene, seg.p1, seg.p2)
        assert scene.segments == []
        assert scene.constraints == []

    def test_union_with_itself_is_noop(self, scene):
        seg = scene.add_segment(0, 0, 1, 0)
        assert union(scene, seg.p1, seg.p1) is None
        assert len(scene.segments) == 1


class TestSplit:

    def test_split_keeps_horizontal_on_both_halves(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_horizontal(seg))
        s1, s2 = split(scene, seg, 4, 0)

        assert (s1.x1, s1.y1, s1.x2, s1.y2) == pytest.approx((0, 0, 4, 0))
        assert (s2.x1, s2.y1, s2.x2, s2.y2) == pytest.approx((4, 0, 10, 0))
        assert s1.p2 is s2.p1
        horizontals = _of_type(scene, ConstraintType.HORIZONTAL)
        assert [c.seg for c in horizontals] == [s1, s2]

        mid = s1.p2
        assert move_point(scene, mid, 4, 3)
        assert len(scene.segments) == 2
        assert abs(s1.dy) < 1e-5
        assert abs(s2.dy) < 1e-5
        assert s1.p1.y == pytest.approx(mid.y, abs=1e-5)

    def test_split_constraint_table(self, scene):
        a = scene.add_segment(0, 0, 10, 0)
        b = scene.add_segment(0, 5, 10, 5)
        circle = scene.add_circle(5, -3, 3)
        on_line = scene.add_point(7, 0)
        centre = scene.add_point(5, 0)
        scene.add_constraint(make_parallel(a, b), solve=False)
        scene.add_constraint(make_length(a, 10), solve=False)
        scene.add_constraint(make_midpoint(centre, a), solve=False)
        scene.add_constraint(make_point_on_line(on_line, a), solve=False)
        scene.add_constraint(make_tangent(a, circle), solve=False)
        dim = scene.add_dimension(a, is_constraint=True)

        s1, s2 = split(scene, a, 3, 1)

        assert _of_type(scene, ConstraintType.LENGTH) == []
        assert _of_type(scene, ConstraintType.MIDPOINT) == []
        parallels = _of_type(scene, ConstraintType.PARALLEL)
        assert [(c.seg_a, c.seg_b) for c in parallels] == [(s1, b), (s2, b)]
        assert [c.seg for c in _of_type(scene, ConstraintType.POINT_ON_LINE)] == [s1, s2]
        assert [c.seg for c in _of_type(scene, ConstraintType.TANGENT)] == [s1, s2]
        assert on_line in scene.points
        assert not any(p is centre for p in scene.points)

        # Bemaßung auf dem alten Segment wird passiv
        assert dim.source_a is None
        assert not dim.is_constraint
        assert _of_type(scene, ConstraintType.DIMENSION) == []

        assert scene.last_solve_result.converged
        assert s1.p2.x == pytest.approx(3.0)
        assert_no_orphans(scene)

    def test_split_parameter_is_clamped(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        s1, s2 = split(scene, seg, -50, 0)
        assert s1.x2 == pytest.approx(0.1)
        assert s2.length == pytest.approx(9.9)

    def test_split_preserves_style(self, scene):
        seg = scene.add_segment(0, 0, 10, 0, layer="konstr", color="#ff0000", construction=True)
        s1, s2 = split(scene, seg, 5, 0)
        for half in (s1, s2):
            assert (half.layer, half.color, half.construction) == ("konstr", "#ff0000", True)

    def test_foreign_segment_raises(self, scene):
        other = Segment2D(scene.add_point(0, 0), scene.add_point(1, 0))
        with pytest.raises(PrimitiveNotInSceneError):
            split(scene, other, 0.5, 0)


class TestMergeCollinear:

    def test_merge_inverts_split(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_horizontal(seg))
        s1, s2 = split(scene, seg, 4, 0)

        merged = merge_collinear_at_point(scene, s1.p2)
        assert merged is not None
        assert scene.segments == [merged]
        assert (merged.x1, merged.y1, merged.x2, merged.y2) == pytest.approx((0, 0, 10, 0))
        assert len(scene.points) == 2
        horizontals = _of_type(scene, ConstraintType.HORIZONTAL)
        assert len(horizontals) == 1
        assert horizontals[0].seg is merged
        assert_no_orphans(scene)

    def test_merge_drops_self_relations_and_carries_length(self, scene):
        a = scene.add_segment(0, 0, 4, 0)
        b = scene.add_segment(4, 0, 10, 0)
        scene.add_constraint(make_parallel(a, b), solve=False)
        scene.add_constraint(make_length(a, 4), solve=False)

        merged = merge_collinear_at_point(scene, a.p2)
        assert _of_type(scene, ConstraintType.PARALLEL) == []
        lengths = _of_type(scene, ConstraintType.LENGTH)
        assert [c.seg for c in lengths] == [merged]

    def test_corner_is_not_merged(self, l_shape):
        scene, a, b = l_shape
        assert merge_collinear_at_point(scene, a.p2) is None
        assert len(scene.segments) == 2
        assert MergeCollinearOperation(scene).execute(a.p2).status is ResultStatus.NO_TARGET

    def test_reversed_direction_is_not_merged(self, scene):
        a = scene.add_segment(0, 0, 10, 0)
        b = scene.add_segment(10, 0, 5, 0.0)
        assert merge_collinear_at_point(scene, a.p2) is None

    def test_pinned_point_is_not_merged(self, scene):
        a = scene.add_segment(0, 0, 4, 0)
        scene.add_segment(4, 0, 10, 0)
        scene.add_constraint(make_fixed(a.p2))
        assert not MergeCollinearOperation(scene).can_execute(a.p2)
        assert merge_collinear_at_point(scene, a.p2) is None
        assert len(scene.segments) == 2


class TestTrim:

    def test_trim_moves_far_endpoint(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        kept = trim(scene, seg, 6, 1, 1, 0)
        assert kept is seg
        assert (seg.x1, seg.x2) == pytest.approx((0.0, 6.0))
        assert seg.y2 == pytest.approx(0.0)

    def test_trim_merges_at_moved_endpoint(self, scene):
        a = scene.add_segment(0, 0, 5, 0)
        scene.add_segment(5, 0, 10, 0)
        merged = trim(scene, a, 3, 0, 1, 0)
        assert merged is not a
        assert scene.segments == [merged]
        assert merged.length == pytest.approx(10.0)

    def test_trim_fixed_endpoint_rolls_back(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p2.fixed = True
        events = []
        scene.subscribe(events.append)

        op = TrimOperation(scene)
        result = op.execute(seg, 6, 0, 1, 0)
        assert result.is_error
        assert op.last_result is result
        assert (seg.x2, seg.y2) == (10.0, 0.0)
        assert events == []
        assert trim(scene, seg, 6, 0, 1, 0) is seg


class TestMove:

    def test_move_point_solves(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_length(seg, 10))
        assert move_point(scene, seg.p2, 20, 0)
        assert seg.length == pytest.approx(10.0, abs=TOL)

    def test_move_fixed_point_is_rejected(self, scene):
        p = scene.add_point(1, 1, fixed=True)
        assert move_point(scene, p, 5, 5) is False
        assert (p.x, p.y) == (1.0, 1.0)

    def test_move_shape_skips_fixed_points(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p1.fixed = True
        assert move_shape(scene, seg, 2, 3)
        assert (seg.x1, seg.y1) == (0.0, 0.0)
        assert (seg.x2, seg.y2) == (12.0, 3.0)

    def test_move_text(self, scene):
        text = scene.add_text(1, 1, "Hallo")
        move_shape(scene, text, 2, -1)
        assert (text.x, text.y) == (3.0, 0.0)

    def test_move_into_contradiction_keeps_change_as_warning(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_distance(a, b, 5), solve=False)
        scene.add_constraint(make_distance(a, b, 10), solve=False)

        result = MovePointOperation(scene).execute(a, 1, 1)
        assert result.status is ResultStatus.WARNING
        assert result.success
        assert result.solve is scene.last_solve_result
        assert not result.solve.converged
        assert "nicht konvergiert" in result.message
        assert move_point(scene, a, 2, 2)

    def test_converged_move_carries_solver_result(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_length(seg, 10))
        result = MovePointOperation(scene).execute(seg.p2, 0, 20)
        assert result.status is ResultStatus.SUCCESS
        assert result.solve.converged
        assert result.data is seg.p2


class _ExplodingOperation(SketchOperation):
    name = "Explode"

    def __init__(self, scene, error):
        super().__init__(scene)
        self.error = error

    def execute(self, seg):
        def body():
            seg.p1.move_to(99, 99)
            self.scene.remove_segment(seg)
            raise self.error
        return self.run_atomic(body)


class TestAtomicity:

    def test_edit_error_rolls_back_and_reports(self, l_shape):
        scene, a, b = l_shape
        result = _ExplodingOperation(scene, EditOperationError("nein")).execute(a)
        assert result.status is ResultStatus.ERROR
        assert result.message == "nein"
        assert scene.segments == [a, b]
        assert (a.x1, a.y1) == (0.0, 0.0)
        assert_no_orphans(scene)

    def test_unexpected_error_propagates_after_rollback(self, l_shape):
        scene, a, b = l_shape
        with pytest.raises(ZeroDivisionError):
            _ExplodingOperation(scene, ZeroDivisionError()).execute(a)
        assert scene.segments == [a, b]
        assert (a.x1, a.y1) == (0.0, 0.0)

    def test_operation_emits_single_change(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_horizontal(seg))
        events = []
        scene.subscribe(events.append)
        split(scene, seg, 5, 0)
        assert events == ["change"]

    def test_split_result_object(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        result = SplitOperation(scene).execute(seg, 5, 0)
        assert isinstance(result, OperationResult)
        assert result.success
        assert len(result.data) == 2
