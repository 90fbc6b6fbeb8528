"""
parasketch - Split / Merge Collinear
====================================

Teilt ein Segment an einem Punkt und verteilt seine Constraints auf beide
Hälften; merge_collinear_at_point ist die Umkehrung.

Verwendung:
    from parasketch.operations import split, merge_collinear_at_point

    s1, s2 = split(scene, seg, 4.0, 0.0)
    merged = merge_collinear_at_point(scene, s1.p2)

Constraint-Verteilung beim Split:
    Horizontal / Vertical                 -> gleiche Art auf s1 und s2
    Tangent(seg, c), OnLine(pt, seg)      -> je eine Kopie für s1 und s2
    Parallel/Perpendicular/Angle/Equal    -> Kopien, Slot (A/B) bleibt erhalten
    Length, Midpoint                      -> entfallen
"""

import math
from typing import List, Optional, Tuple

from loguru import logger

from ..config.tolerances import Tolerances
from ..constraints import Constraint, ConstraintType
from ..dimensions import DimensionConstraint
from ..geometry import Point2D, Segment2D, project_on_line
from .base import (
    OperationResult, SketchOperation, regular_constraints_on, require_in_scene, retarget,
)

# Bedeutung überlebt die Teilung nicht
_DROPPED_ON_SPLIT = (ConstraintType.LENGTH, ConstraintType.MIDPOINT)

# Bedeutung überlebt das Zusammenführen nicht
_DROPPED_ON_MERGE = (ConstraintType.MIDPOINT,)


def clamp_param(t: float) -> float:
    return max(Tolerances.TRIM_PARAM_MIN, min(Tolerances.TRIM_PARAM_MAX, t))


def _relates_segment_to_itself(c: Constraint) -> bool:
    return hasattr(c, 'seg_a') and c.seg_a is c.seg_b


class SplitOperation(SketchOperation):
    """Teilt seg an der Projektion von (wx, wy) in s1 = (p1, mid) und s2 = (mid, p2)."""

    name = "Split"

    def execute(self, seg: Segment2D, wx: float, wy: float) -> OperationResult:
        require_in_scene(self.scene, seg)
        if seg.length < Tolerances.EPSILON_MATH:
            return self._finish(OperationResult.no_target("Segment hat Länge 0"))
        return self.run_atomic(lambda: self._split(seg, wx, wy))

    def _split(self, seg: Segment2D, wx: float, wy: float) -> OperationResult:
        scene = self.scene
        collected = regular_constraints_on(scene, seg)

        t, _, _ = project_on_line(wx, wy, seg.x1, seg.y1, seg.x2, seg.y2)
        mx, my = seg.point_at(clamp_param(t))
        mid = scene.add_point(mx, my, layer=seg.layer)

        style = dict(layer=seg.layer, color=seg.color, construction=seg.construction,
                     construction_type=seg.construction_type, construction_dash=seg.construction_dash)
        s1 = scene.add_segment_from_points(seg.p1, mid, **style)
        s2 = scene.add_segment_from_points(mid, seg.p2, **style)
        # Verwaiste Punkte erst nach dem Umhängen entfernen
        scene._detach_shape(seg, scene.segments)

        added = 0
        for c in collected:
            if c.type in _DROPPED_ON_SPLIT or _relates_segment_to_itself(c):
                continue
            for half in (s1, s2):
                scene.add_constraint(retarget(c, {id(seg): half}), solve=False)
                added += 1
        scene.clean_orphan_points()

        result = scene.solve()
        logger.debug(f"[Split] Segment {seg.id} bei t={clamp_param(t):.3f}: "
                     f"{added} Constraints dupliziert, converged={result.converged}")
        return OperationResult.ok("Segment geteilt", (s1, s2))


class MergeCollinearOperation(SketchOperation):
    """
    Führt zwei an pt zusammentreffende, kollineare Segmente zu einem zusammen.

    Nur wenn genau zwei Shapes pt verwenden (beide Segmente), |cross| < 0.01
    und pt selbst von keinem Constraint direkt referenziert wird.
    """

    name = "MergeCollinear"

    def _candidates(self, pt: Point2D) -> Optional[Tuple[Segment2D, Segment2D, Point2D, Point2D]]:
        shapes = self.scene.shapes_using_point(pt)
        if len(shapes) != 2 or not all(isinstance(s, Segment2D) for s in shapes):
            return None
        seg_a, seg_b = shapes
        if seg_a.p1 is seg_a.p2 or seg_b.p1 is seg_b.p2:
            return None
        outer_a, outer_b = seg_a.other_point(pt), seg_b.other_point(pt)
        if outer_a is outer_b:
            return None

        da = (pt.x - outer_a.x, pt.y - outer_a.y)
        db = (outer_b.x - pt.x, outer_b.y - pt.y)
        len_a, len_b = math.hypot(*da), math.hypot(*db)
        if len_a < Tolerances.EPSILON_MATH or len_b < Tolerances.EPSILON_MATH:
            return None
        cross = (da[0] * db[1] - da[1] * db[0]) / (len_a * len_b)
        dot = (da[0] * db[0] + da[1] * db[1]) / (len_a * len_b)
        if abs(cross) >= Tolerances.COLLINEAR_CROSS or dot <= 0:
            return None
        return seg_a, seg_b, outer_a, outer_b

    def _pinned(self, pt: Point2D) -> bool:
        """pt wird von einem Constraint oder einer Bemaßung direkt verwendet"""
        for c in self.scene.constraints:
            if isinstance(c, DimensionConstraint):
                continue
            if c.references(pt):
                return True
        return any(dim.source_a is pt or dim.source_b is pt for dim in self.scene.dimensions)

    def can_execute(self, pt: Point2D) -> bool:
        return self._candidates(pt) is not None and not self._pinned(pt)

    def execute(self, pt: Point2D) -> OperationResult:
        require_in_scene(self.scene, pt)
        candidates = self._candidates(pt)
        if candidates is None:
            return self._finish(OperationResult.no_target("Keine zwei kollinearen Segmente an diesem Punkt"))
        if self._pinned(pt):
            return self._finish(OperationResult.no_target("Punkt ist durch Constraints gebunden"))
        return self.run_atomic(lambda: self._merge(pt, *candidates))

    def _merge(self, pt: Point2D, seg_a: Segment2D, seg_b: Segment2D,
               outer_a: Point2D, outer_b: Point2D) -> OperationResult:
        scene = self.scene
        collected: List[Constraint] = []
        for c in regular_constraints_on(scene, seg_a) + regular_constraints_on(scene, seg_b):
            if not any(c is seen for seen in collected):
                collected.append(c)

        merged = scene.add_segment_from_points(
            outer_a, outer_b, layer=seg_a.layer, color=seg_a.color, construction=seg_a.construction,
            construction_type=seg_a.construction_type, construction_dash=seg_a.construction_dash)
        scene._detach_shape(seg_a, scene.segments)
        scene._detach_shape(seg_b, scene.segments)

        signatures = {c.signature() for c in scene.constraints}
        added = 0
        for c in collected:
            if c.type in _DROPPED_ON_MERGE:
                continue
            moved = retarget(c, {id(seg_a): merged, id(seg_b): merged})
            if _relates_segment_to_itself(moved) or moved.signature() in signatures:
                continue
            signatures.add(moved.signature())
            scene.add_constraint(moved, solve=False)
            added += 1
        scene.clean_orphan_points()

        scene.solve()
        logger.debug(f"[Merge] Segmente {seg_a.id}+{seg_b.id} -> {merged.id}, {added} Constraints übernommen")
        return OperationResult.ok("Segmente zusammengeführt", merged)


def split(scene, seg: Segment2D, wx: float, wy: float) -> Optional[Tuple[Segment2D, Segment2D]]:
    """(s1, s2) oder None, wenn nicht geteilt wurde."""
    result = SplitOperation(scene).execute(seg, wx, wy)
    return result.data if result.success else None


def merge_collinear_at_point(scene, pt: Point2D) -> Optional[Segment2D]:
    """Zusammengeführtes Segment oder None (Szene unverändert)."""
    result = MergeCollinearOperation(scene).execute(pt)
    return result.data if result.success else None
