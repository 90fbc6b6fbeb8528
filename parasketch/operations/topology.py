"""
parasketch - Disconnect / Union
===============================

Trennen und Verbinden geteilter Punkte.

Verwendung:
    from parasketch.operations import disconnect, union

    new_points = disconnect(scene, corner)   # jedes weitere Shape bekommt eigenen Punkt
    union(scene, corner, new_points[0])      # wieder zusammenführen
"""

from typing import List, Optional

from loguru import logger

from ..constraints import ConstraintType
from ..geometry import Point2D
from .base import OperationResult, SketchOperation, require_in_scene, rewire_point


class DisconnectOperation(SketchOperation):
    """
    Löst einen von N > 1 Shapes geteilten Punkt: das erste Shape behält ihn,
    jedes weitere bekommt einen neuen Punkt an derselben Position.
    Coincident-Constraints auf dem Punkt entfallen.
    """

    name = "Disconnect"

    def can_execute(self, pt: Point2D) -> bool:
        return len(self.scene.shapes_using_point(pt)) > 1

    def execute(self, pt: Point2D) -> OperationResult:
        require_in_scene(self.scene, pt)
        if not self.can_execute(pt):
            return self._finish(OperationResult.no_target("Punkt wird von höchstens einem Shape verwendet"))
        return self.run_atomic(lambda: self._disconnect(pt))

    def _disconnect(self, pt: Point2D) -> OperationResult:
        scene = self.scene
        shapes = scene.shapes_using_point(pt)
        new_points: List[Point2D] = []
        for shape in shapes[1:]:
            new_pt = scene.add_point(pt.x, pt.y, layer=pt.layer, color=pt.color)
            rewire_point(shape, pt, new_pt)
            new_points.append(new_pt)

        dropped = scene._drop_constraints(
            lambda c: c.type is ConstraintType.COINCIDENT and c.references(pt))
        scene.clean_orphan_points()
        logger.debug(f"[Disconnect] Punkt {pt.id}: {len(new_points)} neue Punkte, "
                     f"{len(dropped)} Coincident entfernt")
        return OperationResult.ok(f"{len(new_points)} Shapes getrennt", new_points)


class UnionOperation(SketchOperation):
    """
    Führt pt_b in pt_a zusammen.

    - Beide frei: pt_a wandert auf die Mitte
    - pt_b fest: pt_a übernimmt Position und fixed
    Alle Shapes, Constraints und Bemaßungsquellen auf pt_b zeigen danach auf pt_a.
    """

    name = "Union"

    def execute(self, pt_a: Point2D, pt_b: Point2D) -> OperationResult:
        require_in_scene(self.scene, pt_a, pt_b)
        if pt_a is pt_b:
            return self._finish(OperationResult.no_target("Punkte sind identisch"))
        return self.run_atomic(lambda: self._union(pt_a, pt_b))

    def _union(self, pt_a: Point2D, pt_b: Point2D) -> OperationResult:
        scene = self.scene
        if pt_b.fixed and not pt_a.fixed:
            pt_a.move_to(pt_b.x, pt_b.y)
            pt_a.fixed = True
        elif not pt_a.fixed and not pt_b.fixed:
            pt_a.move_to((pt_a.x + pt_b.x) / 2, (pt_a.y + pt_b.y) / 2)

        for shape in scene.shapes_using_point(pt_b):
            rewire_point(shape, pt_b, pt_a)
        for c in scene.constraints:
            c.replace_reference(pt_b, pt_a)
        for dim in scene.dimensions:
            if dim.source_a is pt_b:
                dim.source_a = pt_a
            if dim.source_b is pt_b:
                dim.source_b = pt_a

        scene._drop_constraints(
            lambda c: c.type is ConstraintType.COINCIDENT and c.pt_a is c.pt_b)

        # Segmente zwischen pt_a und pt_b sind jetzt entartet
        collapsed = [s for s in scene.segments if s.p1 is pt_a and s.p2 is pt_a]
        for seg in collapsed:
            scene._detach_shape(seg, scene.segments)

        scene.points = [p for p in scene.points if p is not pt_b]
        scene.clean_orphan_points()
        result = scene.solve()
        logger.debug(f"[Union] Punkt {pt_b.id} -> {pt_a.id}, {len(collapsed)} entartete Segmente entfernt, "
                     f"converged={result.converged}")
        return OperationResult.ok("Punkte vereinigt", pt_a)


def disconnect(scene, pt: Point2D) -> List[Point2D]:
    """Neue Punkte der abgetrennten Shapes; [] wenn nichts zu trennen ist."""
    result = DisconnectOperation(scene).execute(pt)
    return result.data if result.success else []


def union(scene, pt_a: Point2D, pt_b: Point2D) -> Optional[Point2D]:
    """Verbleibender Punkt (pt_a) oder None, wenn nichts passiert ist."""
    result = UnionOperation(scene).execute(pt_a, pt_b)
    return result.data if result.success else None
