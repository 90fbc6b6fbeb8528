"""
parasketch - Trim Operation
===========================

Kürzt ein Segment: der vom Behalten-Punkt weiter entfernte Endpunkt wandert
auf die Projektion des Schnittpunkts. Danach wird gelöst und am verschobenen
Endpunkt ein kollinearer Merge versucht.
"""

import math
from typing import Optional

from loguru import logger

from ..config.tolerances import Tolerances
from ..errors import EditOperationError
from ..geometry import Point2D, Segment2D, project_on_line
from .base import OperationResult, SketchOperation, require_in_scene
from .split import MergeCollinearOperation, clamp_param


class TrimOperation(SketchOperation):

    name = "Trim"

    def execute(self, seg: Segment2D, cut_x: float, cut_y: float,
                keep_x: float, keep_y: float) -> OperationResult:
        require_in_scene(self.scene, seg)
        if seg.length < Tolerances.EPSILON_MATH:
            return self._finish(OperationResult.no_target("Segment hat Länge 0"))
        return self.run_atomic(lambda: self._trim(seg, cut_x, cut_y, keep_x, keep_y))

    def _trim(self, seg: Segment2D, cut_x: float, cut_y: float,
              keep_x: float, keep_y: float) -> OperationResult:
        t, _, _ = project_on_line(cut_x, cut_y, seg.x1, seg.y1, seg.x2, seg.y2)
        t = clamp_param(t)
        nx, ny = seg.point_at(t)

        d1 = math.hypot(seg.x1 - keep_x, seg.y1 - keep_y)
        d2 = math.hypot(seg.x2 - keep_x, seg.y2 - keep_y)
        moved: Point2D = seg.p1 if d1 > d2 else seg.p2
        if moved.fixed:
            raise EditOperationError(f"Endpunkt {moved.id} ist fixiert")

        moved.move_to(nx, ny)
        result = self.scene.solve()
        logger.debug(f"[Trim] Segment {seg.id}: Endpunkt {moved.id} -> ({nx:.3f}, {ny:.3f}), "
                     f"converged={result.converged}")

        merge = MergeCollinearOperation(self.scene)
        if merge.can_execute(moved):
            merged = merge.execute(moved)
            if merged.success:
                logger.debug(f"[Trim] Kollinear zusammengeführt -> Segment {merged.data.id}")
                return OperationResult.ok("Segment getrimmt und zusammengeführt", merged.data)
        return OperationResult.ok("Segment getrimmt", seg)


def trim(scene, seg: Segment2D, cut_x: float, cut_y: float,
         keep_x: float, keep_y: float) -> Optional[Segment2D]:
    """Überlebendes Segment (nach einem Merge das zusammengeführte)."""
    result = TrimOperation(scene).execute(seg, cut_x, cut_y, keep_x, keep_y)
    return result.data if result.success else seg
