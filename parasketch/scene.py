"""
parasketch - Scene
Besitzt alle Primitive, Constraints und Variablen einer Skizze

Punkte werden von Shapes per Referenz geteilt. Entfernen eines Shapes
entfernt alle Constraints, die es referenzieren, und räumt verwaiste Punkte auf.
Jede Mutation löst ein "change"-Event an die Listener aus.
"""

import json
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from .config.tolerances import Tolerances
from .constraints import Constraint, constraint_from_dict
from .dimensions import Dimension, DimensionConstraint, DimensionType, DisplayMode, detect_dimension_type
from .errors import PrimitiveNotInSceneError
from .geometry import (
    Arc2D, Bounds, Circle2D, ConstructionType, DashStyle, Point2D, Primitive, Segment2D, Text2D,
)
from .parameters import Parameters, is_identifier, rename_in_formula
from .solver import ConstraintSolver, SolverResult, SolverStatus, constraint_residuals
from .transaction import SceneTransaction

Listener = Callable[[str], None]


def _contains(items: Sequence[Any], obj: Any) -> bool:
    return any(item is obj for item in items)


def _remove_identity(items: List[Any], obj: Any) -> bool:
    for i, item in enumerate(items):
        if item is obj:
            del items[i]
            return True
    return False


class Scene:
    """
    Eine parametrische 2D-Skizze.

    Listen: points, segments, circles, arcs, texts, dimensions, constraints.
    Die Reihenfolge von constraints ist die Anwendungsreihenfolge im Solver.
    """

    def __init__(self, name: str = "Sketch"):
        self.name = name
        self.points: List[Point2D] = []
        self.segments: List[Segment2D] = []
        self.circles: List[Circle2D] = []
        self.arcs: List[Arc2D] = []
        self.texts: List[Text2D] = []
        self.dimensions: List[Dimension] = []
        self.constraints: List[Constraint] = []
        self.variables = Parameters()

        # Nur für den Renderer; der Kern wertet sie nicht aus
        self.all_dimensions_visible = True
        self.constraint_icons_visible = True

        self.solver = ConstraintSolver()
        self.last_solve_result: Optional[SolverResult] = None

        self._next_primitive_id = 1
        self._next_constraint_id = 1
        self._listeners: List[Listener] = []
        self._batch_depth = 0
        self._pending_change = False

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, callback: Listener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def emit(self, event: str = "change") -> None:
        if self._batch_depth > 0:
            self._pending_change = True
            return
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception(f"[Scene] Listener {callback!r} failed on '{event}'")

    def _begin_batch(self) -> None:
        self._batch_depth += 1

    def _end_batch(self, changed: bool) -> None:
        self._batch_depth -= 1
        if not changed and self._batch_depth == 0:
            self._pending_change = False
        if self._batch_depth == 0 and self._pending_change:
            self._pending_change = False
            self.emit("change")

    def transaction(self, operation_name: str = "Operation") -> SceneTransaction:
        """Atomare Änderung mit Rollback, siehe SceneTransaction."""
        return SceneTransaction(self, operation_name)

    # =========================================================================
    # Iteration & Lookup
    # =========================================================================

    def shapes(self) -> Iterator[Primitive]:
        """Segmente, Kreise, Bögen, Texte, Bemaßungen (ohne Punkte)"""
        yield from self.segments
        yield from self.circles
        yield from self.arcs
        yield from self.texts
        yield from self.dimensions

    def all_primitives(self) -> Iterator[Primitive]:
        yield from self.points
        yield from self.shapes()

    def primitive_by_id(self, prim_id: Optional[int]) -> Optional[Primitive]:
        if prim_id is None:
            return None
        for prim in self.all_primitives():
            if prim.id == prim_id:
                return prim
        return None

    def point_by_id(self, point_id: Optional[int]) -> Optional[Point2D]:
        for p in self.points:
            if p.id == point_id:
                return p
        return None

    def constraint_by_id(self, constraint_id: Optional[int]) -> Optional[Constraint]:
        for c in self.constraints:
            if c.id == constraint_id and not isinstance(c, DimensionConstraint):
                return c
        return None

    def contains(self, prim: Primitive) -> bool:
        return any(p is prim for p in self.all_primitives())

    def _require(self, prim: Primitive) -> None:
        if prim is None or not self.contains(prim):
            raise PrimitiveNotInSceneError(f"{type(prim).__name__} ist nicht Teil der Szene")

    def shapes_using_point(self, pt: Point2D) -> List[Primitive]:
        """Alle Segmente, Kreise und Bögen, die pt referenzieren"""
        result: List[Primitive] = []
        for shape in (*self.segments, *self.circles, *self.arcs):
            if _contains(shape.defining_points(), pt):
                result.append(shape)
        return result

    def constraints_on(self, prim: Primitive) -> List[Constraint]:
        """Constraints (inkl. Bemaßungen), die prim oder einen seiner Punkte betreffen"""
        defining = prim.defining_points()
        result = []
        for c in self.constraints:
            refs = c.referenced_primitives()
            if _contains(refs, prim) or any(_contains(refs, p) for p in defining):
                result.append(c)
            elif isinstance(prim, Point2D) and _contains(c.involved_points(), prim):
                result.append(c)
        return result

    def find_closest_point(self, wx: float, wy: float, tol: float) -> Optional[Point2D]:
        best, best_dist = None, tol
        for p in self.points:
            if not p.visible:
                continue
            d = p.distance_to(wx, wy)
            if d < best_dist:
                best, best_dist = p, d
        return best

    def find_closest_shape(self, wx: float, wy: float, tol: float) -> Optional[Primitive]:
        """Nächstes sichtbares Shape mit distance_to < tol; bei Gleichstand gewinnt das ältere."""
        best, best_dist = None, tol
        for shape in self.shapes():
            if not shape.visible:
                continue
            d = shape.distance_to(wx, wy)
            if d < best_dist:
                best, best_dist = shape, d
        return best

    def get_bounds(self) -> Bounds:
        bounds: Optional[Bounds] = None
        for shape in self.shapes():
            if not shape.visible:
                continue
            b = shape.get_bounds()
            bounds = b if bounds is None else bounds.union(b)
        if bounds is None:
            return Bounds(*Tolerances.DEFAULT_BOUNDS)
        return bounds

    # =========================================================================
    # Anlegen
    # =========================================================================

    def _register(self, prim: Primitive) -> Primitive:
        prim.id = self._next_primitive_id
        self._next_primitive_id += 1
        return prim

    def add_point(self, x: float, y: float, fixed: bool = False,
                  layer: str = "0", color: Optional[str] = None) -> Point2D:
        p = self._register(Point2D(x, y, fixed, layer=layer, color=color))
        self.points.append(p)
        self.emit()
        return p

    def get_or_create_point(self, x: float, y: float,
                            tol: float = Tolerances.MERGE_TOLERANCE) -> Point2D:
        """Nächster bestehender Punkt innerhalb tol, sonst neuer Punkt"""
        best, best_dist = None, tol
        for p in self.points:
            d = p.distance_to(x, y)
            if d < best_dist:
                best, best_dist = p, d
        return best if best is not None else self.add_point(x, y)

    def _endpoint(self, x: float, y: float, merge: bool, layer: str) -> Point2D:
        if merge:
            return self.get_or_create_point(x, y)
        return self.add_point(x, y, layer=layer)

    def add_segment(self, x1: float, y1: float, x2: float, y2: float, merge: bool = True,
                    layer: str = "0", color: Optional[str] = None, construction: bool = False,
                    construction_type: ConstructionType = ConstructionType.FINITE,
                    construction_dash: DashStyle = DashStyle.DASHED) -> Segment2D:
        p1 = self._endpoint(x1, y1, merge, layer)
        p2 = self._endpoint(x2, y2, merge, layer)
        return self.add_segment_from_points(p1, p2, layer=layer, color=color, construction=construction,
                                            construction_type=construction_type,
                                            construction_dash=construction_dash)

    def add_segment_from_points(self, p1: Point2D, p2: Point2D, layer: str = "0",
                                color: Optional[str] = None, construction: bool = False,
                                construction_type: ConstructionType = ConstructionType.FINITE,
                                construction_dash: DashStyle = DashStyle.DASHED) -> Segment2D:
        self._require(p1)
        self._require(p2)
        seg = Segment2D(p1, p2, construction_type, construction_dash,
                        layer=layer, color=color, construction=construction)
        self.segments.append(self._register(seg))
        self.emit()
        return seg

    def add_circle(self, cx: float, cy: float, radius: float, merge: bool = True,
                   layer: str = "0", color: Optional[str] = None,
                   construction: bool = False) -> Circle2D:
        center = self._endpoint(cx, cy, merge, layer)
        circle = Circle2D(center, float(radius), layer=layer, color=color, construction=construction)
        self.circles.append(self._register(circle))
        self.emit()
        return circle

    def add_arc(self, cx: float, cy: float, radius: float, start_angle: float, end_angle: float,
                merge: bool = True, layer: str = "0", color: Optional[str] = None,
                construction: bool = False) -> Arc2D:
        center = self._endpoint(cx, cy, merge, layer)
        arc = Arc2D(center, float(radius), float(start_angle), float(end_angle),
                    layer=layer, color=color, construction=construction)
        self.arcs.append(self._register(arc))
        self.emit()
        return arc

    def add_text(self, x: float, y: float, text: str, height: float = 5.0, rotation: float = 0.0,
                 layer: str = "0", color: Optional[str] = None) -> Text2D:
        t = Text2D(x, y, text, height, rotation, layer=layer, color=color)
        self.texts.append(self._register(t))
        self.emit()
        return t

    # =========================================================================
    # Bemaßungen
    # =========================================================================

    def add_dimension(self, source_a: Primitive, source_b: Optional[Primitive] = None,
                      dim_type: Optional[DimensionType] = None,
                      offset: float = Tolerances.DEFAULT_DIMENSION_OFFSET,
                      is_constraint: bool = False, formula: Any = None,
                      variable_name: Optional[str] = None,
                      display_mode: DisplayMode = DisplayMode.VALUE,
                      min: Optional[float] = None, max: Optional[float] = None,
                      layer: str = "0") -> Dimension:
        """
        Legt eine Smart-Dimension an.

        Der Typ wird aus den Quellen erkannt (detect_dimension_type); dim_type
        überschreibt ihn (z.B. dx/dy oder radius statt diameter). Ist die
        Bemaßung aktiv, wird sie als Constraint eingefügt und gelöst.
        """
        self._require(source_a)
        if source_b is not None:
            self._require(source_b)
        detection = detect_dimension_type(source_a, source_b)
        if detection is None:
            raise ValueError(f"Keine Bemaßung für {type(source_a).__name__}"
                             f"{'/' + type(source_b).__name__ if source_b is not None else ''}")
        dim = Dimension(detection.x1, detection.y1, detection.x2, detection.y2, offset=offset,
                        dim_type=detection.dim_type, variable_name=variable_name,
                        display_mode=display_mode, source_a=source_a, source_b=source_b,
                        min=min, max=max, angle_start=detection.angle_start,
                        angle_sweep=detection.angle_sweep, layer=layer)
        if dim_type is not None and dim_type is not detection.dim_type:
            dim.dim_type = dim_type
            dim.sync_from_sources()
        dim.is_constraint = is_constraint
        dim.formula = formula if formula is not None or not is_constraint else dim.value
        return self.add_dimension_primitive(dim)

    def add_dimension_primitive(self, dim: Dimension) -> Dimension:
        """Registriert eine fertige Dimension (auch ohne Quellen)."""
        for src in dim.sources:
            self._require(src)
        dim.variables = self.variables
        self.dimensions.append(self._register(dim))
        dim.source_a_id = dim.source_a.id if dim.source_a is not None else None
        dim.source_b_id = dim.source_b.id if dim.source_b is not None else None
        if self._sync_dimension_constraint(dim):
            self.solve()
        else:
            self.emit()
        return dim

    def update_dimension(self, dim: Dimension, **changes: Any) -> Dimension:
        """
        Ändert Attribute einer Dimension (is_constraint, formula, dim_type, ...)
        und hält den Eintrag in der Constraint-Liste konsistent.
        """
        self._require(dim)
        for key, value in changes.items():
            if not hasattr(dim, key):
                raise AttributeError(f"Dimension hat kein Attribut '{key}'")
            setattr(dim, key, value)
        if dim.is_constraint and dim.formula is None:
            dim.formula = dim.measure()
        if 'dim_type' in changes:
            dim.sync_from_sources()
        if self._sync_dimension_constraint(dim) or dim.is_active_constraint:
            self.solve()
        else:
            self.emit()
        return dim

    def _dimension_record(self, dim: Dimension) -> Optional[DimensionConstraint]:
        for c in self.constraints:
            if isinstance(c, DimensionConstraint) and c.dimension is dim:
                return c
        return None

    def _sync_dimension_constraint(self, dim: Dimension, index: Optional[int] = None) -> bool:
        """Genau ein Eintrag für aktive Bemaßungen, keiner sonst. True bei Einfügung."""
        record = self._dimension_record(dim)
        if dim.is_active_constraint and record is None:
            record = DimensionConstraint(dim, variables=self.variables)
            if index is None:
                self.constraints.append(record)
            else:
                self.constraints.insert(index, record)
            return True
        if not dim.is_active_constraint and record is not None:
            _remove_identity(self.constraints, record)
        return False

    def _demote_dimensions_on(self, prim: Primitive) -> None:
        """Bemaßungen, deren Quelle prim ist, werden zu passiven Annotationen."""
        for dim in self.dimensions:
            if dim.source_a is prim or dim.source_b is prim:
                dim.source_a = None
                dim.source_b = None
                dim.source_a_id = None
                dim.source_b_id = None
                dim.is_constraint = False
                self._sync_dimension_constraint(dim)

    # =========================================================================
    # Constraints
    # =========================================================================

    def add_constraint(self, c: Constraint, solve: bool = True) -> Constraint:
        """Hängt c an die Constraint-Liste an und löst (solve=False für Batch-Aufbau)."""
        if isinstance(c, DimensionConstraint):
            raise TypeError("Bemaßungen über add_dimension/update_dimension aktivieren")
        for ref in c.referenced_primitives():
            self._require(ref)
        c.on_added(self.constraints)
        c.id = self._next_constraint_id
        self._next_constraint_id += 1
        c.variables = self.variables
        self.constraints.append(c)
        if solve:
            self.solve()
        else:
            self.emit()
        return c

    def remove_constraint(self, c: Constraint) -> bool:
        """Entfernt c, ohne neu zu lösen."""
        if not _remove_identity(self.constraints, c):
            return False
        if isinstance(c, DimensionConstraint):
            c.dimension.is_constraint = False
        c.on_removed(self.constraints)
        self.emit()
        return True

    def _drop_constraints(self, predicate: Callable[[Constraint], bool]) -> List[Constraint]:
        dropped = [c for c in self.constraints if predicate(c)]
        if dropped:
            self.constraints = [c for c in self.constraints if not _contains(dropped, c)]
            for c in dropped:
                if isinstance(c, DimensionConstraint):
                    c.dimension.is_constraint = False
                c.on_removed(self.constraints)
        return dropped

    # =========================================================================
    # Solver
    # =========================================================================

    def solve(self, max_iterations: Optional[int] = None,
              tolerance: Optional[float] = None) -> SolverResult:
        """
        Gauss-Seidel über alle Constraints, danach Bemaßungen nachführen.

        Passive Bemaßungen mit variable_name veröffentlichen ihren Messwert vor
        und nach dem Lösen. Ändert sich dabei ein Wert, wird mit dem Rest des
        Iterationsbudgets erneut gelöst, damit davon abhängige Constraints
        im selben Aufruf erfüllt sind.
        """
        cap = self.solver.max_iterations if max_iterations is None else max_iterations
        tol = self.solver.tolerance if tolerance is None else tolerance

        self._sync_dimensions(tol)
        result = self._run_solver(cap, tol)
        used = result.iterations
        while self._sync_dimensions(tol):
            remaining = cap - used
            if remaining <= 0:
                max_error = float(np.max(constraint_residuals(self.constraints)))
                logger.debug(f"[Scene] Bemaßungsvariablen nach {used} Iterationen nicht stabil "
                             f"(max_error={max_error:.3e})")
                result = replace(result, converged=False, max_error=max_error,
                                 status=SolverStatus.MAX_ITERATIONS,
                                 message=f"Maximale Iterationen ({cap}) erreicht")
                break
            result = self._run_solver(remaining, tol)
            used += result.iterations
        result = replace(result, iterations=used)

        self.last_solve_result = result
        self.emit()
        return result

    def _run_solver(self, max_iterations: int, tolerance: float) -> SolverResult:
        solver = ConstraintSolver(max_iterations, tolerance)
        solver.progress_callback = self.solver.progress_callback
        solver.callback_interval = self.solver.callback_interval
        return solver.solve(self.constraints)

    def _sync_dimensions(self, tolerance: float = Tolerances.SOLVER_TOLERANCE) -> bool:
        """Misst alle Bemaßungen neu; True, wenn sich eine veröffentlichte Variable geändert hat."""
        changed = False
        for dim in self.dimensions:
            dim.sync_from_sources()
            name = dim.variable_name
            if not name or dim.is_active_constraint or not is_identifier(name):
                continue
            value = dim.value
            old = self.variables.get(name)
            if not isinstance(old, (int, float)) or abs(old - value) > tolerance:
                changed = True
            self.variables.set(name, value)
        return changed

    # =========================================================================
    # Entfernen
    # =========================================================================

    def remove_primitive(self, prim: Primitive) -> bool:
        if isinstance(prim, Point2D):
            return self.remove_point(prim)
        if isinstance(prim, Segment2D):
            return self.remove_segment(prim)
        if isinstance(prim, Circle2D):
            return self.remove_circle(prim)
        if isinstance(prim, Arc2D):
            return self.remove_arc(prim)
        if isinstance(prim, Text2D):
            return self.remove_text(prim)
        if isinstance(prim, Dimension):
            return self.remove_dimension(prim)
        raise TypeError(f"Unbekannter Primitive-Typ: {type(prim).__name__}")

    def _detach_shape(self, shape: Primitive, items: List[Primitive]) -> bool:
        if not _remove_identity(items, shape):
            return False
        self._drop_constraints(lambda c: c.references(shape))
        self._demote_dimensions_on(shape)
        return True

    def remove_segment(self, seg: Segment2D) -> bool:
        if not self._detach_shape(seg, self.segments):
            return False
        self.clean_orphan_points()
        self.emit()
        return True

    def remove_circle(self, circle: Circle2D) -> bool:
        if not self._detach_shape(circle, self.circles):
            return False
        self.clean_orphan_points()
        self.emit()
        return True

    def remove_arc(self, arc: Arc2D) -> bool:
        if not self._detach_shape(arc, self.arcs):
            return False
        self.clean_orphan_points()
        self.emit()
        return True

    def remove_text(self, text: Text2D) -> bool:
        if not _remove_identity(self.texts, text):
            return False
        self.emit()
        return True

    def remove_dimension(self, dim: Dimension) -> bool:
        if not _remove_identity(self.dimensions, dim):
            return False
        self._drop_constraints(lambda c: isinstance(c, DimensionConstraint) and c.dimension is dim)
        self.clean_orphan_points()
        self.emit()
        return True

    def remove_point(self, pt: Point2D) -> bool:
        """Entfernt pt samt aller Shapes und Constraints, die ihn verwenden."""
        if not _contains(self.points, pt):
            return False
        for shape in self.shapes_using_point(pt):
            items = self.segments if isinstance(shape, Segment2D) else (
                self.circles if isinstance(shape, Circle2D) else self.arcs)
            self._detach_shape(shape, items)
        self._drop_constraints(lambda c: c.references(pt) or _contains(c.involved_points(), pt))
        self._demote_dimensions_on(pt)
        _remove_identity(self.points, pt)
        self.clean_orphan_points()
        self.emit()
        return True

    def clean_orphan_points(self) -> int:
        """
        Entfernt Punkte, die weder von einem Shape noch von einem Constraint
        oder einer Bemaßung verwendet werden, und danach alle Constraints,
        deren Punkte nicht mehr in der Szene sind.

        Returns:
            Anzahl entfernter Punkte
        """
        used = set()
        for shape in (*self.segments, *self.circles, *self.arcs):
            used.update(id(p) for p in shape.defining_points())
        for c in self.constraints:
            used.update(id(p) for p in c.involved_points())
        for dim in self.dimensions:
            used.update(id(src) for src in dim.sources if isinstance(src, Point2D))

        before = len(self.points)
        self.points = [p for p in self.points if id(p) in used]
        removed = before - len(self.points)

        present = {id(p) for p in self.points}
        dropped = self._drop_constraints(
            lambda c: any(id(p) not in present for p in c.involved_points()))
        if removed or dropped:
            logger.debug(f"[Scene] Cleanup: {removed} verwaiste Punkte, {len(dropped)} Constraints entfernt")
        return removed

    def clear(self) -> None:
        """Leert alle Listen, setzt die Id-Zähler und die Variablen zurück."""
        self.points.clear()
        self.segments.clear()
        self.circles.clear()
        self.arcs.clear()
        self.texts.clear()
        self.dimensions.clear()
        self.constraints.clear()
        self.variables.clear()
        self._next_primitive_id = 1
        self._next_constraint_id = 1
        self.last_solve_result = None
        self.emit()

    # =========================================================================
    # Variablen
    # =========================================================================

    def set_variable(self, name: str, value: Any) -> None:
        """Setzt eine Variable (Zahl oder Formel) und löst neu."""
        self.variables.set(name, value)
        self.solve()

    def remove_variable(self, name: str) -> bool:
        removed = self.variables.delete(name)
        if removed:
            self.emit()
        return removed

    def rename_variable(self, old: str, new: str) -> bool:
        """
        Benennt eine Variable um; ersetzt den Namen als ganzes Wort in allen
        Constraint-Werten, Bemaßungsformeln/-variablen und anderen Formeln.
        """
        if not self.variables.rename(old, new):
            return False
        new = new.strip()
        for c in self.constraints:
            value = getattr(c, 'value', None)
            if isinstance(value, str):
                c.value = rename_in_formula(value, old, new)
        for dim in self.dimensions:
            if isinstance(dim.formula, str):
                dim.formula = rename_in_formula(dim.formula, old, new)
            if dim.variable_name == old:
                dim.variable_name = new
        self.emit()
        return True

    def resolve_value(self, value: Any) -> float:
        return self.variables.resolve(value)

    # =========================================================================
    # Serialisierung
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        order = {id(c.dimension): i for i, c in enumerate(self.constraints)
                 if isinstance(c, DimensionConstraint)}
        dimensions = []
        for dim in self.dimensions:
            d = dim.to_dict()
            if id(dim) in order:
                d['order'] = order[id(dim)]
            dimensions.append(d)
        return {
            'points': [p.to_dict() for p in self.points],
            'segments': [s.to_dict() for s in self.segments],
            'circles': [c.to_dict() for c in self.circles],
            'arcs': [a.to_dict() for a in self.arcs],
            'texts': [t.to_dict() for t in self.texts],
            'dimensions': dimensions,
            'constraints': [c.to_dict() for c in self.constraints
                            if not isinstance(c, DimensionConstraint)],
            'variables': self.variables.to_dict(),
        }

    serialize = to_dict

    def load_dict(self, data: Dict[str, Any]) -> None:
        """Ersetzt den Inhalt der Szene durch data (Format von to_dict)."""
        self._begin_batch()
        try:
            self.clear()
            self.variables.from_dict(data.get('variables', {}))
            prim_map: Dict[int, Primitive] = {}
            point_map: Dict[int, Point2D] = {}

            for pd in data.get('points', []):
                p = Point2D(pd['x'], pd['y'], bool(pd.get('fixed', False)), id=pd['id'],
                            layer=pd.get('layer', "0"), color=pd.get('color'))
                self.points.append(p)
                point_map[p.id] = prim_map[p.id] = p

            def common(d: Dict[str, Any]) -> Dict[str, Any]:
                return {'id': d['id'], 'layer': d.get('layer', "0"), 'color': d.get('color'),
                        'construction': bool(d.get('construction', False))}

            for sd in data.get('segments', []):
                p1, p2 = point_map.get(sd.get('p1')), point_map.get(sd.get('p2'))
                if p1 is None or p2 is None:
                    logger.debug(f"[Scene] Segment {sd.get('id')} übersprungen: Punkt fehlt")
                    continue
                seg = Segment2D(p1, p2,
                                ConstructionType(sd.get('constructionType', 'finite')),
                                DashStyle(sd.get('constructionDash', 'dashed')), **common(sd))
                self.segments.append(seg)
                prim_map[seg.id] = seg

            for cd in data.get('circles', []):
                center = point_map.get(cd.get('center'))
                if center is None:
                    logger.debug(f"[Scene] Kreis {cd.get('id')} übersprungen: Mittelpunkt fehlt")
                    continue
                circle = Circle2D(center, float(cd['radius']), **common(cd))
                self.circles.append(circle)
                prim_map[circle.id] = circle

            for ad in data.get('arcs', []):
                center = point_map.get(ad.get('center'))
                if center is None:
                    logger.debug(f"[Scene] Bogen {ad.get('id')} übersprungen: Mittelpunkt fehlt")
                    continue
                arc = Arc2D(center, float(ad['radius']), float(ad['startAngle']),
                            float(ad['endAngle']), **common(ad))
                self.arcs.append(arc)
                prim_map[arc.id] = arc

            for td in data.get('texts', []):
                t = Text2D(td['x'], td['y'], td.get('text', ""), td.get('height', 5.0),
                           td.get('rotation', 0.0), id=td['id'], layer=td.get('layer', "0"),
                           color=td.get('color'))
                self.texts.append(t)
                prim_map[t.id] = t

            active: List[Tuple[int, Dimension]] = []
            for dd in data.get('dimensions', []):
                dim = Dimension.from_dict(dd)
                dim.variables = self.variables
                dim.source_a = prim_map.get(dim.source_a_id)
                dim.source_b = prim_map.get(dim.source_b_id)
                if dim.source_a_id is not None and dim.source_a is None:
                    logger.debug(f"[Scene] Bemaßung {dim.id}: Quelle {dim.source_a_id} fehlt")
                self.dimensions.append(dim)
                prim_map[dim.id] = dim
                if dim.is_active_constraint:
                    active.append((dd.get('order', -1), dim))

            for cd in data.get('constraints', []):
                c = constraint_from_dict(cd, prim_map.get)
                if c is None:
                    logger.debug(f"[Scene] Constraint-Wiederherstellung übersprungen: {cd}")
                    continue
                c.variables = self.variables
                c.on_loaded(self.constraints)
                self.constraints.append(c)

            # Bemaßungen an ihre alte Position in der Solver-Reihenfolge
            unordered = [dim for order, dim in active if order < 0]
            for offset, dim in enumerate(unordered):
                self._sync_dimension_constraint(dim, index=offset)
            for order, dim in sorted(((o, d) for o, d in active if o >= 0), key=lambda item: item[0]):
                self._sync_dimension_constraint(dim, index=min(order, len(self.constraints)))

            prim_ids = [p.id for p in self.all_primitives() if p.id is not None]
            constraint_ids = [c.id for c in self.constraints
                              if c.id is not None and not isinstance(c, DimensionConstraint)]
            self._next_primitive_id = max(prim_ids, default=0) + 1
            self._next_constraint_id = max(constraint_ids, default=0) + 1
            self.emit()
        finally:
            self._end_batch(changed=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str = "Sketch") -> 'Scene':
        scene = cls(name)
        scene.load_dict(data)
        return scene

    deserialize = from_dict

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_json(cls, text: str, name: str = "Sketch") -> 'Scene':
        return cls.from_dict(json.loads(text), name)

    def __repr__(self) -> str:
        return (f"Scene('{self.name}': {len(self.points)} Punkte, {len(self.segments)} Segmente, "
                f"{len(self.circles)} Kreise, {len(self.arcs)} Bögen, "
                f"{len(self.dimensions)} Bemaßungen, {len(self.constraints)} Constraints)")
