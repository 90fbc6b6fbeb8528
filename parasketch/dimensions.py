"""
parasketch - Smart Dimensions
=============================

Bemaßungen messen Geometrie und können gleichzeitig als Constraint wirken.

Usage:
    from parasketch.dimensions import detect_dimension_type

    detection = detect_dimension_type(seg_a, seg_b)
    print(detection.dim_type)  # DimensionType.ANGLE

    dim = scene.add_dimension(seg_a, seg_b)
    scene.update_dimension(dim, is_constraint=True, formula="pi / 2")

Eine aktive Bemaßung (is_constraint, gültige source_a, auflösbare Formel)
verhält sich wie der passende konkrete Constraint (Distance, Length, Angle,
Radius, ...). In der Constraint-Liste der Szene steht dafür genau ein
DimensionConstraint-Eintrag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union
import math

from .config.tolerances import Tolerances
from .constraints import (
    Angle, Constraint, ConstraintType, Distance, Length, Radius,
    _move, _pull_apart, _shift_segment, _unit,
)
from .geometry import (
    Arc2D, Bounds, Circle2D, Point2D, Primitive, Segment2D, SnapPoint, SnapType,
    line_intersection, normalize_angle, point_segment_distance, project_on_line,
)
from .parameters import Parameters

EPS = Tolerances.EPSILON_MATH

Value = Union[float, int, str]


class DimensionType(Enum):
    DISTANCE = "distance"
    DX = "dx"
    DY = "dy"
    ANGLE = "angle"
    RADIUS = "radius"
    DIAMETER = "diameter"


class DisplayMode(Enum):
    VALUE = "value"
    FORMULA = "formula"
    BOTH = "both"


def _is_round(p: Any) -> bool:
    return isinstance(p, (Circle2D, Arc2D))


def are_parallel(a: Segment2D, b: Segment2D) -> bool:
    """|cross| der Einheitsrichtungen < 0.01 (~0.6°)"""
    len_a = a.length or EPS
    len_b = b.length or EPS
    cross = abs(a.dx * b.dy - a.dy * b.dx) / (len_a * len_b)
    return cross < Tolerances.COLLINEAR_CROSS


def _foot_on_segment(px: float, py: float, seg: Segment2D) -> Tuple[float, float]:
    t, fx, fy = project_on_line(px, py, seg.x1, seg.y1, seg.x2, seg.y2)
    if t < 0.0:
        return seg.x1, seg.y1
    if t > 1.0:
        return seg.x2, seg.y2
    return fx, fy


def _angle_info(a: Segment2D, b: Segment2D) -> Tuple[float, float, float, float]:
    """(vx, vy, start, sweep): Scheitel der Geraden, Richtung von A, Sweep A->B in (-pi, pi]"""
    vertex = line_intersection(a, b)
    if vertex is None:
        vx = (a.x1 + a.x2 + b.x1 + b.x2) / 4
        vy = (a.y1 + a.y2 + b.y1 + b.y2) / 4
    else:
        vx, vy = vertex
    start = a.angle
    return vx, vy, start, normalize_angle(b.angle - start)


def _anchor(p: Primitive) -> Tuple[float, float]:
    """Referenzpunkt einer Quelle: Punkt, Mittelpunkt eines Kreises, Segment-Mitte"""
    if isinstance(p, Point2D):
        return p.x, p.y
    if _is_round(p):
        return p.center.x, p.center.y
    if isinstance(p, Segment2D):
        return p.midpoint
    raise TypeError(f"Keine Bemaßungsquelle: {type(p).__name__}")


@dataclass
class DimensionDetection:
    """Ergebnis von detect_dimension_type()"""
    dim_type: DimensionType
    x1: float
    y1: float
    x2: float
    y2: float
    angle_start: Optional[float] = None
    angle_sweep: Optional[float] = None
    alternatives: List[DimensionType] = field(default_factory=list)


def _measure_coordinates(dim_type: DimensionType, a: Primitive,
                         b: Optional[Primitive]) -> DimensionDetection:
    """Endpunkte (und Winkeldaten) für einen festen Typ aus den aktuellen Quellen."""
    if b is None:
        if isinstance(a, Segment2D):
            return DimensionDetection(dim_type, a.x1, a.y1, a.x2, a.y2)
        if _is_round(a):
            cx, cy, r = a.center.x, a.center.y, a.radius
            if dim_type is DimensionType.DIAMETER:
                return DimensionDetection(dim_type, cx - r, cy, cx + r, cy)
            return DimensionDetection(dim_type, cx, cy, cx + r, cy)
        if isinstance(a, Point2D):
            return DimensionDetection(dim_type, a.x, a.y, a.x, a.y)
        raise TypeError(f"Keine Bemaßungsquelle: {type(a).__name__}")

    if isinstance(a, Segment2D) and isinstance(b, Segment2D):
        if dim_type is DimensionType.ANGLE:
            vx, vy, start, sweep = _angle_info(a, b)
            return DimensionDetection(dim_type, vx, vy, vx, vy, start, sweep)
        mx, my = a.midpoint
        _, fx, fy = project_on_line(mx, my, b.x1, b.y1, b.x2, b.y2)
        return DimensionDetection(dim_type, mx, my, fx, fy)

    if isinstance(a, Point2D) and isinstance(b, Segment2D):
        fx, fy = _foot_on_segment(a.x, a.y, b)
        return DimensionDetection(dim_type, a.x, a.y, fx, fy)
    if isinstance(a, Segment2D) and isinstance(b, Point2D):
        fx, fy = _foot_on_segment(b.x, b.y, a)
        return DimensionDetection(dim_type, b.x, b.y, fx, fy)

    x1, y1 = _anchor(a)
    x2, y2 = _anchor(b)
    return DimensionDetection(dim_type, x1, y1, x2, y2)


def detect_dimension_type(a: Primitive, b: Optional[Primitive] = None) -> Optional[DimensionDetection]:
    """
    Bestimmt den natürlichen Bemaßungstyp für eine oder zwei Quellen.

    - Segment: distance (Alternativen dx, dy)
    - Kreis/Bogen: diameter (Alternative radius)
    - Zwei Punkte: distance (Alternativen dx, dy)
    - Zwei Segmente: parallel -> Abstand der Geraden, sonst Winkel
    - Punkt + Segment: Abstand zum nächsten Segmentpunkt
    - Punkt/Segment/Kreis + Kreis: Abstand zum Mittelpunkt

    Returns:
        DimensionDetection oder None, wenn die Kombination nicht bemaßbar ist
    """
    if b is None:
        if isinstance(a, Segment2D):
            det = _measure_coordinates(DimensionType.DISTANCE, a, None)
            det.alternatives = [DimensionType.DX, DimensionType.DY]
            return det
        if _is_round(a):
            det = _measure_coordinates(DimensionType.DIAMETER, a, None)
            det.alternatives = [DimensionType.RADIUS]
            return det
        return None

    if isinstance(a, Segment2D) and isinstance(b, Segment2D):
        if are_parallel(a, b):
            return _measure_coordinates(DimensionType.DISTANCE, a, b)
        return _measure_coordinates(DimensionType.ANGLE, a, b)

    if not all(isinstance(p, (Point2D, Segment2D, Circle2D, Arc2D)) for p in (a, b)):
        return None
    det = _measure_coordinates(DimensionType.DISTANCE, a, b)
    if isinstance(a, Point2D) and isinstance(b, Point2D):
        det.alternatives = [DimensionType.DX, DimensionType.DY]
    elif _is_round(a) and _is_round(b):
        det.alternatives = [DimensionType.DX, DimensionType.DY]
    return det


# =============================================================================
# Ersatz-Constraints für Bemaßungs-Paarungen ohne eigene Constraint-Art
# =============================================================================

@dataclass(eq=False)
class AxisDistance(Constraint):
    """|b.x - a.x| = value (bzw. y)"""
    pt_a: Point2D
    pt_b: Point2D
    axis: str = "x"
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.DIMENSION
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt_a', 'pt_b')

    def _delta(self) -> float:
        return getattr(self.pt_b, self.axis) - getattr(self.pt_a, self.axis)

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        return abs(abs(self._delta()) - t)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        delta = self._delta()
        sign = 1.0 if delta >= 0 else -1.0
        err = abs(delta) - t
        ux, uy = (sign, 0.0) if self.axis == "x" else (0.0, sign)
        _pull_apart(self.pt_a, self.pt_b, ux, uy, err)

    def involved_points(self) -> List[Point2D]:
        return [self.pt_a, self.pt_b]


@dataclass(eq=False)
class PointSegmentDistance(Constraint):
    """Abstand Punkt -> nächster Punkt auf dem Segment"""
    pt: Point2D
    seg: Segment2D
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.DIMENSION
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt', 'seg')

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        s = self.seg
        return abs(point_segment_distance(self.pt.x, self.pt.y, s.x1, s.y1, s.x2, s.y2) - t)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        fx, fy = _foot_on_segment(self.pt.x, self.pt.y, self.seg)
        u = _unit(self.pt.x - fx, self.pt.y - fy)
        if u is None:
            return
        err = math.hypot(self.pt.x - fx, self.pt.y - fy) - t
        if not self.pt.fixed:
            self.pt.translate(-u[0] * err, -u[1] * err)
        else:
            _shift_segment(self.seg, u[0] * err, u[1] * err)

    def involved_points(self) -> List[Point2D]:
        return [self.pt, self.seg.p1, self.seg.p2]


@dataclass(eq=False)
class AnchorDistance(Constraint):
    """
    Abstand zwischen zwei Ankern: Segment-Mitte (bzw. Fußpunkt auf der
    Geraden von B bei zwei Segmenten) und Kreismittelpunkt.
    Korrigiert wird durch Verschieben der Quellen entlang der Verbindung.
    """
    source_a: Primitive
    source_b: Primitive
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.DIMENSION
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('source_a', 'source_b')

    def _anchors(self) -> Tuple[float, float, float, float]:
        ax, ay = _anchor(self.source_a)
        b = self.source_b
        if isinstance(self.source_a, Segment2D) and isinstance(b, Segment2D):
            _, bx, by = project_on_line(ax, ay, b.x1, b.y1, b.x2, b.y2)
        else:
            bx, by = _anchor(b)
        return ax, ay, bx, by

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        ax, ay, bx, by = self._anchors()
        return abs(math.hypot(bx - ax, by - ay) - t)

    @staticmethod
    def _movable(p: Primitive) -> bool:
        return not all(q.fixed for q in p.defining_points())

    @staticmethod
    def _shift(p: Primitive, dx: float, dy: float) -> None:
        if isinstance(p, Segment2D):
            _shift_segment(p, dx, dy)
        else:
            for q in p.defining_points():
                _move(q, dx, dy)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        ax, ay, bx, by = self._anchors()
        u = _unit(bx - ax, by - ay)
        if u is None:
            return
        err = math.hypot(bx - ax, by - ay) - t
        move_a, move_b = self._movable(self.source_a), self._movable(self.source_b)
        if not (move_a or move_b):
            return
        share_a = 0.5 if (move_a and move_b) else (1.0 if move_a else 0.0)
        share_b = 1.0 - share_a
        self._shift(self.source_a, u[0] * err * share_a, u[1] * err * share_a)
        self._shift(self.source_b, -u[0] * err * share_b, -u[1] * err * share_b)

    def involved_points(self) -> List[Point2D]:
        return self.source_a.defining_points() + self.source_b.defining_points()


# =============================================================================
# Dimension-Primitive
# =============================================================================

@dataclass(eq=False)
class Dimension(Primitive):
    """
    Bemaßung zwischen (x1, y1) und (x2, y2), versetzt um offset.

    Bei Winkeln ist (x1, y1) der Scheitel; angle_start/angle_sweep beschreiben
    den Bogen (Sweep vorzeichenbehaftet, Radians).
    """
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    offset: float = Tolerances.DEFAULT_DIMENSION_OFFSET
    dim_type: DimensionType = DimensionType.DISTANCE
    is_constraint: bool = False
    formula: Optional[Value] = None
    variable_name: Optional[str] = None
    display_mode: DisplayMode = DisplayMode.VALUE
    source_a: Optional[Primitive] = field(default=None, repr=False)
    source_b: Optional[Primitive] = field(default=None, repr=False)
    source_a_id: Optional[int] = None
    source_b_id: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    angle_start: Optional[float] = None
    angle_sweep: Optional[float] = None
    variables: Optional[Parameters] = field(default=None, repr=False)

    kind = "dimension"

    # --- Messung ----------------------------------------------------------

    @property
    def sources(self) -> List[Primitive]:
        return [s for s in (self.source_a, self.source_b) if s is not None]

    @property
    def value(self) -> float:
        """Gemessener Wert aus den Endpunkten (nach sync_from_sources aktuell)"""
        if self.dim_type is DimensionType.DX:
            return abs(self.x2 - self.x1)
        if self.dim_type is DimensionType.DY:
            return abs(self.y2 - self.y1)
        if self.dim_type is DimensionType.ANGLE:
            if self.angle_sweep is not None:
                return abs(self.angle_sweep)
            return abs(math.atan2(self.y2 - self.y1, self.x2 - self.x1))
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    def measure(self) -> float:
        """Gemessener Wert direkt aus den Quellen"""
        if self.source_a is None:
            return self.value
        det = _measure_coordinates(self.dim_type, self.source_a, self.source_b)
        measured = Dimension(det.x1, det.y1, det.x2, det.y2, dim_type=self.dim_type,
                             angle_sweep=det.angle_sweep)
        return measured.value

    def sync_from_sources(self) -> None:
        """Übernimmt Endpunkte (und Winkeldaten) aus den aktuellen Quellen"""
        if self.source_a is None:
            return
        det = _measure_coordinates(self.dim_type, self.source_a, self.source_b)
        self.x1, self.y1, self.x2, self.y2 = det.x1, det.y1, det.x2, det.y2
        if self.dim_type is DimensionType.ANGLE:
            self.angle_start = det.angle_start
            self.angle_sweep = det.angle_sweep

    # --- Constraint-Verhalten ---------------------------------------------

    @property
    def is_active_constraint(self) -> bool:
        return self.is_constraint and self.source_a is not None

    def resolved_formula(self) -> float:
        table = self.variables if self.variables is not None else Parameters()
        v = table.resolve(self.formula)
        if math.isnan(v):
            return v
        if self.min is not None:
            v = max(v, float(self.min))
        if self.max is not None:
            v = min(v, float(self.max))
        return v

    def equivalent_constraint(self) -> Optional[Constraint]:
        """
        Konkreter Constraint mit dem aufgelösten Zielwert, oder None
        (passiv, Formel nicht auflösbar, Paarung ohne Constraint-Semantik).
        """
        if not self.is_active_constraint:
            return None
        t = self.resolved_formula()
        if math.isnan(t):
            return None
        a, b, kind = self.source_a, self.source_b, self.dim_type

        if b is None:
            if isinstance(a, Segment2D):
                if kind is DimensionType.DISTANCE:
                    return Length(a, t)
                if kind in (DimensionType.DX, DimensionType.DY):
                    return AxisDistance(a.p1, a.p2, kind.value[1], t)
            elif _is_round(a):
                if kind is DimensionType.RADIUS:
                    return Radius(a, t)
                if kind is DimensionType.DIAMETER:
                    return Radius(a, t / 2)
            return None

        if isinstance(a, Segment2D) and isinstance(b, Segment2D):
            if kind is DimensionType.ANGLE:
                current = normalize_angle(b.angle - a.angle)
                return Angle(a, b, t if current >= 0 else -t)
            if kind is DimensionType.DISTANCE:
                return AnchorDistance(a, b, t)
            return None

        if isinstance(a, Point2D) and isinstance(b, Segment2D):
            return PointSegmentDistance(a, b, t) if kind is DimensionType.DISTANCE else None
        if isinstance(a, Segment2D) and isinstance(b, Point2D):
            return PointSegmentDistance(b, a, t) if kind is DimensionType.DISTANCE else None

        pa = a if isinstance(a, Point2D) else (a.center if _is_round(a) else None)
        pb = b if isinstance(b, Point2D) else (b.center if _is_round(b) else None)
        if pa is not None and pb is not None:
            if kind is DimensionType.DISTANCE:
                return Distance(pa, pb, t)
            if kind in (DimensionType.DX, DimensionType.DY):
                return AxisDistance(pa, pb, kind.value[1], t)
            return None
        if kind is DimensionType.DISTANCE:
            return AnchorDistance(a, b, t)
        return None

    def error(self) -> float:
        c = self.equivalent_constraint()
        return c.error() if c is not None else 0.0

    def apply(self) -> None:
        c = self.equivalent_constraint()
        if c is not None:
            c.apply()

    def involved_points(self) -> List[Point2D]:
        points: List[Point2D] = []
        for src in self.sources:
            for p in src.defining_points():
                if not any(p is q for q in points):
                    points.append(p)
        return points

    # --- Darstellung ------------------------------------------------------

    @property
    def display_label(self) -> str:
        val = self.value
        if self.dim_type is DimensionType.ANGLE:
            formatted, unit = f"{math.degrees(val):.1f}", "°"
        else:
            prefix = "Ø" if self.dim_type is DimensionType.DIAMETER else (
                "R" if self.dim_type is DimensionType.RADIUS else "")
            formatted, unit = f"{prefix}{val:.2f}", ""

        if self.display_mode is DisplayMode.FORMULA and self.formula is not None:
            return str(self.formula)
        if self.display_mode is DisplayMode.BOTH and self.formula is not None:
            return f"{self.formula} = {formatted}{unit}"
        return f"{formatted}{unit}"

    def _dimension_line(self) -> Tuple[float, float, float, float]:
        dx, dy = self.x2 - self.x1, self.y2 - self.y1
        length = math.hypot(dx, dy) or EPS
        ox, oy = -dy / length * self.offset, dx / length * self.offset
        return self.x1 + ox, self.y1 + oy, self.x2 + ox, self.y2 + oy

    def distance_to(self, wx: float, wy: float) -> float:
        if self.dim_type is DimensionType.ANGLE:
            return math.hypot(wx - self.x1, wy - self.y1)
        return point_segment_distance(wx, wy, *self._dimension_line())

    def get_bounds(self) -> Bounds:
        pad = abs(self.offset) + 5
        return Bounds(min(self.x1, self.x2) - pad, min(self.y1, self.y2) - pad,
                      max(self.x1, self.x2) + pad, max(self.y1, self.y2) + pad)

    def get_snap_points(self) -> List[SnapPoint]:
        return [SnapPoint(self.x1, self.y1, SnapType.ENDPOINT),
                SnapPoint(self.x2, self.y2, SnapType.ENDPOINT)]

    def translate(self, dx: float, dy: float) -> None:
        self.x1 += dx
        self.y1 += dy
        self.x2 += dx
        self.y2 += dy

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({
            'x1': self.x1, 'y1': self.y1, 'x2': self.x2, 'y2': self.y2,
            'offset': self.offset,
            'dimType': self.dim_type.value,
            'isConstraint': self.is_constraint,
            'displayMode': self.display_mode.value,
        })
        optional = {
            'variableName': self.variable_name,
            'formula': self.formula,
            'sourceAId': self.source_a.id if self.source_a is not None else None,
            'sourceBId': self.source_b.id if self.source_b is not None else None,
            '_angleStart': self.angle_start,
            '_angleSweep': self.angle_sweep,
            'min': self.min,
            'max': self.max,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        if not self.visible:
            d['visible'] = False
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Dimension':
        return cls(
            data['x1'], data['y1'], data['x2'], data['y2'],
            offset=data.get('offset', Tolerances.DEFAULT_DIMENSION_OFFSET),
            dim_type=DimensionType(data.get('dimType', 'distance')),
            is_constraint=bool(data.get('isConstraint', False)),
            formula=data.get('formula'),
            variable_name=data.get('variableName'),
            display_mode=DisplayMode(data.get('displayMode', 'value')),
            source_a_id=data.get('sourceAId'),
            source_b_id=data.get('sourceBId'),
            min=data.get('min'),
            max=data.get('max'),
            angle_start=data.get('_angleStart'),
            angle_sweep=data.get('_angleSweep'),
            id=data.get('id'),
            layer=data.get('layer', "0"),
            color=data.get('color'),
            visible=data.get('visible', True),
        )


@dataclass(eq=False)
class DimensionConstraint(Constraint):
    """Eintrag einer aktiven Bemaßung in der Constraint-Liste"""
    dimension: Dimension

    type: ClassVar[ConstraintType] = ConstraintType.DIMENSION
    editable: ClassVar[bool] = True

    def __post_init__(self):
        self.id = self.dimension.id

    def error(self) -> float:
        return self.dimension.error()

    def apply(self) -> None:
        self.dimension.apply()

    def involved_points(self) -> List[Point2D]:
        return self.dimension.involved_points()

    def target(self) -> float:
        return self.dimension.resolved_formula()

    @property
    def is_active(self) -> bool:
        return self.dimension.equivalent_constraint() is not None

    def referenced_primitives(self) -> List[Primitive]:
        return [self.dimension] + self.dimension.sources

    def replace_reference(self, old: Primitive, new: Primitive) -> bool:
        replaced = False
        if self.dimension.source_a is old:
            self.dimension.source_a = new
            replaced = True
        if self.dimension.source_b is old:
            self.dimension.source_b = new
            replaced = True
        return replaced

    def signature(self) -> Tuple:
        return (self.type, (id(self.dimension),), None, None, None)

    def to_dict(self) -> Dict[str, Any]:
        return self.dimension.to_dict()

    def __str__(self) -> str:
        return f"DIMENSION#{self.dimension.id}({self.dimension.dim_type.value}) = {self.dimension.formula}"
