"""
parasketch - Constraint System
Geometrische Beziehungen zwischen Skizzen-Elementen

Jeder Constraint liefert:
- error():           Residuum (>= 0, 0 = exakt erfüllt)
- apply():           ein Relaxationsschritt Richtung Erfüllung
- involved_points(): die Punkte, die der Schritt bewegen kann

Zielwerte (value) dürfen Zahlen, Variablennamen oder Formeln sein und werden
bei jedem Aufruf über die gebundene Parametertabelle aufgelöst, danach auf
[min, max] geklemmt. Ein NaN-Ziel neutralisiert den Constraint.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Type, Union
import math

from .config.tolerances import Tolerances
from .geometry import Arc2D, Circle2D, Point2D, Primitive, Segment2D, normalize_angle, project_on_line
from .parameters import Parameters

EPS = Tolerances.EPSILON_MATH

Value = Union[float, int, str]
CircleLike = Union[Circle2D, Arc2D]

_NO_VARIABLES = Parameters()


class ConstraintType(Enum):
    """Constraint-Arten; die Werte sind die Namen im Serialisierungsformat"""
    COINCIDENT = "coincident"
    DISTANCE = "distance"
    FIXED = "fixed"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    PARALLEL = "parallel"
    PERPENDICULAR = "perpendicular"
    ANGLE = "angle"
    EQUAL_LENGTH = "equal_length"
    LENGTH = "length"
    RADIUS = "radius"
    TANGENT = "tangent"
    POINT_ON_LINE = "on_line"
    POINT_ON_CIRCLE = "on_circle"
    MIDPOINT = "midpoint"

    # Aktive Bemaßung in der Constraint-Liste (wird nie in 'constraints' serialisiert)
    DIMENSION = "dimension"


class ConstraintStatus(Enum):
    """Zustand eines einzelnen Constraints"""
    SATISFIED = auto()
    VIOLATED = auto()
    INACTIVE = auto()  # Ziel nicht auflösbar (NaN)


# =============================================================================
# Hilfsfunktionen für Relaxationsschritte
# =============================================================================

def _move(p: Point2D, dx: float, dy: float) -> None:
    if not p.fixed:
        p.x += dx
        p.y += dy


def _unit(dx: float, dy: float) -> Optional[Tuple[float, float]]:
    length = math.hypot(dx, dy)
    if length < EPS:
        return None
    return dx / length, dy / length


def _place_segment(seg: Segment2D, ux: float, uy: float, length: float) -> None:
    """
    Richtet seg entlang (ux, uy) mit gegebener Länge aus.
    Ein fester Endpunkt bleibt Drehpunkt, sonst dreht/skaliert der Mittelpunkt.
    """
    p1, p2 = seg.p1, seg.p2
    if p1.fixed and p2.fixed:
        return
    if p1.fixed:
        p2.move_to(p1.x + ux * length, p1.y + uy * length)
    elif p2.fixed:
        p1.move_to(p2.x - ux * length, p2.y - uy * length)
    else:
        mx, my = seg.midpoint
        half = length / 2
        p1.move_to(mx - ux * half, my - uy * half)
        p2.move_to(mx + ux * half, my + uy * half)


def _orient_segment(seg: Segment2D, ux: float, uy: float) -> None:
    length = seg.length
    if length < EPS:
        return
    _place_segment(seg, ux, uy, length)


def _scale_segment(seg: Segment2D, target: float) -> None:
    u = _unit(seg.dx, seg.dy)
    if u is None:
        return
    _place_segment(seg, u[0], u[1], target)


def _shift_segment(seg: Segment2D, dx: float, dy: float) -> None:
    _move(seg.p1, dx, dy)
    if seg.p2 is not seg.p1:
        _move(seg.p2, dx, dy)


def _pull_apart(a: Point2D, b: Point2D, ux: float, uy: float, err: float) -> None:
    """Verteilt err entlang a->b; err > 0 zieht zusammen, err < 0 schiebt auseinander."""
    if a.fixed and b.fixed:
        return
    if a.fixed:
        b.translate(-ux * err, -uy * err)
    elif b.fixed:
        a.translate(ux * err, uy * err)
    else:
        half = err / 2
        a.translate(ux * half, uy * half)
        b.translate(-ux * half, -uy * half)


# =============================================================================
# Basisklasse
# =============================================================================

@dataclass(eq=False)
class Constraint:
    """
    Basisklasse aller Constraints.

    REF_FIELDS listet die Attribute, die auf Primitive zeigen; WIRE_KEYS deren
    Schlüssel im Serialisierungsformat.
    """
    id: Optional[int] = field(default=None, kw_only=True)
    min: Optional[float] = field(default=None, kw_only=True)
    max: Optional[float] = field(default=None, kw_only=True)
    variables: Optional[Parameters] = field(default=None, kw_only=True, repr=False)

    type: ClassVar[ConstraintType]
    editable: ClassVar[bool] = False
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ()
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ()

    # --- Zielwert ---------------------------------------------------------

    def resolve(self, value: Any) -> float:
        table = self.variables if self.variables is not None else _NO_VARIABLES
        return table.resolve(value)

    def clamp(self, v: float) -> float:
        if math.isnan(v):
            return v
        if self.min is not None:
            v = max(v, float(self.min))
        if self.max is not None:
            v = min(v, float(self.max))
        return v

    def target(self) -> float:
        """Aufgelöster und geklemmter Zielwert (NaN = inaktiv)"""
        return self.clamp(self.resolve(getattr(self, 'value', None)))

    @property
    def is_active(self) -> bool:
        if not hasattr(self, 'value'):
            return True
        return not math.isnan(self.target())

    # --- Solver-Schnittstelle ---------------------------------------------

    def error(self) -> float:
        raise NotImplementedError

    def apply(self) -> None:
        raise NotImplementedError

    def involved_points(self) -> List[Point2D]:
        raise NotImplementedError

    def status(self, tolerance: float = Tolerances.SOLVER_TOLERANCE) -> ConstraintStatus:
        if not self.is_active:
            return ConstraintStatus.INACTIVE
        if self.error() <= tolerance:
            return ConstraintStatus.SATISFIED
        return ConstraintStatus.VIOLATED

    # --- Referenzen -------------------------------------------------------

    def referenced_primitives(self) -> List[Primitive]:
        return [getattr(self, name) for name in self.REF_FIELDS]

    def references(self, prim: Primitive) -> bool:
        return any(ref is prim for ref in self.referenced_primitives())

    def replace_reference(self, old: Primitive, new: Primitive) -> bool:
        replaced = False
        for name in self.REF_FIELDS:
            if getattr(self, name) is old:
                setattr(self, name, new)
                replaced = True
        return replaced

    def signature(self) -> Tuple:
        """Identität von Art, Referenzen und Wert (für Duplikat-Erkennung)"""
        refs = tuple(id(ref) for ref in self.referenced_primitives())
        return (self.type, refs, getattr(self, 'value', None), self.min, self.max)

    # --- Lebenszyklus in der Szene -----------------------------------------

    def on_added(self, others: Sequence['Constraint']) -> None:
        """Hook beim Einfügen in die Szene; others sind die bereits vorhandenen Constraints"""

    def on_loaded(self, others: Sequence['Constraint']) -> None:
        """Hook beim Laden aus dem Serialisierungsformat"""
        self.on_added(others)

    def on_removed(self, remaining: Sequence['Constraint']) -> None:
        """Hook nach dem Entfernen; remaining ist die verbleibende Constraint-Liste"""

    # --- Serialisierung ---------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {'id': self.id, 'type': self.type.value}
        for name, key in zip(self.REF_FIELDS, self.WIRE_KEYS):
            d[key] = getattr(self, name).id
        if hasattr(self, 'value'):
            d['value'] = self.value
        if self.min is not None:
            d['min'] = self.min
        if self.max is not None:
            d['max'] = self.max
        return d

    def __str__(self) -> str:
        refs = ", ".join(f"{type(r).__name__}#{r.id}" for r in self.referenced_primitives())
        value = f" = {self.value}" if hasattr(self, 'value') else ""
        return f"{self.type.name}({refs}){value}"


# =============================================================================
# Punkt-Constraints
# =============================================================================

@dataclass(eq=False)
class Coincident(Constraint):
    pt_a: Point2D
    pt_b: Point2D

    type: ClassVar[ConstraintType] = ConstraintType.COINCIDENT
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt_a', 'pt_b')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('ptA', 'ptB')

    def error(self) -> float:
        return self.pt_a.distance_to_point(self.pt_b)

    def apply(self) -> None:
        a, b = self.pt_a, self.pt_b
        if a is b or (a.fixed and b.fixed):
            return
        if a.fixed:
            b.move_to(a.x, a.y)
        elif b.fixed:
            a.move_to(b.x, b.y)
        else:
            mx, my = (a.x + b.x) / 2, (a.y + b.y) / 2
            a.move_to(mx, my)
            b.move_to(mx, my)

    def involved_points(self) -> List[Point2D]:
        return [self.pt_a, self.pt_b]


@dataclass(eq=False)
class Distance(Constraint):
    pt_a: Point2D
    pt_b: Point2D
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.DISTANCE
    editable: ClassVar[bool] = True
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt_a', 'pt_b')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('ptA', 'ptB')

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        return abs(self.pt_a.distance_to_point(self.pt_b) - t)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        a, b = self.pt_a, self.pt_b
        u = _unit(b.x - a.x, b.y - a.y)
        if u is None:
            return
        err = a.distance_to_point(b) - t
        _pull_apart(a, b, u[0], u[1], err)

    def involved_points(self) -> List[Point2D]:
        return [self.pt_a, self.pt_b]


@dataclass(eq=False)
class Fixed(Constraint):
    """Hält einen Punkt auf (x, y); markiert ihn als fixed."""
    pt: Point2D
    x: Optional[float] = None
    y: Optional[float] = None

    type: ClassVar[ConstraintType] = ConstraintType.FIXED
    editable: ClassVar[bool] = True
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt',)
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('pt',)

    def __post_init__(self):
        if self.x is None:
            self.x = self.pt.x
        if self.y is None:
            self.y = self.pt.y
        # Das fixed-Flag setzt erst die Szene (on_added / on_loaded)
        self._was_fixed = False

    def error(self) -> float:
        return math.hypot(self.pt.x - self.x, self.pt.y - self.y)

    def apply(self) -> None:
        self.pt.move_to(self.x, self.y)

    def involved_points(self) -> List[Point2D]:
        return [self.pt]

    def replace_reference(self, old: Primitive, new: Primitive) -> bool:
        replaced = super().replace_reference(old, new)
        if replaced:
            new.fixed = True
        return replaced

    def _sharing(self, others: Sequence[Constraint]) -> List['Fixed']:
        return [c for c in others
                if c is not self and isinstance(c, Fixed) and c.pt is self.pt]

    def on_added(self, others: Sequence[Constraint]) -> None:
        sharing = self._sharing(others)
        self._was_fixed = sharing[0]._was_fixed if sharing else self.pt.fixed
        self.pt.fixed = True

    def on_loaded(self, others: Sequence[Constraint]) -> None:
        # Gespeichertes fixed-Flag stammt vom Constraint selbst
        self._was_fixed = False
        self.pt.fixed = True

    def on_removed(self, remaining: Sequence[Constraint]) -> None:
        if not self._sharing(remaining):
            self.pt.fixed = self._was_fixed

    def signature(self) -> Tuple:
        return (self.type, (id(self.pt),), (self.x, self.y), None, None)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['fx'] = self.x
        d['fy'] = self.y
        return d

    def __str__(self) -> str:
        return f"FIXED(Point2D#{self.pt.id}) = ({self.x}, {self.y})"


# =============================================================================
# Segment-Constraints
# =============================================================================

@dataclass(eq=False)
class Horizontal(Constraint):
    seg: Segment2D

    type: ClassVar[ConstraintType] = ConstraintType.HORIZONTAL
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('seg',)
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('seg',)

    def error(self) -> float:
        return abs(self.seg.p2.y - self.seg.p1.y)

    def apply(self) -> None:
        p1, p2 = self.seg.p1, self.seg.p2
        if p1.fixed and p2.fixed:
            return
        if p1.fixed:
            p2.y = p1.y
        elif p2.fixed:
            p1.y = p2.y
        else:
            avg = (p1.y + p2.y) / 2
            p1.y = avg
            p2.y = avg

    def involved_points(self) -> List[Point2D]:
        return [self.seg.p1, self.seg.p2]


@dataclass(eq=False)
class Vertical(Constraint):
    seg: Segment2D

    type: ClassVar[ConstraintType] = ConstraintType.VERTICAL
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('seg',)
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('seg',)

    def error(self) -> float:
        return abs(self.seg.p2.x - self.seg.p1.x)

    def apply(self) -> None:
        p1, p2 = self.seg.p1, self.seg.p2
        if p1.fixed and p2.fixed:
            return
        if p1.fixed:
            p2.x = p1.x
        elif p2.fixed:
            p1.x = p2.x
        else:
            avg = (p1.x + p2.x) / 2
            p1.x = avg
            p2.x = avg

    def involved_points(self) -> List[Point2D]:
        return [self.seg.p1, self.seg.p2]


@dataclass(eq=False)
class _SegmentPair(Constraint):
    seg_a: Segment2D
    seg_b: Segment2D

    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('seg_a', 'seg_b')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('segA', 'segB')

    def involved_points(self) -> List[Point2D]:
        return [self.seg_a.p1, self.seg_a.p2, self.seg_b.p1, self.seg_b.p2]

    def _units(self) -> Optional[Tuple[Tuple[float, float], Tuple[float, float]]]:
        ua = _unit(self.seg_a.dx, self.seg_a.dy)
        ub = _unit(self.seg_b.dx, self.seg_b.dy)
        if ua is None or ub is None:
            return None
        return ua, ub


@dataclass(eq=False)
class Parallel(_SegmentPair):
    type: ClassVar[ConstraintType] = ConstraintType.PARALLEL

    def error(self) -> float:
        units = self._units()
        if units is None:
            return 0.0
        (ax, ay), (bx, by) = units
        return abs(ax * by - ay * bx)

    def apply(self) -> None:
        units = self._units()
        if units is None:
            return
        (ax, ay), (bx, by) = units
        len_a = self.seg_a.length
        # Achsen-Einrasten, sonst driftet B um Rundungsfehler
        if abs(self.seg_a.dy) < EPS * len_a:
            ax, ay = math.copysign(1.0, ax), 0.0
        elif abs(self.seg_a.dx) < EPS * len_a:
            ax, ay = 0.0, math.copysign(1.0, ay)
        sign = 1.0 if ax * bx + ay * by >= 0 else -1.0
        _orient_segment(self.seg_b, sign * ax, sign * ay)


@dataclass(eq=False)
class Perpendicular(_SegmentPair):
    type: ClassVar[ConstraintType] = ConstraintType.PERPENDICULAR

    def error(self) -> float:
        units = self._units()
        if units is None:
            return 0.0
        (ax, ay), (bx, by) = units
        return abs(ax * bx + ay * by)

    def apply(self) -> None:
        units = self._units()
        if units is None:
            return
        (ax, ay), (bx, by) = units
        nx, ny = -ay, ax
        sign = 1.0 if nx * bx + ny * by >= 0 else -1.0
        _orient_segment(self.seg_b, sign * nx, sign * ny)


@dataclass(eq=False)
class Angle(_SegmentPair):
    """Gerichteter Winkel von A nach B in Radians"""
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.ANGLE
    editable: ClassVar[bool] = True

    def error(self) -> float:
        t = self.target()
        if math.isnan(t) or self._units() is None:
            return 0.0
        return abs(normalize_angle(self.seg_b.angle - self.seg_a.angle - t))

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t) or self._units() is None:
            return
        direction = self.seg_a.angle + t
        _orient_segment(self.seg_b, math.cos(direction), math.sin(direction))


@dataclass(eq=False)
class EqualLength(_SegmentPair):
    type: ClassVar[ConstraintType] = ConstraintType.EQUAL_LENGTH

    def error(self) -> float:
        return abs(self.seg_a.length - self.seg_b.length)

    def apply(self) -> None:
        a, b = self.seg_a, self.seg_b
        a_locked = a.p1.fixed and a.p2.fixed
        b_locked = b.p1.fixed and b.p2.fixed
        if a_locked and b_locked:
            return
        if a_locked:
            target = a.length
        elif b_locked:
            target = b.length
        else:
            target = (a.length + b.length) / 2
        _scale_segment(b, target)
        _scale_segment(a, target)


@dataclass(eq=False)
class Length(Constraint):
    seg: Segment2D
    value: Value = 0.0

    type: ClassVar[ConstraintType] = ConstraintType.LENGTH
    editable: ClassVar[bool] = True
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('seg',)
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('seg',)

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        return abs(self.seg.length - t)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        _scale_segment(self.seg, t)

    def involved_points(self) -> List[Point2D]:
        return [self.seg.p1, self.seg.p2]


# =============================================================================
# Kreis-Constraints
# =============================================================================

@dataclass(eq=False)
class Radius(Constraint):
    shape: CircleLike
    value: Value = 1.0

    type: ClassVar[ConstraintType] = ConstraintType.RADIUS
    editable: ClassVar[bool] = True
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('shape',)
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('shape',)

    def error(self) -> float:
        t = self.target()
        if math.isnan(t):
            return 0.0
        return abs(self.shape.radius - t)

    def apply(self) -> None:
        t = self.target()
        if math.isnan(t):
            return
        self.shape.radius = t

    def involved_points(self) -> List[Point2D]:
        return [self.shape.center]


@dataclass(eq=False)
class Tangent(Constraint):
    """Segment-Gerade berührt den Kreis: Abstand Mittelpunkt-Gerade = r"""
    seg: Segment2D
    circle: CircleLike

    type: ClassVar[ConstraintType] = ConstraintType.TANGENT
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('seg', 'circle')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('seg', 'circle')

    def _foot(self) -> Optional[Tuple[float, float, float]]:
        seg, c = self.seg, self.circle.center
        if seg.length < EPS:
            return None
        _, fx, fy = project_on_line(c.x, c.y, seg.x1, seg.y1, seg.x2, seg.y2)
        return fx, fy, math.hypot(fx - c.x, fy - c.y)

    def error(self) -> float:
        foot = self._foot()
        if foot is None:
            return 0.0
        return abs(foot[2] - self.circle.radius)

    def apply(self) -> None:
        foot = self._foot()
        if foot is None:
            return
        fx, fy, dist = foot
        if dist < EPS:
            return
        c = self.circle.center
        nx, ny = (fx - c.x) / dist, (fy - c.y) / dist
        correction = self.circle.radius - dist
        _shift_segment(self.seg, nx * correction, ny * correction)

    def involved_points(self) -> List[Point2D]:
        return [self.seg.p1, self.seg.p2, self.circle.center]


@dataclass(eq=False)
class PointOnLine(Constraint):
    """Punkt liegt auf der unendlichen Geraden durch seg"""
    pt: Point2D
    seg: Segment2D

    type: ClassVar[ConstraintType] = ConstraintType.POINT_ON_LINE
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt', 'seg')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('pt', 'seg')

    def error(self) -> float:
        seg, p = self.seg, self.pt
        if seg.length < EPS:
            return 0.0
        _, fx, fy = project_on_line(p.x, p.y, seg.x1, seg.y1, seg.x2, seg.y2)
        return math.hypot(p.x - fx, p.y - fy)

    def apply(self) -> None:
        seg, p = self.seg, self.pt
        if seg.length < EPS:
            return
        _, fx, fy = project_on_line(p.x, p.y, seg.x1, seg.y1, seg.x2, seg.y2)
        if not p.fixed:
            p.move_to(fx, fy)
        else:
            _shift_segment(seg, p.x - fx, p.y - fy)

    def involved_points(self) -> List[Point2D]:
        return [self.pt, self.seg.p1, self.seg.p2]


@dataclass(eq=False)
class PointOnCircle(Constraint):
    pt: Point2D
    circle: CircleLike

    type: ClassVar[ConstraintType] = ConstraintType.POINT_ON_CIRCLE
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt', 'circle')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('pt', 'circle')

    def error(self) -> float:
        c = self.circle.center
        return abs(self.pt.distance_to_point(c) - self.circle.radius)

    def apply(self) -> None:
        p, c, r = self.pt, self.circle.center, self.circle.radius
        u = _unit(p.x - c.x, p.y - c.y)
        if u is None:
            return
        if not p.fixed:
            p.move_to(c.x + u[0] * r, c.y + u[1] * r)
        elif not c.fixed:
            c.move_to(p.x - u[0] * r, p.y - u[1] * r)

    def involved_points(self) -> List[Point2D]:
        return [self.pt, self.circle.center]


@dataclass(eq=False)
class Midpoint(Constraint):
    pt: Point2D
    seg: Segment2D

    type: ClassVar[ConstraintType] = ConstraintType.MIDPOINT
    REF_FIELDS: ClassVar[Tuple[str, ...]] = ('pt', 'seg')
    WIRE_KEYS: ClassVar[Tuple[str, ...]] = ('pt', 'seg')

    def error(self) -> float:
        mx, my = self.seg.midpoint
        return math.hypot(self.pt.x - mx, self.pt.y - my)

    def apply(self) -> None:
        mx, my = self.seg.midpoint
        if not self.pt.fixed:
            self.pt.move_to(mx, my)
        else:
            _shift_segment(self.seg, self.pt.x - mx, self.pt.y - my)

    def involved_points(self) -> List[Point2D]:
        return [self.pt, self.seg.p1, self.seg.p2]


# =============================================================================
# Registry & Factories
# =============================================================================

CONSTRAINT_CLASSES: Dict[ConstraintType, Type[Constraint]] = {
    cls.type: cls for cls in (
        Coincident, Distance, Fixed, Horizontal, Vertical, Parallel, Perpendicular,
        Angle, EqualLength, Length, Radius, Tangent, PointOnLine, PointOnCircle, Midpoint,
    )
}

_REF_TYPES: Dict[str, Tuple[type, ...]] = {
    'pt_a': (Point2D,), 'pt_b': (Point2D,), 'pt': (Point2D,),
    'seg': (Segment2D,), 'seg_a': (Segment2D,), 'seg_b': (Segment2D,),
    'shape': (Circle2D, Arc2D), 'circle': (Circle2D, Arc2D),
}


def constraint_from_dict(data: Dict[str, Any],
                         lookup: Callable[[Any], Optional[Primitive]]) -> Optional[Constraint]:
    """
    Baut einen Constraint aus dem Serialisierungsformat.

    Args:
        data: Constraint-Dict ({id, type, refs..., value?, min?, max?})
        lookup: id -> Primitive (oder None)

    Returns:
        Constraint oder None, wenn Art oder Referenzen fehlen
    """
    try:
        ctype = ConstraintType(data.get('type'))
    except ValueError:
        return None
    cls = CONSTRAINT_CLASSES.get(ctype)
    if cls is None:
        return None

    kwargs: Dict[str, Any] = {}
    for name, key in zip(cls.REF_FIELDS, cls.WIRE_KEYS):
        ref = lookup(data.get(key))
        if ref is None or not isinstance(ref, _REF_TYPES[name]):
            return None
        kwargs[name] = ref
    if ctype is ConstraintType.FIXED:
        kwargs['x'] = data.get('fx')
        kwargs['y'] = data.get('fy')
    elif 'value' in data:
        kwargs['value'] = data['value']

    return cls(**kwargs, id=data.get('id'), min=data.get('min'), max=data.get('max'))


def make_coincident(a: Point2D, b: Point2D) -> Coincident:
    return Coincident(a, b)


def make_distance(a: Point2D, b: Point2D, value: Value) -> Distance:
    return Distance(a, b, value)


def make_fixed(pt: Point2D, x: Optional[float] = None, y: Optional[float] = None) -> Fixed:
    return Fixed(pt, x, y)


def make_horizontal(seg: Segment2D) -> Horizontal:
    return Horizontal(seg)


def make_vertical(seg: Segment2D) -> Vertical:
    return Vertical(seg)


def make_parallel(a: Segment2D, b: Segment2D) -> Parallel:
    return Parallel(a, b)


def make_perpendicular(a: Segment2D, b: Segment2D) -> Perpendicular:
    return Perpendicular(a, b)


def make_angle(a: Segment2D, b: Segment2D, value: Value) -> Angle:
    """Winkel in Radians, gemessen von a nach b"""
    return Angle(a, b, value)


def make_equal_length(a: Segment2D, b: Segment2D) -> EqualLength:
    return EqualLength(a, b)


def make_length(seg: Segment2D, value: Value) -> Length:
    return Length(seg, value)


def make_radius(shape: CircleLike, value: Value) -> Radius:
    return Radius(shape, value)


def make_tangent(seg: Segment2D, circle: CircleLike) -> Tangent:
    return Tangent(seg, circle)


def make_point_on_line(pt: Point2D, seg: Segment2D) -> PointOnLine:
    return PointOnLine(pt, seg)


def make_point_on_circle(pt: Point2D, circle: CircleLike) -> PointOnCircle:
    return PointOnCircle(pt, circle)


def make_midpoint(pt: Point2D, seg: Segment2D) -> Midpoint:
    return Midpoint(pt, seg)


def is_constraint_satisfied(c: Constraint, tolerance: float = Tolerances.SOLVER_TOLERANCE) -> bool:
    return c.status(tolerance) is not ConstraintStatus.VIOLATED
