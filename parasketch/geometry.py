"""
parasketch - Geometrie-Primitives
Punkte, Segmente, Kreise, Bögen und Texte der Skizze

Punkte sind die einzigen Besitzer von Koordinaten. Segmente, Kreise und Bögen
referenzieren Punkte per Objekt-Referenz; zwei Shapes mit demselben Punkt-Objekt
sind exakt verbunden. Alle Klassen vergleichen per Identität (eq=False).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import math

from .config.tolerances import Tolerances


class ConstructionType(Enum):
    """Unterart von Konstruktions-Segmenten"""
    FINITE = "finite"
    INFINITE_START = "infinite-start"
    INFINITE_END = "infinite-end"
    INFINITE_BOTH = "infinite-both"


class DashStyle(Enum):
    DASHED = "dashed"
    DASH_DOT = "dash-dot"
    DOTTED = "dotted"


class SnapType(Enum):
    ENDPOINT = "endpoint"
    MIDPOINT = "midpoint"
    CENTER = "center"
    QUADRANT = "quadrant"
    INSERTION = "insertion"


@dataclass(frozen=True)
class SnapPoint:
    x: float
    y: float
    kind: SnapType


@dataclass
class Bounds:
    """Achsenparalleles Rechteck"""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def union(self, other: 'Bounds') -> 'Bounds':
        return Bounds(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                      max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


def normalize_angle(a: float) -> float:
    """Winkel auf (-pi, pi]"""
    a = math.fmod(a, 2 * math.pi)
    if a <= -math.pi:
        a += 2 * math.pi
    elif a > math.pi:
        a -= 2 * math.pi
    return a


def point_segment_distance(px: float, py: float, x1: float, y1: float, x2: float, y2: float,
                           t_min: float = 0.0, t_max: float = 1.0) -> float:
    """
    Abstand von (px, py) zum Segment (x1,y1)-(x2,y2).
    t_min/t_max begrenzen den Parameter; -inf/inf ergeben Strahl bzw. Gerade.
    """
    dx, dy = x2 - x1, y2 - y1
    len_sq = dx * dx + dy * dy
    if len_sq < Tolerances.EPSILON_MATH:
        return math.hypot(px - x1, py - y1)
    t = ((px - x1) * dx + (py - y1) * dy) / len_sq
    t = max(t_min, min(t_max, t))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


def project_on_line(px: float, py: float, x1: float, y1: float, x2: float, y2: float) -> Tuple[float, float, float]:
    """Projektion auf die unendliche Gerade: (t, fx, fy). Entartet -> (0, x1, y1)."""
    dx, dy = x2 - x1, y2 - y1
    len_sq = dx * dx + dy * dy
    if len_sq < Tolerances.EPSILON_MATH:
        return 0.0, x1, y1
    t = ((px - x1) * dx + (py - y1) * dy) / len_sq
    return t, x1 + t * dx, y1 + t * dy


def line_intersection(a: 'Segment2D', b: 'Segment2D') -> Optional[Tuple[float, float]]:
    """Schnittpunkt der unendlichen Geraden, None bei Parallelität."""
    d1x, d1y = a.x2 - a.x1, a.y2 - a.y1
    d2x, d2y = b.x2 - b.x1, b.y2 - b.y1
    denom = d1x * d2y - d1y * d2x
    if abs(denom) < Tolerances.EPSILON_MATH:
        return None
    t = ((b.x1 - a.x1) * d2y - (b.y1 - a.y1) * d2x) / denom
    return a.x1 + t * d1x, a.y1 + t * d1y


@dataclass(eq=False)
class Primitive:
    """Gemeinsame Attribute aller Skizzen-Elemente"""
    id: Optional[int] = field(default=None, kw_only=True)
    layer: str = field(default="0", kw_only=True)
    color: Optional[str] = field(default=None, kw_only=True)
    line_width: float = field(default=1.0, kw_only=True)
    selected: bool = field(default=False, kw_only=True)
    visible: bool = field(default=True, kw_only=True)
    construction: bool = field(default=False, kw_only=True)

    kind = "primitive"

    def defining_points(self) -> List['Point2D']:
        """Punkte, über die das Element mit dem Solver verbunden ist"""
        return []

    def distance_to(self, wx: float, wy: float) -> float:
        raise NotImplementedError

    def get_bounds(self) -> Bounds:
        raise NotImplementedError

    def get_snap_points(self) -> List[SnapPoint]:
        return []

    def translate(self, dx: float, dy: float) -> None:
        for p in self.defining_points():
            p.translate(dx, dy)

    def _common_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'layer': self.layer, 'color': self.color}

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(eq=False)
class Point2D(Primitive):
    """2D-Punkt - Grundbaustein aller Geometrie"""
    x: float = 0.0
    y: float = 0.0
    fixed: bool = False

    kind = "point"

    def __post_init__(self):
        self.x = float(self.x)
        self.y = float(self.y)

    def defining_points(self) -> List['Point2D']:
        return [self]

    def distance_to(self, wx: float, wy: float) -> float:
        return math.hypot(self.x - wx, self.y - wy)

    def distance_to_point(self, other: 'Point2D') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def get_bounds(self) -> Bounds:
        return Bounds(self.x, self.y, self.x, self.y)

    def get_snap_points(self) -> List[SnapPoint]:
        return [SnapPoint(self.x, self.y, SnapType.ENDPOINT)]

    def move_to(self, x: float, y: float) -> None:
        self.x = float(x)
        self.y = float(y)

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({'x': self.x, 'y': self.y, 'fixed': self.fixed})
        return d


@dataclass(eq=False)
class Segment2D(Primitive):
    """Strecke zwischen zwei geteilten Punkten"""
    p1: Point2D = None
    p2: Point2D = None
    construction_type: ConstructionType = ConstructionType.FINITE
    construction_dash: DashStyle = DashStyle.DASHED

    kind = "segment"

    @property
    def x1(self) -> float:
        return self.p1.x

    @property
    def y1(self) -> float:
        return self.p1.y

    @property
    def x2(self) -> float:
        return self.p2.x

    @property
    def y2(self) -> float:
        return self.p2.y

    @property
    def dx(self) -> float:
        return self.p2.x - self.p1.x

    @property
    def dy(self) -> float:
        return self.p2.y - self.p1.y

    @property
    def length(self) -> float:
        return math.hypot(self.dx, self.dy)

    @property
    def midpoint(self) -> Tuple[float, float]:
        return ((self.p1.x + self.p2.x) / 2, (self.p1.y + self.p2.y) / 2)

    @property
    def angle(self) -> float:
        """Richtungswinkel in Radians"""
        return math.atan2(self.dy, self.dx)

    def direction(self) -> Tuple[float, float]:
        """Einheitsvektor p1 -> p2, (0, 0) bei Null-Länge"""
        length = self.length
        if length < Tolerances.EPSILON_MATH:
            return (0.0, 0.0)
        return (self.dx / length, self.dy / length)

    def point_at(self, t: float) -> Tuple[float, float]:
        return (self.p1.x + t * self.dx, self.p1.y + t * self.dy)

    def other_point(self, pt: Point2D) -> Point2D:
        return self.p2 if pt is self.p1 else self.p1

    def defining_points(self) -> List[Point2D]:
        return [self.p1, self.p2]

    def _param_range(self) -> Tuple[float, float]:
        if not self.construction:
            return 0.0, 1.0
        return {
            ConstructionType.FINITE: (0.0, 1.0),
            ConstructionType.INFINITE_START: (-math.inf, 1.0),
            ConstructionType.INFINITE_END: (0.0, math.inf),
            ConstructionType.INFINITE_BOTH: (-math.inf, math.inf),
        }[self.construction_type]

    def distance_to(self, wx: float, wy: float) -> float:
        t_min, t_max = self._param_range()
        return point_segment_distance(wx, wy, self.x1, self.y1, self.x2, self.y2, t_min, t_max)

    def get_bounds(self) -> Bounds:
        return Bounds(min(self.x1, self.x2), min(self.y1, self.y2),
                      max(self.x1, self.x2), max(self.y1, self.y2))

    def get_snap_points(self) -> List[SnapPoint]:
        mx, my = self.midpoint
        return [
            SnapPoint(self.x1, self.y1, SnapType.ENDPOINT),
            SnapPoint(self.x2, self.y2, SnapType.ENDPOINT),
            SnapPoint(mx, my, SnapType.MIDPOINT),
        ]

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({'p1': self.p1.id, 'p2': self.p2.id})
        if self.construction:
            d['construction'] = True
            d['constructionType'] = self.construction_type.value
            d['constructionDash'] = self.construction_dash.value
        return d


@dataclass(eq=False)
class Circle2D(Primitive):
    """Kreis mit geteiltem Mittelpunkt"""
    center: Point2D = None
    radius: float = 1.0

    kind = "circle"

    @property
    def diameter(self) -> float:
        return self.radius * 2

    def defining_points(self) -> List[Point2D]:
        return [self.center]

    def distance_to(self, wx: float, wy: float) -> float:
        return abs(math.hypot(wx - self.center.x, wy - self.center.y) - self.radius)

    def get_bounds(self) -> Bounds:
        cx, cy, r = self.center.x, self.center.y, self.radius
        return Bounds(cx - r, cy - r, cx + r, cy + r)

    def get_snap_points(self) -> List[SnapPoint]:
        cx, cy, r = self.center.x, self.center.y, self.radius
        return [
            SnapPoint(cx, cy, SnapType.CENTER),
            SnapPoint(cx + r, cy, SnapType.QUADRANT),
            SnapPoint(cx, cy + r, SnapType.QUADRANT),
            SnapPoint(cx - r, cy, SnapType.QUADRANT),
            SnapPoint(cx, cy - r, SnapType.QUADRANT),
        ]

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({'center': self.center.id, 'radius': self.radius})
        if self.construction:
            d['construction'] = True
        return d


@dataclass(eq=False)
class Arc2D(Primitive):
    """Kreisbogen, gegen den Uhrzeigersinn von start_angle nach end_angle (Radians)"""
    center: Point2D = None
    radius: float = 1.0
    start_angle: float = 0.0
    end_angle: float = math.pi / 2

    kind = "arc"

    @property
    def sweep(self) -> float:
        """Überstrichener Winkel in (0, 2*pi]"""
        sweep = (self.end_angle - self.start_angle) % (2 * math.pi)
        return sweep if sweep > Tolerances.EPSILON_MATH else 2 * math.pi

    @property
    def start_point(self) -> Tuple[float, float]:
        return (self.center.x + self.radius * math.cos(self.start_angle),
                self.center.y + self.radius * math.sin(self.start_angle))

    @property
    def end_point(self) -> Tuple[float, float]:
        return (self.center.x + self.radius * math.cos(self.end_angle),
                self.center.y + self.radius * math.sin(self.end_angle))

    @property
    def mid_point(self) -> Tuple[float, float]:
        a = self.start_angle + self.sweep / 2
        return (self.center.x + self.radius * math.cos(a),
                self.center.y + self.radius * math.sin(a))

    def contains_angle(self, angle: float) -> bool:
        return (angle - self.start_angle) % (2 * math.pi) <= self.sweep + Tolerances.EPSILON_MATH

    def defining_points(self) -> List[Point2D]:
        return [self.center]

    def distance_to(self, wx: float, wy: float) -> float:
        cx, cy = self.center.x, self.center.y
        if self.contains_angle(math.atan2(wy - cy, wx - cx)):
            return abs(math.hypot(wx - cx, wy - cy) - self.radius)
        sx, sy = self.start_point
        ex, ey = self.end_point
        return min(math.hypot(wx - sx, wy - sy), math.hypot(wx - ex, wy - ey))

    def get_bounds(self) -> Bounds:
        cx, cy, r = self.center.x, self.center.y, self.radius
        xs = [self.start_point[0], self.end_point[0]]
        ys = [self.start_point[1], self.end_point[1]]
        for k in range(4):
            a = k * math.pi / 2
            if self.contains_angle(a):
                xs.append(cx + r * math.cos(a))
                ys.append(cy + r * math.sin(a))
        return Bounds(min(xs), min(ys), max(xs), max(ys))

    def get_snap_points(self) -> List[SnapPoint]:
        sx, sy = self.start_point
        ex, ey = self.end_point
        mx, my = self.mid_point
        return [
            SnapPoint(self.center.x, self.center.y, SnapType.CENTER),
            SnapPoint(sx, sy, SnapType.ENDPOINT),
            SnapPoint(ex, ey, SnapType.ENDPOINT),
            SnapPoint(mx, my, SnapType.MIDPOINT),
        ]

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({'center': self.center.id, 'radius': self.radius,
                  'startAngle': self.start_angle, 'endAngle': self.end_angle})
        if self.construction:
            d['construction'] = True
        return d


@dataclass(eq=False)
class Text2D(Primitive):
    """Text-Annotation; nimmt nicht am Solver teil"""
    x: float = 0.0
    y: float = 0.0
    text: str = ""
    height: float = 5.0
    rotation: float = 0.0

    kind = "text"

    def _extent(self) -> Tuple[float, float]:
        # Grobe Laufweite: 0.6 * Höhe pro Zeichen
        return max(len(self.text), 1) * self.height * 0.6, self.height

    def _corners(self) -> List[Tuple[float, float]]:
        w, h = self._extent()
        c, s = math.cos(self.rotation), math.sin(self.rotation)
        return [(self.x + u * c - v * s, self.y + u * s + v * c)
                for u, v in ((0, 0), (w, 0), (w, h), (0, h))]

    def distance_to(self, wx: float, wy: float) -> float:
        # In lokale Koordinaten drehen, dann Abstand zum Rechteck
        w, h = self._extent()
        c, s = math.cos(self.rotation), math.sin(self.rotation)
        lx = (wx - self.x) * c + (wy - self.y) * s
        ly = -(wx - self.x) * s + (wy - self.y) * c
        ox = max(0.0, -lx, lx - w)
        oy = max(0.0, -ly, ly - h)
        return math.hypot(ox, oy)

    def get_bounds(self) -> Bounds:
        xs, ys = zip(*self._corners())
        return Bounds(min(xs), min(ys), max(xs), max(ys))

    def get_snap_points(self) -> List[SnapPoint]:
        return [SnapPoint(self.x, self.y, SnapType.INSERTION)]

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def to_dict(self) -> Dict[str, Any]:
        d = self._common_dict()
        d.update({'x': self.x, 'y': self.y, 'text': self.text,
                  'height': self.height, 'rotation': self.rotation})
        return d
