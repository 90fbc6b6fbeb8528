"""
parasketch - Parametric 2D Sketch Core
"""

from .geometry import (
    Point2D, Segment2D, Circle2D, Arc2D, Text2D, Primitive,
    ConstructionType, DashStyle, SnapType, SnapPoint, Bounds,
    normalize_angle, project_on_line, line_intersection,
)

from .constraints import (
    Constraint, ConstraintType, ConstraintStatus,
    Coincident, Distance, Fixed, Horizontal, Vertical, Parallel, Perpendicular,
    Angle, EqualLength, Length, Radius, Tangent, PointOnLine, PointOnCircle, Midpoint,
    make_coincident, make_distance, make_fixed, make_horizontal, make_vertical,
    make_parallel, make_perpendicular, make_angle, make_equal_length, make_length,
    make_radius, make_tangent, make_point_on_line, make_point_on_circle, make_midpoint,
    constraint_from_dict, is_constraint_satisfied,
)

from .dimensions import Dimension, DimensionConstraint, DimensionType, DisplayMode, detect_dimension_type
from .errors import SketchError, PrimitiveNotInSceneError, EditOperationError
from .formula import FormulaError, evaluate
from .parameters import Parameters
from .solver import ConstraintSolver, SolverResult, SolverStatus
from .scene import Scene
from .transaction import SceneTransaction
from .diagnostics import SceneDiagnosis, analyze_scene

__version__ = "0.1.0"
