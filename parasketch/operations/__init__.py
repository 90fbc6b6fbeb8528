"""
parasketch - Edit Operations
============================

Topologie-verändernde Operationen auf einer Szene. Jede Operation läuft
atomar in einer SceneTransaction.

Verwendung:
    from parasketch.operations import split, trim, union

    s1, s2 = split(scene, seg, 5.0, 0.0)
"""

from .base import OperationResult, ResultStatus, SketchOperation
from .move import MovePointOperation, MoveShapeOperation, move_point, move_shape
from .split import MergeCollinearOperation, SplitOperation, merge_collinear_at_point, split
from .topology import DisconnectOperation, UnionOperation, disconnect, union
from .trim import TrimOperation, trim

__all__ = [
    'OperationResult', 'ResultStatus', 'SketchOperation',
    'DisconnectOperation', 'UnionOperation', 'disconnect', 'union',
    'TrimOperation', 'trim',
    'SplitOperation', 'MergeCollinearOperation', 'split', 'merge_collinear_at_point',
    'MovePointOperation', 'MoveShapeOperation', 'move_point', 'move_shape',
]
