"""
parasketch - Scene Transaction System
=====================================

Atomare Edit-Operationen mit automatischem Rollback.

Usage:
    with scene.transaction("Split") as txn:
        ...  # Primitive und Constraints umverdrahten
        if something_failed:
            raise EditOperationError("...")
        txn.commit()

On exception or missing commit():
    - Scene state is restored to the snapshot (same objects, old attributes)
    - EditOperationError is logged and suppressed
    - Other exceptions propagate
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

from .config.feature_flags import is_enabled
from .errors import EditOperationError

if TYPE_CHECKING:
    from .scene import Scene

_LIST_NAMES = ("points", "segments", "circles", "arcs", "texts", "dimensions", "constraints")


@dataclass
class SceneSnapshot:
    """
    Identitätserhaltender Snapshot: Listen-Kopien plus Attribut-Zustand jedes
    Objekts. Referenzen der Aufrufer bleiben nach dem Rollback gültig.
    """
    lists: Dict[str, list] = field(default_factory=dict)
    states: List[tuple] = field(default_factory=list)  # (obj, dict(vars(obj)))
    variables: Dict[str, Any] = field(default_factory=dict)
    counters: tuple = ()

    @classmethod
    def capture(cls, scene: 'Scene') -> 'SceneSnapshot':
        snap = cls()
        seen = set()
        for name in _LIST_NAMES:
            items = list(getattr(scene, name))
            snap.lists[name] = items
            for obj in items:
                if id(obj) not in seen:
                    seen.add(id(obj))
                    snap.states.append((obj, dict(vars(obj))))
        snap.variables = scene.variables.to_dict()
        snap.counters = (scene._next_primitive_id, scene._next_constraint_id)
        return snap

    def restore(self, scene: 'Scene') -> None:
        for name, items in self.lists.items():
            setattr(scene, name, list(items))
        for obj, state in self.states:
            obj.__dict__.clear()
            obj.__dict__.update(state)
        scene.variables.from_dict(self.variables)
        scene._next_primitive_id, scene._next_constraint_id = self.counters


class SceneTransaction:
    """
    Context manager for atomic scene edits with rollback.

    Verschachtelte Transaktionen sind erlaubt; Change-Events werden bis zum
    Commit der äußersten Transaktion zurückgehalten.
    """

    def __init__(self, scene: 'Scene', operation_name: str = "Operation"):
        self._scene = scene
        self._operation_name = operation_name
        self._snapshot: Optional[SceneSnapshot] = None
        self._committed = False
        self._entered = False

    def __enter__(self) -> 'SceneTransaction':
        if self._entered:
            raise RuntimeError("Transaction already entered")
        self._entered = True
        self._snapshot = SceneSnapshot.capture(self._scene)
        self._scene._begin_batch()
        if is_enabled("edit_debug"):
            logger.debug(f"[Scene] Transaction started: {self._operation_name}")
        return self

    def commit(self) -> None:
        """Markiert die Transaktion als erfolgreich; ohne commit() wird zurückgerollt."""
        if not self._entered:
            raise RuntimeError("Cannot commit - transaction not entered")
        self._committed = True
        if is_enabled("edit_debug"):
            logger.success(f"[Scene] Transaction committed: {self._operation_name}")

    @property
    def committed(self) -> bool:
        return self._committed

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if not self._entered:
            return False

        needs_rollback = not self._committed or exc_type is not None
        if needs_rollback:
            self._rollback(exc_type, exc_val)
        self._scene._end_batch(changed=not needs_rollback)

        if needs_rollback and exc_type is not None and issubclass(exc_type, EditOperationError):
            return True
        return False

    def _rollback(self, exc_type, exc_val) -> None:
        if self._snapshot is None:
            logger.error("[Scene] Cannot rollback - no snapshot available")
            return
        self._snapshot.restore(self._scene)

        if exc_type is not None and issubclass(exc_type, EditOperationError):
            logger.debug(f"[Scene] Transaction rolled back: {self._operation_name} ({exc_val})")
        elif exc_type is not None:
            logger.error(f"[Scene] Transaction rolled back due to exception: "
                         f"{exc_type.__name__}: {exc_val}")
        else:
            logger.debug(f"[Scene] Transaction rolled back: {self._operation_name} (not committed)")
