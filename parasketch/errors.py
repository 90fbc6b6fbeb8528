"""
parasketch - Fehlerklassen
"""


class SketchError(Exception):
    """Basisklasse aller Fehler des Sketch-Kerns"""
    pass


class PrimitiveNotInSceneError(SketchError, LookupError):
    """Ein Primitive oder Constraint gehört nicht (mehr) zur Szene"""
    pass


class EditOperationError(SketchError):
    """Raised when an edit operation fails and should trigger rollback"""
    pass
