"""
parasketch - Parameter System
Benannte Variablen und Formeln für Constraint-Werte

Verwendung:
    from parasketch.parameters import Parameters

    params = Parameters()
    params.set('width', 100)
    params.set('height', 'width * 0.5')  # Formel!

    value = params.resolve('height')  # -> 50.0

Werte werden lazy aufgelöst: jede Auswertung liest den aktuellen Stand der
Tabelle. Unbekannte Namen, Zyklen und ungültige Formeln ergeben NaN.
"""

import math
import re
from numbers import Real
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from .formula import CONSTANTS, FormulaError, evaluate

Value = Union[float, int, str]

NAME_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def is_identifier(text: Any) -> bool:
    return isinstance(text, str) and bool(NAME_PATTERN.match(text.strip()))


def rename_in_formula(text: str, old: str, new: str) -> str:
    """Ersetzt ``old`` als ganzes Wort in ``text``."""
    return re.sub(rf'\b{re.escape(old)}\b', new, text)


class Parameters:
    """
    Variablentabelle einer Szene.
    Name -> Zahl oder Formel-String.
    """

    def __init__(self):
        self._params: Dict[str, Value] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._params

    def __len__(self) -> int:
        return len(self._params)

    def set(self, name: str, value: Value) -> None:
        """
        Setzt einen Parameter.

        Args:
            name: Parametername (z.B. 'width', 'hole_diameter')
            value: Wert (Zahl) oder Formel (String wie 'width * 2')
        """
        name = name.strip()
        if not NAME_PATTERN.match(name):
            raise ValueError(f"Ungültiger Parametername: {name}")
        if isinstance(value, bool) or not isinstance(value, (Real, str)):
            raise ValueError(f"Ungültiger Wert für {name}: {value!r}")
        self._params[name] = value if isinstance(value, str) else float(value)

    def get(self, name: str, default: Optional[Value] = None) -> Optional[Value]:
        """Gibt den gespeicherten Rohwert zurück (Zahl oder Formel)."""
        return self._params.get(name, default)

    def delete(self, name: str) -> bool:
        if name in self._params:
            del self._params[name]
            return True
        return False

    def rename(self, old: str, new: str) -> bool:
        """
        Benennt eine Variable um und ersetzt ``old`` in allen anderen Formeln.
        Die Reihenfolge der Tabelle bleibt erhalten.
        """
        new = new.strip()
        if old not in self._params or old == new:
            return False
        if not NAME_PATTERN.match(new):
            raise ValueError(f"Ungültiger Parametername: {new}")
        if new in self._params:
            raise ValueError(f"Parameter existiert bereits: {new}")
        renamed: Dict[str, Value] = {}
        for key, value in self._params.items():
            if isinstance(value, str):
                value = rename_in_formula(value, old, new)
            renamed[new if key == old else key] = value
        self._params = renamed
        return True

    def clear(self) -> None:
        self._params.clear()

    def resolve(self, value: Any, _visiting: FrozenSet[str] = frozenset()) -> float:
        """
        Löst einen Constraint-Wert auf.

        - Zahl -> Zahl
        - Bekannter Bezeichner -> rekursiv aufgelöster Wert (Zyklus -> NaN)
        - Sonst Formel; Bezeichner darin werden über dieselbe Tabelle aufgelöst
        """
        if value is None or isinstance(value, bool):
            return math.nan
        if isinstance(value, Real):
            return float(value)
        if not isinstance(value, str):
            return math.nan

        text = value.strip()
        if NAME_PATTERN.match(text) and text in self._params:
            if text in _visiting:
                return math.nan
            return self.resolve(self._params[text], _visiting | {text})

        def lookup(name: str) -> float:
            if name in self._params:
                if name in _visiting:
                    raise FormulaError(f"zyklische Referenz: {name}")
                resolved = self.resolve(self._params[name], _visiting | {name})
            elif name in CONSTANTS:
                resolved = CONSTANTS[name]
            else:
                raise FormulaError(f"unbekannter Name: {name}")
            if math.isnan(resolved):
                raise FormulaError(f"nicht auflösbar: {name}")
            return resolved

        try:
            return evaluate(text, lookup)
        except FormulaError:
            return math.nan

    def list_all(self) -> List[Tuple[str, float, Optional[str]]]:
        """
        Listet alle Parameter auf.

        Returns:
            Liste von (name, aufgelöster Wert, Formel oder None)
        """
        result = []
        for name, value in self._params.items():
            formula = value if isinstance(value, str) else None
            result.append((name, self.resolve(name), formula))
        return result

    def to_dict(self) -> Dict[str, Value]:
        return dict(self._params)

    def from_dict(self, data: Dict[str, Value]) -> None:
        self._params.clear()
        for name, value in (data or {}).items():
            self.set(name, value)
