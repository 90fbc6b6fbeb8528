"""
parasketch - Formel-Auswertung
==============================

Kleiner rekursiver Abstiegs-Parser für Constraint-Werte wie ``"L * 2 + sin(a)"``.

Unterstützt:
- Zahlen-Literale (inkl. Exponent), Bezeichner, Klammern
- ``+ - * /`` sowie unäres Minus/Plus
- Funktionsaufrufe aus einer festen Tabelle (kein ``eval``)

Bezeichner werden über einen Callback aufgelöst, damit Variablen rekursiv
(und zyklensicher) vom Aufrufer ausgewertet werden können.
"""

import math
import re
from typing import Callable, Dict, List, Optional, Tuple

Token = Tuple[str, str, int]  # (type, value, col)

SYMBOLS = {
    '(': 'LPAREN',
    ')': 'RPAREN',
    ',': 'COMMA',
    '+': 'PLUS',
    '-': 'MINUS',
    '*': 'STAR',
    '/': 'SLASH',
}

WS = ' \t\r\n'

_id_re = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_num_re = re.compile(r'(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')

FUNCTIONS: Dict[str, Callable[..., float]] = {
    'sin': math.sin,
    'cos': math.cos,
    'tan': math.tan,
    'asin': math.asin,
    'acos': math.acos,
    'atan': math.atan,
    'atan2': math.atan2,
    'sqrt': math.sqrt,
    'log': math.log,
    'exp': math.exp,
    'pow': math.pow,
    'floor': math.floor,
    'ceil': math.ceil,
    'round': round,
    'abs': abs,
    'min': min,
    'max': max,
    'radians': math.radians,
    'degrees': math.degrees,
}

CONSTANTS: Dict[str, float] = {
    'pi': math.pi,
    'e': math.e,
    'tau': math.tau,
}


class FormulaError(ValueError):
    """Syntax- oder Auswertungsfehler in einer Formel."""


def tokenize(s: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        if ch in WS:
            i += 1
            continue
        m = _num_re.match(s, i)
        if m:
            tokens.append(('NUMBER', m.group(0), i + 1))
            i = m.end()
            continue
        m = _id_re.match(s, i)
        if m:
            tokens.append(('ID', m.group(0), i + 1))
            i = m.end()
            continue
        if ch in SYMBOLS:
            tokens.append((SYMBOLS[ch], ch, i + 1))
            i += 1
            continue
        raise FormulaError(f'[col {i + 1}] unexpected character: {ch!r}')
    return tokens


class Cursor:
    def __init__(self, tokens: List[Token]):
        self.toks = tokens
        self.i = 0

    def peek(self) -> Optional[Token]:
        return self.toks[self.i] if self.i < len(self.toks) else None

    def match(self, *types: str) -> Optional[Token]:
        if self.i < len(self.toks) and self.toks[self.i][0] in types:
            t = self.toks[self.i]
            self.i += 1
            return t
        return None

    def expect(self, *types: str) -> Token:
        t = self.peek()
        if t and t[0] in types:
            self.i += 1
            return t
        want = '|'.join(types)
        if t:
            raise FormulaError(f'[col {t[2]}] expected {want}, got {t[0]}')
        raise FormulaError(f'unexpected end of formula: expected {want}')

    def at_end(self) -> bool:
        return self.i >= len(self.toks)


class Evaluator:
    """
    Wertet eine Formel direkt beim Parsen aus.

    Grammatik:
        expr   := term (('+' | '-') term)*
        term   := unary (('*' | '/') unary)*
        unary  := ('-' | '+') unary | atom
        atom   := NUMBER | ID | ID '(' args? ')' | '(' expr ')'
    """

    def __init__(self, lookup: Callable[[str], float]):
        self._lookup = lookup

    def evaluate(self, text: str) -> float:
        cur = Cursor(tokenize(text))
        if cur.at_end():
            raise FormulaError('empty formula')
        value = self._expr(cur)
        if not cur.at_end():
            t = cur.peek()
            raise FormulaError(f'[col {t[2]}] unexpected token {t[1]!r}')
        return value

    def _expr(self, cur: Cursor) -> float:
        value = self._term(cur)
        while True:
            op = cur.match('PLUS', 'MINUS')
            if op is None:
                return value
            rhs = self._term(cur)
            value = value + rhs if op[0] == 'PLUS' else value - rhs

    def _term(self, cur: Cursor) -> float:
        value = self._unary(cur)
        while True:
            op = cur.match('STAR', 'SLASH')
            if op is None:
                return value
            rhs = self._unary(cur)
            if op[0] == 'STAR':
                value = value * rhs
            else:
                if rhs == 0:
                    raise FormulaError(f'[col {op[2]}] division by zero')
                value = value / rhs

    def _unary(self, cur: Cursor) -> float:
        if cur.match('MINUS'):
            return -self._unary(cur)
        if cur.match('PLUS'):
            return self._unary(cur)
        return self._atom(cur)

    def _atom(self, cur: Cursor) -> float:
        t = cur.expect('NUMBER', 'ID', 'LPAREN')
        if t[0] == 'NUMBER':
            return float(t[1])
        if t[0] == 'LPAREN':
            value = self._expr(cur)
            cur.expect('RPAREN')
            return value
        name = t[1]
        if cur.match('LPAREN'):
            return self._call(cur, name, t[2])
        return float(self._lookup(name))

    def _call(self, cur: Cursor, name: str, col: int) -> float:
        func = FUNCTIONS.get(name)
        if func is None:
            raise FormulaError(f'[col {col}] unknown function {name!r}')
        args: List[float] = []
        if not cur.match('RPAREN'):
            args.append(self._expr(cur))
            while cur.match('COMMA'):
                args.append(self._expr(cur))
            cur.expect('RPAREN')
        try:
            return float(func(*args))
        except (TypeError, ValueError, OverflowError) as exc:
            raise FormulaError(f'[col {col}] {name}(): {exc}') from exc


def evaluate(text: str, lookup: Callable[[str], float]) -> float:
    """Wertet ``text`` aus; Bezeichner werden über ``lookup`` aufgelöst."""
    return Evaluator(lookup).evaluate(text)
