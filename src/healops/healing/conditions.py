"""Condition language for self-healing rules and automation policies.

A condition is one or more comparisons joined with ``and`` / ``or`` (``and`` binds
tighter)::

    memory_usage > 90
    cpu_usage > 95 for 5 minutes
    database_connections_failed >= 10 or status == 'failed'

A ``for`` qualifier holds only when the context carries ``<signal>_duration_seconds``
of at least that length. Missing or non-numeric signals make a comparison false.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Sequence, Tuple, Union

from ..errors import ValidationError
from ..utils import to_float

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<num>-?\d+(?:\.\d+)?)
      | (?P<str>'[^']*'|"[^"]*")
      | (?P<op>>=|<=|==|!=|>|<|&&|\|\|)
      | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    )""",
    re.VERBOSE,
)

_OPERATORS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

_UNIT_SECONDS = {
    "second": 1,
    "seconds": 1,
    "sec": 1,
    "s": 1,
    "minute": 60,
    "minutes": 60,
    "min": 60,
    "m": 60,
    "hour": 3600,
    "hours": 3600,
    "h": 3600,
}


@dataclass(frozen=True)
class _Comparison:
    signal: str
    op: str
    value: Union[float, str]
    duration_seconds: float = 0.0

    def evaluate(self, context: Mapping[str, Any]) -> bool:
        raw = context.get(self.signal)
        if isinstance(self.value, str):
            if raw is None:
                return False
            return _OPERATORS[self.op](str(raw), self.value)
        actual = to_float(raw)
        if actual is None or not _OPERATORS[self.op](actual, self.value):
            return False
        if self.duration_seconds:
            observed = to_float(context.get(f"{self.signal}_duration_seconds"))
            return observed is not None and observed >= self.duration_seconds
        return True


@dataclass(frozen=True)
class _AllOf:
    parts: Tuple[Any, ...]

    def evaluate(self, context: Mapping[str, Any]) -> bool:
        return all(part.evaluate(context) for part in self.parts)


@dataclass(frozen=True)
class _AnyOf:
    parts: Tuple[Any, ...]

    def evaluate(self, context: Mapping[str, Any]) -> bool:
        return any(part.evaluate(context) for part in self.parts)


class Condition:
    """A pure predicate over an issue or event context."""

    def __init__(
        self,
        source: str,
        predicate: Callable[[Mapping[str, Any]], bool],
        signals: Sequence[str] = (),
    ) -> None:
        self.source = source
        self._predicate = predicate
        self.signals: Tuple[str, ...] = tuple(signals)

    @classmethod
    def parse(cls, text: str) -> "Condition":
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Condition text is required.")
        tokens = _tokenize(text)
        parser = _Parser(tokens, text)
        tree = parser.parse()
        return cls(" ".join(text.split()), tree.evaluate, parser.signals)

    @classmethod
    def from_callable(
        cls,
        predicate: Callable[[Mapping[str, Any]], bool],
        source: str | None = None,
    ) -> "Condition":
        label = source or getattr(predicate, "__name__", "callable")
        return cls(label, lambda context: bool(predicate(context)))

    def evaluate(self, context: Mapping[str, Any]) -> bool:
        return self._predicate(context)

    __call__ = evaluate

    def __repr__(self) -> str:
        return f"Condition({self.source!r})"

    def __str__(self) -> str:
        return self.source


def as_condition(value: Any) -> Condition:
    """Accept condition text, an existing Condition or a plain callable."""

    if isinstance(value, Condition):
        return value
    if isinstance(value, str):
        return Condition.parse(value)
    if callable(value):
        return Condition.from_callable(value)
    raise ValidationError(f"Unsupported condition: {value!r}")


def _tokenize(text: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    position = 0
    stripped = text.rstrip()
    while position < len(stripped):
        match = _TOKEN.match(stripped, position)
        if not match or match.end() == position:
            raise ValidationError(f"Cannot parse condition near {stripped[position:]!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Tuple[str, str]], text: str) -> None:
        self._tokens = tokens
        self._text = text
        self._index = 0
        self.signals: List[str] = []

    def parse(self) -> Any:
        tree = self._or()
        if self._index != len(self._tokens):
            raise self._error("unexpected trailing input")
        return tree

    def _or(self) -> Any:
        parts = [self._and()]
        while self._accept_joiner("or", "||"):
            parts.append(self._and())
        return parts[0] if len(parts) == 1 else _AnyOf(tuple(parts))

    def _and(self) -> Any:
        parts = [self._comparison()]
        while self._accept_joiner("and", "&&"):
            parts.append(self._comparison())
        return parts[0] if len(parts) == 1 else _AllOf(tuple(parts))

    def _comparison(self) -> _Comparison:
        kind, signal = self._next("signal name")
        if kind != "word":
            raise self._error(f"expected a signal name, got {signal!r}")
        kind, op = self._next("operator")
        if kind != "op" or op not in _OPERATORS:
            raise self._error(f"expected a comparison operator after {signal!r}")
        kind, raw = self._next("value")
        value: Union[float, str]
        if kind == "num":
            value = float(raw)
        elif kind == "str":
            value = raw[1:-1]
            if op not in {"==", "!="}:
                raise self._error("strings only support == and !=")
        elif kind == "word" and raw.lower() not in {"and", "or", "for"}:
            value = raw
            if op not in {"==", "!="}:
                raise self._error("strings only support == and !=")
        else:
            raise self._error(f"expected a value after {op!r}")
        duration = 0.0
        if self._peek_word() == "for":
            self._index += 1
            kind, amount = self._next("duration")
            if kind != "num":
                raise self._error("expected a number after 'for'")
            kind, unit = self._next("duration unit")
            seconds = _UNIT_SECONDS.get(unit.lower()) if kind == "word" else None
            if seconds is None:
                raise self._error(f"unknown duration unit {unit!r}")
            duration = float(amount) * seconds
        self.signals.append(signal)
        return _Comparison(signal=signal, op=op, value=value, duration_seconds=duration)

    def _accept_joiner(self, word: str, symbol: str) -> bool:
        if self._index >= len(self._tokens):
            return False
        kind, value = self._tokens[self._index]
        if (kind == "word" and value.lower() == word) or (kind == "op" and value == symbol):
            self._index += 1
            return True
        return False

    def _peek_word(self) -> str | None:
        if self._index >= len(self._tokens):
            return None
        kind, value = self._tokens[self._index]
        return value.lower() if kind == "word" else None

    def _next(self, expected: str) -> Tuple[str, str]:
        if self._index >= len(self._tokens):
            raise self._error(f"expected {expected}")
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _error(self, message: str) -> ValidationError:
        return ValidationError(f"Invalid condition {self._text!r}: {message}")
