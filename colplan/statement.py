"""Filter expressions over records."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Optional, Union

Data = Union[int, float, str, None]
Literal = Union[int, float, str, None]


def format_data(value: Data) -> str:
    """Format a field value; nulls become NULL and whole floats lose their '.0'."""
    if value is None:
        return "NULL"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            text = repr(value)
            if "e" not in text:
                return text[:-2]
            return text
        return repr(value)
    return str(value)


class Statement(ABC):
    """A node of a filter expression."""

    @abstractmethod
    def pretty_print(self, indent: int = 0) -> str:
        """Render the expression, indented by the given number of spaces."""


class Op(Enum):
    """Comparison operators, valued by how they are written."""

    EQ = "="
    NEQ = "!="
    LT = "<"
    GT = ">"
    LEQ = "<="
    GEQ = ">="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


@lru_cache(maxsize=None)
def _like_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts))


@dataclass
class Comparison(Statement):
    """Compares one column of a record with a literal."""

    column: int
    op: Op
    value: Literal = None

    def pretty_print(self, indent: int = 0) -> str:
        return f"{' ' * indent}{self.column} {self.op_to_string()} {self.value_to_string()}"

    def op_to_string(self) -> str:
        """The operator as written in SQL."""
        return self.op.value

    def value_to_string(self) -> str:
        """The literal as written in SQL; empty for null tests and null literals."""
        if self.op in (Op.IS_NULL, Op.IS_NOT_NULL) or self.value is None:
            return ""
        if isinstance(self.value, str):
            return f"'{self.value}'"
        return format_data(self.value)

    @staticmethod
    def like_match(string: str, pattern: str) -> bool:
        """Whether the whole string matches a SQL LIKE pattern."""
        return _like_regex(pattern).fullmatch(string) is not None

    @staticmethod
    def get_numeric_value(value: Data) -> Optional[float]:
        """The value as a float, or None if it is not a number."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


class LogicalType(Enum):
    """Logical connectives."""

    AND = "AND"
    OR = "OR"
    NOT = "NOT"


@dataclass
class LogicalOperation(Statement):
    """Combines child statements with AND, OR or NOT."""

    op_type: LogicalType
    children: list[Statement] = field(default_factory=list)

    @classmethod
    def make_and(cls, left: Statement, right: Statement) -> "LogicalOperation":
        return cls(LogicalType.AND, [left, right])

    @classmethod
    def make_or(cls, left: Statement, right: Statement) -> "LogicalOperation":
        return cls(LogicalType.OR, [left, right])

    @classmethod
    def make_not(cls, child: Statement) -> "LogicalOperation":
        return cls(LogicalType.NOT, [child])

    def pretty_print(self, indent: int = 0) -> str:
        result = f"{' ' * indent}[{self.op_type.value}]\n"
        result += "".join(child.pretty_print(indent + 2) + "\n" for child in self.children)
        if self.children:
            result = result[:-1]
        return result