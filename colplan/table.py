"""Row-oriented tables and their conversion to and from the columnar format."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, TextIO

from .decode import decode_columnar
from .encode import encode_rows
from .plan import ColumnarTable, DataType
from .statement import Data, format_data

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape(text: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in text)


def _format_field(value: Data) -> str:
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    return format_data(value)


@dataclass
class Table:
    """Rows of field values together with the column types."""

    data: list[list[Data]] = field(default_factory=list)
    types: list[DataType] = field(default_factory=list)

    @classmethod
    def from_columnar(cls, table: ColumnarTable) -> "Table":
        """Read a columnar table into rows."""
        rows, types = decode_columnar(table)
        return cls(rows, types)

    def to_columnar(self) -> ColumnarTable:
        """Write the rows into a columnar table."""
        return encode_rows(self.data, self.types)

    def number_rows(self) -> int:
        """The number of rows."""
        return len(self.data)

    def number_cols(self) -> int:
        """The number of columns."""
        return len(self.types)

    @staticmethod
    def format_rows(data: Iterable[Sequence[Data]]) -> list[str]:
        """Render rows as '|'-separated lines with strings quoted and escaped."""
        return ["|".join(_format_field(value) for value in record) for record in data]

    @staticmethod
    def print_rows(data: Iterable[Sequence[Data]], file: Optional[TextIO] = None) -> None:
        """Print rows, one line each, as rendered by format_rows."""
        out = sys.stdout if file is None else file
        for line in Table.format_rows(data):
            print(line, file=out)