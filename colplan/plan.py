"""Query plans and the paged columnar table format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

PAGE_SIZE = 8192

_HEADER = struct.Struct("<HH")
_OFFSET = struct.Struct("<H")
_STRING_OFFSET_BEGIN = 4
_LONG_STRING_FIRST = 0xFFFF
_LONG_STRING_NEXT = 0xFFFE


class DataType(Enum):
    """Types a column can hold."""

    INT32 = "INT32"
    INT64 = "INT64"
    FP64 = "FP64"
    VARCHAR = "VARCHAR"


_FIXED_FORMATS = {
    DataType.INT32: "<i",
    DataType.INT64: "<q",
    DataType.FP64: "<d",
}


@dataclass
class ScanNode:
    """Reads one of the plan's input tables."""

    base_table_id: int


@dataclass
class JoinNode:
    """Equi-joins the outputs of two other nodes."""

    build_left: bool
    left: int
    right: int
    left_attr: int
    right_attr: int


@dataclass
class PlanNode:
    """A node of a plan with the attributes it produces."""

    data: Union[ScanNode, JoinNode]
    output_attrs: list[tuple[int, DataType]]


@dataclass
class Column:
    """A column stored as a list of fixed-size pages."""

    type: DataType
    pages: list[bytearray] = field(default_factory=list)

    def new_page(self) -> bytearray:
        """Append a zeroed page and return it."""
        page = bytearray(PAGE_SIZE)
        self.pages.append(page)
        return page


@dataclass
class ColumnarTable:
    """A table made of paged columns."""

    num_rows: int = 0
    columns: list[Column] = field(default_factory=list)


@dataclass
class Plan:
    """A tree of scan and join nodes over a list of input tables."""

    nodes: list[PlanNode] = field(default_factory=list)
    inputs: list[ColumnarTable] = field(default_factory=list)
    root: int = 0

    def new_join_node(self, build_left, left, right, left_attr, right_attr, output_attrs) -> int:
        """Add a join node and return its index."""
        join = JoinNode(
            build_left=build_left,
            left=left,
            right=right,
            left_attr=left_attr,
            right_attr=right_attr,
        )
        self.nodes.append(PlanNode(join, list(output_attrs)))
        return len(self.nodes) - 1

    def new_scan_node(self, base_table_id, output_attrs) -> int:
        """Add a scan node and return its index."""
        self.nodes.append(PlanNode(ScanNode(base_table_id), list(output_attrs)))
        return len(self.nodes) - 1

    def new_input(self, table) -> int:
        """Add an input table and return its index."""
        self.inputs.append(table)
        return len(self.inputs) - 1


class ColumnInserter:
    """Appends values to a column, filling its pages one after another.

    Fixed-width pages hold a row count and a non-null count, the non-null
    values, and a null bitmap at the end of the page.  String pages hold
    cumulative end offsets followed by the string bytes.  Strings too large
    for one page are spread over pages marked 0xffff (first) and 0xfffe.
    """

    def __init__(self, column: Column):
        self.column = column
        self._last_page_idx = 0
        self._num_rows = 0
        self._bitmap = bytearray(PAGE_SIZE)
        if column.type is DataType.VARCHAR:
            self._packer: Optional[struct.Struct] = None
            self._data = bytearray()
            self._offset_end = _STRING_OFFSET_BEGIN
        else:
            self._packer = struct.Struct(_FIXED_FORMATS[column.type])
            self._data_begin = max(4, self._packer.size)
            self._data_end = self._data_begin

    def __enter__(self) -> "ColumnInserter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finalize()

    def _page(self) -> bytearray:
        if self._last_page_idx == len(self.column.pages):
            self.column.new_page()
        return self.column.pages[self._last_page_idx]

    def _set_bit(self, index: int, present: bool) -> None:
        byte_idx, bit_idx = divmod(index, 8)
        if present:
            self._bitmap[byte_idx] |= 1 << bit_idx
        else:
            self._bitmap[byte_idx] &= ~(1 << bit_idx) & 0xFF

    def _write_bitmap(self, page: bytearray) -> None:
        size = (self._num_rows + 7) // 8
        page[PAGE_SIZE - size:] = self._bitmap[:size]

    def _save_page(self) -> None:
        page = self._page()
        if self._packer is None:
            non_null = (self._offset_end - _STRING_OFFSET_BEGIN) // _OFFSET.size
            _HEADER.pack_into(page, 0, self._num_rows, non_null)
            page[self._offset_end:self._offset_end + len(self._data)] = self._data
            self._data = bytearray()
            self._offset_end = _STRING_OFFSET_BEGIN
        else:
            non_null = (self._data_end - self._data_begin) // self._packer.size
            _HEADER.pack_into(page, 0, self._num_rows, non_null)
            self._data_end = self._data_begin
        self._write_bitmap(page)
        self._last_page_idx += 1
        self._num_rows = 0

    def _save_long_string(self, value: bytes) -> None:
        chunk = PAGE_SIZE - 4
        for start in range(0, len(value), chunk):
            piece = value[start:start + chunk]
            page = self._page()
            marker = _LONG_STRING_FIRST if start == 0 else _LONG_STRING_NEXT
            _HEADER.pack_into(page, 0, marker, len(piece))
            page[4:4 + len(piece)] = piece
            self._last_page_idx += 1

    def _insert_string(self, value) -> None:
        encoded = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        if len(encoded) > PAGE_SIZE - 7:
            if self._num_rows > 0:
                self._save_page()
            self._save_long_string(encoded)
            return
        needed = (
            self._offset_end + _OFFSET.size + len(self._data) + len(encoded)
            + self._num_rows // 8 + 1
        )
        if needed > PAGE_SIZE:
            self._save_page()
        self._data += encoded
        _OFFSET.pack_into(self._page(), self._offset_end, len(self._data))
        self._offset_end += _OFFSET.size
        self._set_bit(self._num_rows, True)
        self._num_rows += 1

    def _insert_fixed(self, value) -> None:
        try:
            encoded = self._packer.pack(value)
        except struct.error as exc:
            raise ValueError(
                f"value {value!r} does not fit a {self.column.type.value} column"
            ) from exc
        if self._data_end + 4 + self._num_rows // 8 + 1 > PAGE_SIZE:
            self._save_page()
        page = self._page()
        page[self._data_end:self._data_end + len(encoded)] = encoded
        self._data_end += len(encoded)
        self._set_bit(self._num_rows, True)
        self._num_rows += 1

    def insert(self, value) -> None:
        """Append a value; None appends a null."""
        if value is None:
            self.insert_null()
        elif self._packer is None:
            self._insert_string(value)
        else:
            self._insert_fixed(value)

    def insert_null(self) -> None:
        """Append a null."""
        if self._packer is None:
            used = self._offset_end + len(self._data)
        else:
            used = self._data_end
        if used + self._num_rows // 8 + 1 > PAGE_SIZE:
            self._save_page()
        self._set_bit(self._num_rows, False)
        self._num_rows += 1

    def finalize(self) -> None:
        """Write out the page being filled, if it holds any rows."""
        if self._num_rows != 0:
            self._save_page()