"""Writing rows into the paged columnar table format."""

from __future__ import annotations

import struct
from typing import Iterable, Sequence

from .plan import PAGE_SIZE, Column, ColumnarTable, DataType
from .statement import Data

_HEADER = struct.Struct("<HH")
_LONG_STRING_FIRST = 0xFFFF
_LONG_STRING_NEXT = 0xFFFE

_FIXED_CODES = {
    DataType.INT32: "i",
    DataType.INT64: "q",
    DataType.FP64: "d",
}


def set_bit(bitmap: bytearray, index: int) -> None:
    """Set bit ``index`` of a little-endian bitmap, growing it as needed."""
    byte_idx, bit_idx = divmod(index, 8)
    if len(bitmap) <= byte_idx:
        bitmap.extend(bytes(byte_idx + 1 - len(bitmap)))
    bitmap[byte_idx] |= 1 << bit_idx


def unset_bit(bitmap: bytearray, index: int) -> None:
    """Clear bit ``index`` of a little-endian bitmap, growing it as needed."""
    byte_idx, bit_idx = divmod(index, 8)
    if len(bitmap) <= byte_idx:
        bitmap.extend(bytes(byte_idx + 1 - len(bitmap)))
    bitmap[byte_idx] &= ~(1 << bit_idx) & 0xFF


def _write_bitmap(page: bytearray, bitmap: bytearray) -> None:
    if bitmap:
        page[PAGE_SIZE - len(bitmap):] = bitmap


def _matches(data_type: DataType, value: Data) -> bool:
    if isinstance(value, bool):
        return False
    if data_type is DataType.FP64:
        return isinstance(value, float)
    return isinstance(value, int)


class _FixedPages:
    """Fills pages of a fixed-width column."""

    def __init__(self, column: Column):
        self.column = column
        self.code = _FIXED_CODES[column.type]
        self.packer = struct.Struct("<" + self.code)
        self.width = self.packer.size
        self.num_rows = 0
        self.count = 0
        self.data = bytearray()
        self.bitmap = bytearray()

    def save(self) -> None:
        page = self.column.new_page()
        _HEADER.pack_into(page, 0, self.num_rows, self.count)
        page[self.width:self.width + len(self.data)] = self.data
        _write_bitmap(page, self.bitmap)
        self.num_rows = 0
        self.count = 0
        self.data = bytearray()
        self.bitmap = bytearray()

    def add(self, value: Data) -> None:
        if value is None:
            if self.width + self.count * self.width + self.num_rows // 8 + 1 > PAGE_SIZE:
                self.save()
            unset_bit(self.bitmap, self.num_rows)
            self.num_rows += 1
            return
        if not _matches(self.column.type, value):
            # Values of another kind are passed over, leaving the column short.
            return
        try:
            encoded = self.packer.pack(value)
        except struct.error as exc:
            raise ValueError(
                f"value {value!r} does not fit a {self.column.type.value} column"
            ) from exc
        if self.width + (self.count + 1) * self.width + self.num_rows // 8 + 1 > PAGE_SIZE:
            self.save()
        set_bit(self.bitmap, self.num_rows)
        self.data += encoded
        self.count += 1
        self.num_rows += 1

    def finish(self) -> None:
        if self.num_rows:
            self.save()


class _StringPages:
    """Fills pages of a string column."""

    def __init__(self, column: Column):
        self.column = column
        self.num_rows = 0
        self.data = bytearray()
        self.offsets: list[int] = []
        self.bitmap = bytearray()

    def save(self) -> None:
        page = self.column.new_page()
        _HEADER.pack_into(page, 0, self.num_rows, len(self.offsets))
        struct.pack_into(f"<{len(self.offsets)}H", page, 4, *self.offsets)
        start = 4 + len(self.offsets) * 2
        page[start:start + len(self.data)] = self.data
        _write_bitmap(page, self.bitmap)
        self.num_rows = 0
        self.data = bytearray()
        self.offsets = []
        self.bitmap = bytearray()

    def save_long(self, value: bytes) -> None:
        chunk = PAGE_SIZE - 4
        for start in range(0, len(value), chunk):
            piece = value[start:start + chunk]
            page = self.column.new_page()
            marker = _LONG_STRING_FIRST if start == 0 else _LONG_STRING_NEXT
            _HEADER.pack_into(page, 0, marker, len(piece))
            page[4:4 + len(piece)] = piece

    def add(self, value: Data) -> None:
        if value is None:
            used = 4 + len(self.offsets) * 2 + len(self.data)
            if used + self.num_rows // 8 + 1 > PAGE_SIZE:
                self.save()
            unset_bit(self.bitmap, self.num_rows)
            self.num_rows += 1
            return
        if not isinstance(value, str):
            raise TypeError(f"not string or null: {value!r}")
        encoded = value.encode("utf-8")
        if len(encoded) > PAGE_SIZE - 7:
            if self.num_rows > 0:
                self.save()
            self.save_long(encoded)
            return
        needed = (
            4 + (len(self.offsets) + 1) * 2 + len(self.data) + len(encoded)
            + self.num_rows // 8 + 1
        )
        if needed > PAGE_SIZE:
            self.save()
        set_bit(self.bitmap, self.num_rows)
        self.data += encoded
        self.offsets.append(len(self.data))
        self.num_rows += 1

    def finish(self) -> None:
        if self.num_rows:
            self.save()


def _encode_column(column: Column, values: Iterable[Data]) -> None:
    writer = _StringPages(column) if column.type is DataType.VARCHAR else _FixedPages(column)
    for value in values:
        writer.add(value)
    writer.finish()


def encode_rows(rows: Sequence[Sequence[Data]], types: Sequence[DataType]) -> ColumnarTable:
    """Build a columnar table from rows whose fields have the given types.

    None is a null.  A string column raises TypeError for a non-string value;
    a fixed-width column raises ValueError for a number out of its range.
    """
    table = ColumnarTable(num_rows=len(rows))
    for col_idx, data_type in enumerate(types):
        column = Column(data_type)
        _encode_column(column, (row[col_idx] for row in rows))
        table.columns.append(column)
    return table