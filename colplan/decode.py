"""Reading paged columnar tables back into rows."""

from __future__ import annotations

import struct
from typing import Union

from .plan import PAGE_SIZE, Column, ColumnarTable, DataType
from .statement import Data

_HEADER = struct.Struct("<HH")
_LONG_STRING_FIRST = 0xFFFF
_LONG_STRING_NEXT = 0xFFFE

_FIXED_LAYOUT = {
    DataType.INT32: ("i", 4),
    DataType.INT64: ("q", 8),
    DataType.FP64: ("d", 8),
}


def get_bit(bitmap, index: int) -> bool:
    """Whether bit ``index`` of a little-endian bitmap is set."""
    byte_idx, bit_idx = divmod(index, 8)
    return bool(bitmap[byte_idx] & (1 << bit_idx))


def _page_bitmap(page, num_rows: int):
    size = (num_rows + 7) // 8
    return page[PAGE_SIZE - size:]


def _fixed_values(column: Column) -> list[Data]:
    code, data_begin = _FIXED_LAYOUT[column.type]
    values: list[Data] = []
    for page in column.pages:
        num_rows, _ = _HEADER.unpack_from(page, 0)
        bitmap = _page_bitmap(page, num_rows)
        present = [get_bit(bitmap, i) for i in range(num_rows)]
        stored = iter(struct.unpack_from(f"<{sum(present)}{code}", page, data_begin))
        values.extend(next(stored) if bit else None for bit in present)
    return values


def _string_values(column: Column) -> list[Data]:
    values: list[Union[bytearray, None]] = []
    for page in column.pages:
        num_rows, second = _HEADER.unpack_from(page, 0)
        if num_rows == _LONG_STRING_FIRST:
            values.append(bytearray(page[4:4 + second]))
        elif num_rows == _LONG_STRING_NEXT:
            if not values or values[-1] is None:
                raise ValueError("long string page 0xfffe must follow a string")
            values[-1] += page[4:4 + second]
        else:
            num_non_null = second
            offsets = struct.unpack_from(f"<{num_non_null}H", page, 4)
            data_begin = 4 + num_non_null * 2
            bitmap = _page_bitmap(page, num_rows)
            offset_iter = iter(offsets)
            start = 0
            for i in range(num_rows):
                if get_bit(bitmap, i):
                    end = next(offset_iter)
                    values.append(bytearray(page[data_begin + start:data_begin + end]))
                    start = end
                else:
                    values.append(None)
    return [None if value is None else value.decode("utf-8") for value in values]


def _column_values(column: Column) -> list[Data]:
    if column.type is DataType.VARCHAR:
        return _string_values(column)
    return _fixed_values(column)


def decode_columnar(table: ColumnarTable) -> tuple[list[list[Data]], list[DataType]]:
    """Return the rows of a columnar table and the types of its columns.

    Raises ValueError when the pages hold more values than the table has rows
    or when a long-string continuation page does not follow a string.
    """
    rows: list[list[Data]] = [[None] * len(table.columns) for _ in range(table.num_rows)]
    types = [column.type for column in table.columns]
    for col_idx, column in enumerate(table.columns):
        for row_idx, value in enumerate(_column_values(column)):
            if value is None:
                continue
            if row_idx >= table.num_rows:
                raise ValueError(
                    f"column {col_idx} holds a value past row {table.num_rows}"
                )
            rows[row_idx][col_idx] = value
    return rows, types


def copy_columnar(table: ColumnarTable) -> ColumnarTable:
    """Return a copy of a table whose pages share nothing with the original."""
    result = ColumnarTable(num_rows=table.num_rows)
    for column in table.columns:
        copied = Column(column.type)
        for page in column.pages:
            copied.new_page()[:] = page
        result.columns.append(copied)
    return result