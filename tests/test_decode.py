import struct

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from colplan.decode import copy_columnar, decode_columnar, get_bit
from colplan.plan import PAGE_SIZE, Column, ColumnarTable, ColumnInserter, DataType


def _build(columns):
    """columns: list of (DataType, values); all value lists have the same length."""
    table = ColumnarTable(num_rows=len(columns[0][1]) if columns else 0)
    for data_type, values in columns:
        column = Column(data_type)
        with ColumnInserter(column) as inserter:
            for value in values:
                inserter.insert(value)
        table.columns.append(column)
    return table


def test_get_bit_reads_little_endian_bits():
    bitmap = bytes([0b00000101, 0b10000000])
    assert [get_bit(bitmap, i) for i in range(3)] == [True, False, True]
    assert get_bit(bitmap, 15) is True
    assert get_bit(bitmap, 8) is False


def test_decode_hand_built_int32_page():
    column = Column(DataType.INT32)
    page = column.new_page()
    struct.pack_into("<HHii", page, 0, 3, 2, 7, -9)
    page[PAGE_SIZE - 1] = 0b101
    table = ColumnarTable(num_rows=3, columns=[column])
    rows, types = decode_columnar(table)
    assert rows == [[7], [None], [-9]]
    assert types == [DataType.INT32]


def test_decode_hand_built_varchar_page():
    column = Column(DataType.VARCHAR)
    page = column.new_page()
    struct.pack_into("<HHHH", page, 0, 2, 2, 2, 5)
    page[8:13] = b"hiabc"
    page[PAGE_SIZE - 1] = 0b11
    rows, _ = decode_columnar(ColumnarTable(num_rows=2, columns=[column]))
    assert rows == [["hi"], ["abc"]]


def test_empty_table_decodes_to_no_rows():
    table = ColumnarTable(num_rows=0, columns=[Column(DataType.INT32)])
    assert decode_columnar(table) == ([], [DataType.INT32])


def test_round_trip_mixed_columns():
    ints = [1, None, 3, 4]
    bigs = [None, 2**40, -(2**40), 0]
    floats = [1.5, -0.25, None, 3.0]
    strings = ["xxx", None, "", "zzz"]
    table = _build([
        (DataType.INT32, ints),
        (DataType.INT64, bigs),
        (DataType.FP64, floats),
        (DataType.VARCHAR, strings),
    ])
    rows, types = decode_columnar(table)
    assert rows == [list(r) for r in zip(ints, bigs, floats, strings)]
    assert types == [DataType.INT32, DataType.INT64, DataType.FP64, DataType.VARCHAR]


def test_long_string_round_trip():
    long_value = "ab" * 6000
    values = ["short", long_value, None, "tail"]
    table = _build([(DataType.VARCHAR, values)])
    markers = [struct.unpack_from("<H", p, 0)[0] for p in table.columns[0].pages]
    assert 0xFFFF in markers and 0xFFFE in markers
    rows, _ = decode_columnar(table)
    assert [row[0] for row in rows] == values


def test_continuation_page_without_string_raises():
    column = Column(DataType.VARCHAR)
    page = column.new_page()
    struct.pack_into("<HH", page, 0, 0xFFFE, 3)
    page[4:7] = b"abc"
    with pytest.raises(ValueError):
        decode_columnar(ColumnarTable(num_rows=1, columns=[column]))


def test_more_values_than_rows_raises():
    table = _build([(DataType.INT32, [1, 2, 3])])
    table.num_rows = 2
    with pytest.raises(ValueError):
        decode_columnar(table)


def test_copy_is_equal_and_independent():
    table = _build([(DataType.INT32, [1, None, 3]), (DataType.VARCHAR, ["a", "b", None])])
    copied = copy_columnar(table)
    assert decode_columnar(copied) == decode_columnar(table)
    assert copied.num_rows == table.num_rows
    copied.columns[0].pages[0][4] ^= 0xFF
    assert decode_columnar(table)[0][0][0] == 1
    assert decode_columnar(copied)[0][0][0] != 1
    assert copied.columns[0].pages[0] is not table.columns[0].pages[0]


@settings(max_examples=40, deadline=None)
@given(st.lists(st.one_of(st.none(), st.integers(-(2**31), 2**31 - 1)), max_size=3000))
def test_int32_round_trip_property(values):
    rows, _ = decode_columnar(_build([(DataType.INT32, values)]))
    assert [row[0] for row in rows] == values


@settings(max_examples=40, deadline=None)
@given(st.lists(st.one_of(st.none(), st.floats(allow_nan=False)), max_size=1500))
def test_fp64_round_trip_property(values):
    rows, _ = decode_columnar(_build([(DataType.FP64, values)]))
    assert [row[0] for row in rows] == values


@settings(max_examples=40, deadline=None)
@given(st.lists(st.one_of(st.none(), st.text(max_size=60)), max_size=400))
def test_varchar_round_trip_property(values):
    rows, _ = decode_columnar(_build([(DataType.VARCHAR, values)]))
    assert [row[0] for row in rows] == values