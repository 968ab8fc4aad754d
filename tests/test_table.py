import io

import pytest

from colplan.decode import decode_columnar
from colplan.plan import DataType
from colplan.table import Table


def _sample():
    data = [
        [1, "xxx"],
        [1, "yyy"],
        [None, "zzz"],
        [2, "uuu"],
        [3, "vvv"],
    ]
    return Table(data, [DataType.INT32, DataType.VARCHAR])


def test_counts():
    table = _sample()
    assert table.number_rows() == 5
    assert table.number_cols() == 2


def test_round_trip_through_columnar():
    table = _sample()
    columnar = table.to_columnar()
    assert columnar.num_rows == 5
    assert [c.type for c in columnar.columns] == [DataType.INT32, DataType.VARCHAR]
    back = Table.from_columnar(columnar)
    assert back == table


def test_round_trip_with_nulls():
    table = Table([[1], [1], [None], [2], [3]], [DataType.INT32])
    back = Table.from_columnar(table.to_columnar())
    assert back.data == [[1], [1], [None], [2], [3]]


def test_to_columnar_matches_decoder():
    table = Table([[1.5, 10], [None, None]], [DataType.FP64, DataType.INT64])
    rows, types = decode_columnar(table.to_columnar())
    assert rows == table.data
    assert types == table.types


def test_from_columnar_shares_no_rows():
    table = Table([[4], [5], [6]], [DataType.INT32])
    back = Table.from_columnar(table.to_columnar())
    back.data[0][0] = 99
    assert table.data[0][0] == 4


def test_format_rows_quotes_and_escapes():
    lines = Table.format_rows([[1, 'a"b\\c\n', None, 2.5]])
    assert lines == ['1|"a\\"b\\\\c\\n"|NULL|2.5']


def test_format_rows_whole_float():
    assert Table.format_rows([[3.0, "x"]]) == ['3|"x"']


def test_print_rows_writes_lines():
    out = io.StringIO()
    Table.print_rows([[1, "a"], [None, "b"]], out)
    assert out.getvalue().splitlines() == Table.format_rows([[1, "a"], [None, "b"]])
    assert out.getvalue().count("\n") == 2


def test_to_columnar_rejects_non_string():
    with pytest.raises(TypeError):
        Table([[5]], [DataType.VARCHAR]).to_columnar()