from utils.record import coerce_float, coerce_int, read_field


class RowLike:
    def __init__(self, data):
        self._data = data

    def __getitem__(self, key):
        return self._data[key]


def test_read_field_with_dict():
    record = {"posted": "1705314600"}

    assert read_field(record, "posted") == "1705314600"
    assert read_field(record, "missing") is None
    assert read_field(record, "missing", "default") == "default"


def test_read_field_with_row_like():
    row = RowLike({"root_gid": 12})

    assert read_field(row, "root_gid") == 12
    assert read_field(row, "missing") is None
    assert read_field(row, "missing", "default") == "default"


def test_read_field_handles_none():
    assert read_field(None, "anything") is None
    assert read_field(None, "anything", "default") == "default"


def test_coerce_int_accepts_api_strings():
    assert coerce_int("24") == 24
    assert coerce_int(" 7 ") == 7
    assert coerce_int("3.0") == 3
    assert coerce_int("n/a") is None
    assert coerce_int(None, 0) == 0
    assert coerce_int(True) is None


def test_coerce_float():
    assert coerce_float("4.52") == 4.52
    assert coerce_float("") is None
    assert coerce_float(None, 0.0) == 0.0
