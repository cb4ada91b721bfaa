from orchtx.snapshots import parse_storage


def test_parse_storage_decodes_pairs():
    storage = [(b"count", b"1"), (b"owner", b'"sender"')]
    assert parse_storage(storage) == [("count", "1"), ("owner", '"sender"')]


def test_parse_storage_keeps_order_and_length():
    storage = [(bytes([i]), bytes([i])) for i in range(1, 20)]
    result = parse_storage(storage)
    assert len(result) == len(storage)
    assert [k for k, _ in result] == [chr(i) for i in range(1, 20)]


def test_parse_storage_invalid_utf8_is_replaced():
    result = parse_storage([(b"\x00\x05key\xff", b"\xfe")])
    assert result == [("\x00\x05key\ufffd", "\ufffd")]


def test_parse_storage_empty():
    assert parse_storage([]) == []