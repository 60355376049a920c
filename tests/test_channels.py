from jugger_connect.realtime.channels import ChannelHub, private_channel


def test_emit_reaches_channel_members_except_skipped(make_connection, drain):
    hub = ChannelHub()
    first, second, outsider = make_connection(1), make_connection(1), make_connection(2)
    for conn in (first, second, outsider):
        hub.add(conn)
    hub.join(private_channel(1), first)
    hub.join(private_channel(1), second)

    assert hub.emit("1", "ping", {}, skip=second) == 1
    assert drain(first) == [{"event": "ping", "data": {}}]
    assert drain(second) == []
    assert drain(outsider) == []


def test_broadcast_and_discard(make_connection, drain):
    hub = ChannelHub()
    kept, gone = make_connection(1), make_connection(2)
    hub.add(kept)
    hub.add(gone)
    hub.join("2", gone)

    hub.discard(gone)

    assert len(hub) == 1
    assert hub.members("2") == set()
    assert hub.broadcast("hello", {"n": 1}) == 1
    assert drain(kept) == [{"event": "hello", "data": {"n": 1}}]


def test_closed_connection_is_skipped(make_connection, drain):
    hub = ChannelHub()
    conn = make_connection(1)
    hub.add(conn)
    conn.close()

    assert hub.broadcast("hello", {}) == 0
    assert conn.emit("hello", {}) is False
