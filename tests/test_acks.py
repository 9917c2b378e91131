from renet.acks import MAX_PENDING_RANGES, PendingAcks


def ranges(acks):
    return list(acks)


def test_pending_acks():
    acks = PendingAcks()
    acks.add(3)
    assert ranges(acks) == [range(3, 4)]

    acks.add(4)
    assert ranges(acks) == [range(3, 5)]

    acks.add(2)
    assert ranges(acks) == [range(2, 5)]

    acks.add(0)
    assert ranges(acks) == [range(0, 1), range(2, 5)]

    acks.add(7)
    assert ranges(acks) == [range(0, 1), range(2, 5), range(7, 8)]

    acks.add(1)
    assert ranges(acks) == [range(0, 5), range(7, 8)]

    acks.add(5)
    assert ranges(acks) == [range(0, 6), range(7, 8)]

    acks.add(6)
    assert ranges(acks) == [range(0, 8)]


def test_ack_pending_acks():
    acks = PendingAcks()
    for i in range(10):
        acks.add(i)
    assert ranges(acks) == [range(0, 10)]

    acks.acked_largest(0)
    assert ranges(acks) == [range(1, 10)]

    acks.acked_largest(3)
    assert ranges(acks) == [range(4, 10)]

    acks.add(0)
    assert ranges(acks) == [range(0, 1), range(4, 10)]
    acks.acked_largest(5)
    assert ranges(acks) == [range(6, 10)]

    acks.add(0)
    assert ranges(acks) == [range(0, 1), range(6, 10)]
    acks.acked_largest(10)
    assert ranges(acks) == []


def test_duplicate_add_is_ignored():
    acks = PendingAcks()
    acks.add(5)
    acks.add(5)
    assert ranges(acks) == [range(5, 6)]
    assert len(acks) == 1


def test_acked_largest_below_all_ranges_keeps_them():
    acks = PendingAcks()
    acks.add(10)
    acks.add(11)
    acks.acked_largest(5)
    assert ranges(acks) == [range(10, 12)]


def test_acked_largest_on_last_element_removes_range():
    acks = PendingAcks()
    acks.add(3)
    acks.add(4)
    acks.acked_largest(4)
    assert len(acks) == 0


def test_number_of_ranges_is_limited():
    acks = PendingAcks()
    count = MAX_PENDING_RANGES + 1
    for i in range(count):
        acks.add(i * 2)
    result = ranges(acks)
    assert len(result) == MAX_PENDING_RANGES
    assert result[0] == range(2, 3)
    assert result[-1] == range((count - 1) * 2, (count - 1) * 2 + 1)


def test_iteration_returns_snapshot():
    acks = PendingAcks()
    acks.add(1)
    snapshot = ranges(acks)
    acks.add(2)
    assert snapshot == [range(1, 2)]
    assert ranges(acks) == [range(1, 3)]