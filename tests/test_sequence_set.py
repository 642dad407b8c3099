"""Tests for the SequenceSet module."""

import random

import pytest

from remote_content_by_folder.sequence_set import SequenceSet


def assert_normalized(seq: SequenceSet) -> None:
    """Ranges must be sorted with a gap of at least one between neighbours."""
    ranges = seq.ranges
    for start, end in ranges:
        assert start <= end
    for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
        assert next_start > prev_end + 1


def test_empty_set():
    seq = SequenceSet()
    assert not seq.is_member(0)
    assert len(seq) == 0
    assert seq.ranges == ()
    assert seq.dump() == ""


def test_monotonic_adds_collapse_into_one_range():
    seq = SequenceSet()
    for num in range(100, 200):
        seq.add(num)
    assert seq.ranges == ((100, 199),)
    assert seq.is_member(150)
    assert not seq.is_member(99)
    assert not seq.is_member(200)


def test_gaps_create_separate_ranges():
    seq = SequenceSet([1, 2, 3, 7, 8, 20])
    assert seq.ranges == ((1, 3), (7, 8), (20, 20))
    assert seq.dump() == "1:3 7:8 20:20"
    assert seq.range_count == 3


def test_filling_a_gap_merges_neighbours():
    seq = SequenceSet([1, 2, 4, 5])
    assert seq.range_count == 2
    seq.add(3)
    assert seq.ranges == ((1, 5),)


def test_filling_a_gap_from_cached_range_merges_next():
    seq = SequenceSet([10, 12])
    seq.add(10)  # touch the first range so it is cached
    seq.add(11)
    assert seq.ranges == ((10, 12),)


def test_insert_before_existing_range_extends_it():
    seq = SequenceSet([5, 6])
    seq.add(4)
    assert seq.ranges == ((4, 6),)


def test_insert_singleton_at_front_and_middle():
    seq = SequenceSet([10, 20])
    seq.add(1)
    seq.add(15)
    assert seq.ranges == ((1, 1), (10, 10), (15, 15), (20, 20))


def test_adding_existing_member_is_noop():
    seq = SequenceSet([1, 2, 3, 10])
    before = seq.ranges
    seq.add(2)
    seq.add(10)
    seq.add(3)
    assert seq.ranges == before
    assert len(seq) == 4


def test_negative_numbers_are_rejected():
    seq = SequenceSet()
    with pytest.raises(ValueError):
        seq.add(-1)
    assert -1 not in seq


def test_zero_is_a_valid_member():
    seq = SequenceSet([0, 1])
    assert 0 in seq
    assert seq.ranges == ((0, 1),)


def test_contains_and_iteration():
    seq = SequenceSet([3, 1, 2, 9])
    assert 2 in seq
    assert 5 not in seq
    assert "2" not in seq
    assert list(seq) == [1, 2, 3, 9]
    assert len(seq) == 4


def test_clear():
    seq = SequenceSet([1, 2, 3])
    seq.clear()
    assert not seq
    assert 2 not in seq
    seq.add(2)
    assert seq.ranges == ((2, 2),)


def test_random_adds_match_reference_set():
    """Members equal the union of the added values and ranges stay normalized."""
    rng = random.Random(1234)
    for _ in range(50):
        seq = SequenceSet()
        expected: set[int] = set()
        for _ in range(200):
            num = rng.randrange(0, 150)
            seq.add(num)
            expected.add(num)
            assert seq.is_member(num)
            assert_normalized(seq)
        assert set(seq) == expected
        for num in range(0, 160):
            assert seq.is_member(num) == (num in expected)


def test_mostly_monotonic_with_late_stragglers():
    seq = SequenceSet()
    ids = list(range(1000, 1100, 2)) + list(range(1001, 1100, 2))
    for num in ids:
        seq.add(num)
        assert_normalized(seq)
    assert seq.ranges == ((1000, 1099),)
