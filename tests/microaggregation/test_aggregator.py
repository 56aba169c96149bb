"""
Tests for TotalOrderMicroAggregator
"""

import logging
import math
from collections import defaultdict

import numpy as np
import pytest

from stream_anonymize.constants import EPSILON
from stream_anonymize.exceptions import CapacityExceeded
from stream_anonymize.microaggregation import TotalOrderMicroAggregator
from stream_anonymize.records import Attribute, AttributeType, Record, Schema, is_missing

_LOGGER = logging.getLogger(__name__)

_SCHEMA = Schema(
    (
        Attribute("age", AttributeType.NUMERIC),
        Attribute("city", AttributeType.CATEGORICAL),
        Attribute("salary", AttributeType.NUMERIC, quasi_identifying=False),
    )
)


def _records(n, seed=0):
    rng = np.random.default_rng(seed)
    return [
        Record(
            (
                float(rng.integers(18, 90)),
                str(rng.choice(["x", "y", "z"])),
                float(rng.normal(50_000.0, 10_000.0)),
            )
        )
        for _ in range(n)
    ]


def _drain(microaggregator):
    pairs = []
    while True:
        pair = microaggregator.next_pair()
        if pair is None:
            return pairs
        pairs.append(pair)


def _run(records, k, buffer_size):
    microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, k, buffer_size)
    pairs = []
    for record in records:
        microaggregator.add(record)
        pair = microaggregator.next_pair()
        if pair is not None:
            pairs.append(pair)
    microaggregator.flush()
    pairs.extend(_drain(microaggregator))
    assert not microaggregator.has_more()
    return pairs


def _cluster_id_to_pairs(pairs):
    cluster_id_to_pairs = defaultdict(list)
    for pair in pairs:
        cluster_id_to_pairs[pair.cluster_id].append(pair)
    return cluster_id_to_pairs


class TestTotalOrderMicroAggregator:
    """
    Tests for TotalOrderMicroAggregator.
    """

    # pylint: disable=no-self-use

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 0, 10)
        with pytest.raises(ValueError):
            TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 4, 3)

    def test_holds_records_until_buffer_full(self):
        microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 3, 10)
        for record in _records(9):
            microaggregator.add(record)
            assert microaggregator.next_pair() is None
        assert microaggregator.n_buffered == 9
        assert microaggregator.has_more()

    def test_full_buffer_sizes(self):
        pairs = _run(_records(10), k=3, buffer_size=10)
        assert len(pairs) == 10
        sizes = sorted(len(members) for members in _cluster_id_to_pairs(pairs).values())
        assert sizes == [3, 3, 4]
        for pair in pairs:
            assert pair.cluster_size in (3, 4)

    def test_partial_cluster_on_flush(self):
        records = _records(3)
        pairs = _run(records, k=3, buffer_size=5)
        assert len(pairs) == 3
        assert {pair.cluster_id for pair in pairs} == {0}
        assert all(pair.cluster_size == 3 for pair in pairs)
        expected_age = sum(record[0] for record in records) / 3
        for pair in pairs:
            np.testing.assert_allclose(pair.anonymized[0], expected_age, atol=EPSILON)

    def test_fewer_than_k_records(self, caplog):
        with caplog.at_level(logging.WARNING):
            pairs = _run(_records(2), k=3, buffer_size=10)
        assert len(pairs) == 2
        assert all(pair.cluster_size == 2 for pair in pairs)
        assert "fewer than k" in caplog.text

    def test_arrival_order_preserved(self):
        records = _records(47, seed=1)
        pairs = _run(records, k=3, buffer_size=10)
        assert [pair.original for pair in pairs] == records

    def test_k_anonymity(self):
        pairs = _run(_records(100, seed=2), k=4, buffer_size=20)
        for members in _cluster_id_to_pairs(pairs).values():
            assert len(members) >= 4
            assert all(pair.cluster_size == len(members) for pair in members)
            qid_values = {(pair.anonymized[0], pair.anonymized[1]) for pair in members}
            assert len(qid_values) == 1

    def test_representatives(self):
        pairs = _run(_records(30, seed=3), k=3, buffer_size=10)
        for members in _cluster_id_to_pairs(pairs).values():
            mean_age = sum(pair.original[0] for pair in members) / len(members)
            np.testing.assert_allclose(members[0].anonymized[0], mean_age, atol=EPSILON)
            cities = [pair.original[1] for pair in members]
            assert cities.count(members[0].anonymized[1]) == max(
                cities.count(city) for city in cities
            )

    def test_non_qids_unchanged(self):
        pairs = _run(_records(25, seed=4), k=3, buffer_size=10)
        for pair in pairs:
            assert pair.anonymized[2] == pair.original[2]

    def test_originals_not_modified(self):
        records = _records(12, seed=5)
        copies = [Record(tuple(record.values)) for record in records]
        _run(records, k=3, buffer_size=10)
        assert records == copies

    def test_cluster_ids_unique_across_batches(self):
        pairs = _run(_records(24, seed=6), k=3, buffer_size=12)
        assert sorted(_cluster_id_to_pairs(pairs).keys()) == list(range(8))

    def test_missing_values_stay_missing(self):
        records = [
            Record((20.0, "x", 1.0)),
            Record((np.nan, "y", 2.0)),
            Record((40.0, None, 3.0)),
        ]
        pairs = _run(records, k=3, buffer_size=10)
        assert is_missing(pairs[1].anonymized[0])
        assert pairs[2].anonymized[1] is None
        np.testing.assert_allclose(pairs[0].anonymized[0], 30.0, atol=EPSILON)
        np.testing.assert_allclose(pairs[2].anonymized[0], 30.0, atol=EPSILON)
        # "x" and "y" tie, "x" arrived first
        assert pairs[0].anonymized[1] == "x"
        assert pairs[1].anonymized[1] == "x"

    def test_integer_categories_keep_their_type(self):
        schema = Schema(
            (
                Attribute("age", AttributeType.NUMERIC),
                Attribute("code", AttributeType.CATEGORICAL),
            )
        )
        records = [Record((float(i), code)) for i, code in enumerate([1, 2, None, 1, 2, 1])]
        microaggregator = TotalOrderMicroAggregator(_LOGGER, schema, 3, 10)
        for record in records:
            microaggregator.add(record)
        microaggregator.flush()
        pairs = _drain(microaggregator)
        assert [pair.anonymized[1] for pair in pairs] == [1, 1, None, 1, 1, 1]
        for pair in pairs:
            if pair.original[1] is not None:
                assert type(pair.anonymized[1]) is int  # pylint: disable=unidiomatic-typecheck
        assert str(pairs[0].anonymized).endswith(",1")

    def test_all_missing_cluster(self):
        records = [Record((math.nan, None, float(i))) for i in range(3)]
        pairs = _run(records, k=3, buffer_size=10)
        for pair in pairs:
            assert is_missing(pair.anonymized[0])
            assert pair.anonymized[1] is None

    def test_capacity_exceeded(self):
        microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 2, 5)
        records = _records(11, seed=7)
        for record in records[:10]:
            microaggregator.add(record)
        assert microaggregator.n_pending == 5
        assert microaggregator.n_buffered == 5
        with pytest.raises(CapacityExceeded):
            microaggregator.add(records[10])
        # draining the pending batch makes room again
        assert len(_drain(microaggregator)) == 10
        microaggregator.add(records[10])
        microaggregator.flush()
        assert len(_drain(microaggregator)) == 1

    def test_add_after_flush(self):
        microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 3, 10)
        microaggregator.flush()
        with pytest.raises(ValueError):
            microaggregator.add(_records(1)[0])

    def test_width_mismatch(self):
        microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 3, 10)
        with pytest.raises(ValueError):
            microaggregator.add(Record((1.0, "x")))

    def test_reset(self):
        microaggregator = TotalOrderMicroAggregator(_LOGGER, _SCHEMA, 3, 10)
        for record in _records(5):
            microaggregator.add(record)
        microaggregator.reset()
        assert not microaggregator.has_more()
        assert microaggregator.n_added == 0
