"""
Tests for record sources
"""

import logging

import numpy as np
import pandas as pd
import pytest

from stream_anonymize.exceptions import Exhausted
from stream_anonymize.records import AttributeType, Record
from stream_anonymize.sources import DataFrameSource, infer_schema

_LOGGER = logging.getLogger(__name__)


def _df():
    return pd.DataFrame(
        {
            "age": pd.Series([30, 40, 50], dtype=np.dtype("int64")),
            "height": [1.5, np.nan, 1.8],
            "city": pd.Series(["a", "b", None], dtype=object),
        }
    )


class TestInferSchema:
    """
    Tests for infer_schema.
    """

    # pylint: disable=no-self-use

    def test_types_and_default_qids(self):
        schema = infer_schema(_df())
        assert [attribute.attribute_type for attribute in schema.attributes] == [
            AttributeType.NUMERIC,
            AttributeType.NUMERIC,
            AttributeType.CATEGORICAL,
        ]
        assert schema.qid_names == ["age", "height", "city"]

    def test_qids(self):
        schema = infer_schema(_df(), qids=["age"])
        assert schema.qid_names == ["age"]

    def test_unknown_qid(self):
        with pytest.raises(ValueError):
            infer_schema(_df(), qids=["weight"])

    def test_unknown_domain(self):
        with pytest.raises(ValueError):
            infer_schema(_df(), domains={"weight": (0.0, 1.0)})

    def test_unsupported_dtype(self):
        df = pd.DataFrame({"when": pd.to_datetime(["2020-01-01"])})
        with pytest.raises(ValueError):
            infer_schema(df)

    def test_domains(self):
        schema = infer_schema(_df(), domains={"age": (0.0, 120.0)}, infer_domains=True)
        assert schema.attributes[0].domain == (0.0, 120.0)
        assert schema.attributes[1].domain == (1.5, 1.8)
        assert schema.attributes[2].domain is None


class TestDataFrameSource:
    """
    Tests for DataFrameSource.
    """

    # pylint: disable=no-self-use

    def test_streams_rows_in_order(self):
        source = DataFrameSource(_LOGGER, _df())
        records = []
        while source.has_more():
            records.append(source.next_record())
        assert len(records) == 3
        assert all(isinstance(record, Record) for record in records)
        assert records[0].values == (30, 1.5, "a")
        assert isinstance(records[0][0], int)
        assert np.isnan(records[1][1])
        assert records[2][2] is None

    def test_exhausted(self):
        source = DataFrameSource(_LOGGER, _df())
        for _ in range(3):
            source.next_record()
        assert not source.has_more()
        with pytest.raises(Exhausted):
            source.next_record()

    def test_restart(self):
        source = DataFrameSource(_LOGGER, _df())
        first_record = source.next_record()
        source.next_record()
        source.restart()
        assert source.next_record() == first_record

    def test_empty(self):
        source = DataFrameSource(_LOGGER, _df().iloc[0:0])
        assert not source.has_more()
