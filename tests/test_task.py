"""
Tests for the anonymization task
"""

import logging
import math

import pytest

from stream_anonymize.config import FilterConfig, FilterKind
from stream_anonymize.filters import make_filter
from stream_anonymize.task import (
    AnonymizationResult,
    AnonymizeCallbacks,
    anonymize_stream,
    format_anonymization_report,
)
from tests.shared import make_numerical_df, make_source

_LOGGER = logging.getLogger(__name__)
_QIDS = ["age", "income"]


class _RecordingCallbacks(AnonymizeCallbacks):
    def __init__(self):
        super().__init__()
        self.pairs = []
        self.snapshots = []

    def record_emitted(self, pair):
        self.pairs.append(pair)

    def evaluation_updated(self, metrics):
        self.snapshots.append(metrics)


def _make_filter(n, kind=FilterKind.DIFFERENTIAL_PRIVACY, **config_kwargs):
    source = make_source(make_numerical_df(n), qids=_QIDS)
    return make_filter(_LOGGER, kind, source, FilterConfig(**config_kwargs))


class TestAnonymizeStream:
    """
    Tests for anonymize_stream.
    """

    # pylint: disable=no-self-use

    def test_all_records(self):
        callbacks = _RecordingCallbacks()
        result = anonymize_stream(
            _LOGGER, _make_filter(45, buffer_size=10), evaluation_update_rate=10, callbacks=callbacks
        )
        assert result.n_anonymized == 45
        assert len(callbacks.pairs) == 45
        assert len(callbacks.snapshots) == 4
        assert len(result.evaluation_df) == 4
        assert list(result.evaluation_df["n_observed"]) == [10.0, 20.0, 30.0, 40.0]
        assert 0.0 < result.disclosure_risk <= 1.0 / 3.0
        assert result.information_loss > 0.0
        assert result.n_polls >= 45
        assert callbacks.timestamps["anonymize_am"] >= callbacks.timestamps["anonymize_bm"]

    def test_max_records(self):
        privacy_filter = _make_filter(50, kind=FilterKind.NOISE_ADDITION)
        result = anonymize_stream(_LOGGER, privacy_filter, max_records=7)
        assert result.n_anonymized == 7
        assert result.n_polls == 7
        assert privacy_filter.has_more()

    def test_max_records_zero(self):
        result = anonymize_stream(_LOGGER, _make_filter(5), max_records=0)
        assert result.n_anonymized == 0
        assert result.n_polls == 0

    def test_empty_stream(self):
        result = anonymize_stream(_LOGGER, _make_filter(0))
        assert result.n_anonymized == 0
        assert result.evaluation_df.empty
        assert result.disclosure_risk == 0.0

    def test_evaluation_disabled(self):
        callbacks = _RecordingCallbacks()
        result = anonymize_stream(
            _LOGGER, _make_filter(25, evaluate=False), evaluation_update_rate=5, callbacks=callbacks
        )
        assert result.n_anonymized == 25
        assert callbacks.snapshots == []
        assert math.isnan(result.disclosure_risk)
        assert math.isnan(result.information_loss)

    @pytest.mark.parametrize(
        "kwargs",
        [{"evaluation_update_rate": 0}, {"max_records": -1}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            anonymize_stream(_LOGGER, _make_filter(5), **kwargs)


class TestFormatAnonymizationReport:
    """
    Tests for format_anonymization_report.
    """

    # pylint: disable=no-self-use

    def test_report(self):
        privacy_filter = _make_filter(3)
        result = AnonymizationResult(n_anonymized=3, disclosure_risk=1.0 / 3.0, information_loss=0.5)
        report = format_anonymization_report(result, privacy_filter.schema, "out.arff")
        lines = report.splitlines()
        assert "ANONYMIZATION TASK COMPLETED" in lines[0]
        assert lines[1] == "3 records have been anonymized from the stream with header:"
        assert "@attribute age numeric % quasi-identifier" in lines
        assert "@attribute zip numeric" in lines
        assert "and have been stored in the file: out.arff" in lines
        assert "Total disclosure risk:  0.333333333333" in lines
        assert "Total information loss: 0.500000000000" in lines

    def test_report_without_evaluation(self):
        result = AnonymizationResult(
            n_anonymized=0, disclosure_risk=math.nan, information_loss=math.nan
        )
        report = format_anonymization_report(result, None)
        assert "error: no stream header available" in report
        assert "Total disclosure risk:  n/a" in report
        assert "stored in the file" not in report
