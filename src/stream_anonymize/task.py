"""
Driving a privacy filter to completion.

This module provides the loop that pulls anonymized records out of a privacy
filter, periodically snapshots its evaluation, and hands both to caller
supplied callbacks, which are responsible for persisting them. It also renders
the final report of an anonymization run.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from stream_anonymize.constants import DEFAULT_EVALUATION_UPDATE_RATE, NOT_DEFINED_NA
from stream_anonymize.filters import PrivacyFilter, PullStatus
from stream_anonymize.records import RecordPair, Schema


class AnonymizeCallbacks:
    """
    Callback mechanism for persistence and instrumentation of an anonymization run.

    The default implementation records timestamps at the start and end of the
    run and ignores records and metrics. Users extend this class to write the
    anonymized records and the evaluation snapshots wherever they need.

    Attributes
    ----------
    timestamps : dict
        Dictionary storing timestamps for the stages of the run. Keys are
        'anonymize_bm' and 'anonymize_am', where 'bm' stands for "before method"
        and 'am' for "after method".

    Examples
    --------
    >>> class PrintingCallbacks(AnonymizeCallbacks):
    ...     def record_emitted(self, pair):
    ...         print(pair.anonymized)
    ...
    ...     def evaluation_updated(self, metrics):
    ...         print(f"disclosure risk: {metrics['disclosure_risk']:.3f}")
    """

    def __init__(self) -> None:
        self.timestamps: dict[str, float] = {}

    def anonymize_bm(self) -> None:
        self.timestamps["anonymize_bm"] = time.time()

    def anonymize_am(self) -> None:
        self.timestamps["anonymize_am"] = time.time()

    def record_emitted(self, pair: RecordPair) -> None:
        pass

    def evaluation_updated(self, metrics: dict[str, float]) -> None:
        pass


@dataclass
class AnonymizationResult:
    """
    Summary of an anonymization run.

    Parameters
    ----------
    n_anonymized : int
        Number of anonymized records emitted.
    disclosure_risk : float
        Final disclosure risk estimate; np.nan if evaluation is disabled.
    information_loss : float
        Final information loss estimate; np.nan if evaluation is disabled.
    evaluation_df : pd.DataFrame
        One row per evaluation snapshot, one column per metric.
    n_polls : int, default=0
        Number of ``next_pair()`` calls, including PENDING ones.
    """

    n_anonymized: int
    disclosure_risk: float
    information_loss: float
    evaluation_df: pd.DataFrame = field(default_factory=pd.DataFrame)
    n_polls: int = 0


def anonymize_stream(
    logger: logging.Logger,
    privacy_filter: PrivacyFilter,
    max_records: Optional[int] = None,
    evaluation_update_rate: int = DEFAULT_EVALUATION_UPDATE_RATE,
    callbacks: Optional[AnonymizeCallbacks] = None,
) -> AnonymizationResult:
    """
    Drive a privacy filter until the stream is over or enough records were emitted.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording progress.
    privacy_filter : PrivacyFilter
        The filter to drive.
    max_records : Optional[int], default=None
        Stop after this many anonymized records; None means no limit.
    evaluation_update_rate : int, default=10
        Snapshot the evaluation every this many anonymized records; >= 1.
        Snapshots are skipped when the filter has evaluation disabled.
    callbacks : Optional[AnonymizeCallbacks], default=None
        Receives every anonymized pair and every evaluation snapshot.

    Returns
    -------
    AnonymizationResult
        Counts, final metrics and the evaluation history.

    Raises
    ------
    ValueError
        If evaluation_update_rate < 1 or max_records < 0.
    """
    if evaluation_update_rate < 1:
        raise ValueError(f"evaluation_update_rate ({evaluation_update_rate}) must be >= 1")
    if max_records is not None and max_records < 0:
        raise ValueError(f"max_records ({max_records}) must be >= 0")
    if callbacks is None:
        callbacks = AnonymizeCallbacks()

    callbacks.anonymize_bm()
    evaluation_rows: list[dict[str, float]] = []
    n_anonymized, n_polls = 0, 0
    while (max_records is None or n_anonymized < max_records) and privacy_filter.has_more():
        result = privacy_filter.next_pair()
        n_polls += 1
        if result.status == PullStatus.EXHAUSTED:
            break
        if result.status == PullStatus.PENDING:
            continue
        assert result.pair is not None
        n_anonymized += 1
        callbacks.record_emitted(result.pair)
        if n_anonymized % evaluation_update_rate == 0 and privacy_filter.evaluation is not None:
            metrics = privacy_filter.evaluation.metrics()
            evaluation_rows.append(metrics)
            callbacks.evaluation_updated(metrics)
            logger.info("%d records anonymized", n_anonymized)
    callbacks.anonymize_am()

    if privacy_filter.evaluation is not None:
        disclosure_risk = privacy_filter.current_disclosure_risk()
        information_loss = privacy_filter.current_information_loss()
    else:
        disclosure_risk, information_loss = NOT_DEFINED_NA, NOT_DEFINED_NA
    logger.info(
        "Anonymization completed: %d records, disclosure risk %s, information loss %s",
        n_anonymized,
        disclosure_risk,
        information_loss,
    )
    return AnonymizationResult(
        n_anonymized=n_anonymized,
        disclosure_risk=disclosure_risk,
        information_loss=information_loss,
        evaluation_df=pd.DataFrame(evaluation_rows),
        n_polls=n_polls,
    )


def format_anonymization_report(
    result: AnonymizationResult, schema: Optional[Schema], output_path: Optional[str] = None
) -> str:
    """
    Render the final text report of an anonymization run.

    Parameters
    ----------
    result : AnonymizationResult
        Result of :func:`anonymize_stream`.
    schema : Optional[Schema]
        Schema of the anonymized stream; None if unavailable.
    output_path : Optional[str], default=None
        Where the anonymized records were stored, if anywhere.

    Returns
    -------
    str
        The report.
    """
    banner = "**** " * 5
    lines = [
        f"{banner}ANONYMIZATION TASK COMPLETED {banner}".strip(),
        f"{result.n_anonymized} records have been anonymized from the stream with header:",
        schema.header() if schema is not None else "error: no stream header available",
    ]
    if output_path is not None:
        lines.append(f"and have been stored in the file: {output_path}")
    lines.append(f"Total disclosure risk:  {_format_metric(result.disclosure_risk)}")
    lines.append(f"Total information loss: {_format_metric(result.information_loss)}")
    lines.append(("**** " * 16).strip())
    return "\n".join(lines) + "\n"


def _format_metric(value: float) -> str:
    return "n/a" if math.isnan(value) else f"{value:.12f}"
