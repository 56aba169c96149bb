"""
Privacy filters: pull-based anonymization of a record source.

A privacy filter wraps a :class:`~stream_anonymize.sources.RecordSource` and
publishes anonymized records one at a time. Each call to
:meth:`PrivacyFilter.next_pair` goes through two phases:

1. Ingest: if the source has more input, pull exactly one record and hand it to
   the anonymization stage.
2. Emit: try to obtain one anonymized pair; if there is one, observe it for
   evaluation and return it.

Buffered filters do not produce a pair for every record they ingest, so the
result is three-valued (:class:`PullStatus`): READY with a pair, PENDING when
nothing is ready yet (poll again), or EXHAUSTED when the stream is over.

The set of filters is closed and selected with :class:`~stream_anonymize.config.FilterKind`:

- DIFFERENTIAL_PRIVACY: microaggregation followed by Laplace noise
- MICROAGGREGATION: microaggregation only (k-anonymity)
- NOISE_ADDITION: record-level Laplace noise only
"""

import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from stream_anonymize.config import FilterConfig, FilterKind
from stream_anonymize.evaluation import Evaluation
from stream_anonymize.exceptions import EvaluationDisabled
from stream_anonymize.microaggregation import TotalOrderMicroAggregator
from stream_anonymize.noise import LaplaceMechanism, compute_sensitivities
from stream_anonymize.records import Record, RecordPair, Schema
from stream_anonymize.sources import RecordSource

PullStatus = Enum("PullStatus", ["READY", "PENDING", "EXHAUSTED"])


@dataclass(frozen=True)
class PullResult:
    """
    Outcome of one :meth:`PrivacyFilter.next_pair` call.

    Parameters
    ----------
    status : PullStatus
        READY if pair holds the next anonymized pair; PENDING if nothing is ready
        yet but the stream is not over; EXHAUSTED if the stream is over.
    pair : Optional[RecordPair], default=None
        The pair, set if and only if status is READY.
    """

    status: PullStatus
    pair: Optional[RecordPair] = None

    @property
    def is_ready(self) -> bool:
        return self.status == PullStatus.READY

    @classmethod
    def ready(cls, pair: RecordPair) -> "PullResult":
        return cls(PullStatus.READY, pair)

    @classmethod
    def pending(cls) -> "PullResult":
        return cls(PullStatus.PENDING)

    @classmethod
    def exhausted(cls) -> "PullResult":
        return cls(PullStatus.EXHAUSTED)


class PrivacyFilter(metaclass=ABCMeta):
    """
    Abstract base class for pull-based privacy filters.

    Subclasses define how ingested records are turned into anonymized pairs by
    implementing :meth:`prepare`, :meth:`ingest`, :meth:`signal_exhausted`,
    :meth:`anonymize_next` and :meth:`has_pending`. This base class drives the
    source, tracks evaluation, and implements the pull contract.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording the anonymization process.
    source : RecordSource
        Source of the records to anonymize.
    config : FilterConfig
        Filter parameters; validated at construction.

    Raises
    ------
    ValueError
        If the configuration is invalid.
    """

    def __init__(self, logger: logging.Logger, source: RecordSource, config: FilterConfig):
        config.validate()
        self.logger = logger
        self.source = source
        self.config = config
        self.logger.info("Preparing %s with %s", type(self).__name__, config)
        self.evaluation: Optional[Evaluation] = Evaluation(source.schema) if config.evaluate else None
        self._exhaustion_signaled = False
        self.prepare()

    @property
    def schema(self) -> Schema:
        return self.source.schema

    def debug_logging_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    @abstractmethod
    def prepare(self) -> None:
        """
        Build the anonymization stage from the configuration.
        """

    @abstractmethod
    def ingest(self, record: Record) -> None:
        pass

    @abstractmethod
    def signal_exhausted(self) -> None:
        """
        Tell the anonymization stage that no more records will be ingested.
        """

    @abstractmethod
    def anonymize_next(self) -> Optional[RecordPair]:
        """
        Return the next anonymized pair, or None if none is ready.
        """

    @abstractmethod
    def has_pending(self) -> bool:
        """
        Whether the anonymization stage holds records not yet emitted.
        """

    def restart(self) -> None:
        """
        Restart the source and discard all anonymization and evaluation state.
        """
        self.source.restart()
        self._exhaustion_signaled = False
        if self.evaluation is not None:
            self.evaluation.reset()
        self.prepare()

    def has_more(self) -> bool:
        return self.has_pending() or self.source.has_more()

    def next_pair(self) -> PullResult:
        """
        Ingest at most one record and emit at most one anonymized pair.

        Returns
        -------
        PullResult
            READY with the next pair, PENDING if the filter is still buffering,
            or EXHAUSTED if neither the source nor the filter has more records.
        """
        if self.source.has_more():
            self.ingest(self.source.next_record())
        if not self.source.has_more() and not self._exhaustion_signaled:
            self._exhaustion_signaled = True
            self.logger.debug("Source exhausted, flushing %s", type(self).__name__)
            self.signal_exhausted()
        pair = self.anonymize_next()
        if pair is None:
            return PullResult.pending() if self.has_more() else PullResult.exhausted()
        if self.evaluation is not None:
            self.evaluation.observe(pair)
        return PullResult.ready(pair)

    def __iter__(self) -> Iterator[RecordPair]:
        while self.has_more():
            result = self.next_pair()
            if result.is_ready:
                assert result.pair is not None
                yield result.pair

    def get_evaluation(self) -> Evaluation:
        """
        Return the evaluation of the pairs emitted so far.

        Raises
        ------
        EvaluationDisabled
            If the filter was configured with ``evaluate=False``.
        """
        if self.evaluation is None:
            raise EvaluationDisabled(f"{type(self).__name__} was configured without evaluation")
        return self.evaluation

    def current_disclosure_risk(self) -> float:
        return self.get_evaluation().disclosure_risk()

    def current_information_loss(self) -> float:
        return self.get_evaluation().information_loss()


class MicroaggregationFilter(PrivacyFilter):
    """
    k-anonymous microaggregation of the stream, without noise.
    """

    def prepare(self) -> None:
        self.microaggregator = TotalOrderMicroAggregator(
            self.logger, self.schema, self.config.k, self.config.buffer_size
        )

    def ingest(self, record: Record) -> None:
        self.microaggregator.add(record)

    def signal_exhausted(self) -> None:
        self.microaggregator.flush()

    def anonymize_next(self) -> Optional[RecordPair]:
        return self.microaggregator.next_pair()

    def has_pending(self) -> bool:
        return self.microaggregator.has_more()


class DifferentialPrivacyFilter(MicroaggregationFilter):
    """
    Microaggregation followed by Laplace noise.

    Microaggregation makes the output k-anonymous and reduces the sensitivity of
    each published quasi-identifier by a factor of k, so that less noise is
    needed to make it differentially private.
    """

    def prepare(self) -> None:
        super().prepare()
        idx_to_sensitivity = compute_sensitivities(
            self.schema,
            self.config.sensitivity_model,
            self.config.sensitivity,
            cluster_size=self.config.k,
        )
        self.mechanism = LaplaceMechanism(
            self.logger, self.config.epsilon, idx_to_sensitivity, self.config.seed
        )

    def anonymize_next(self) -> Optional[RecordPair]:
        pair = self.microaggregator.next_pair()
        if pair is None:
            return None
        return RecordPair(
            original=pair.original,
            anonymized=self.mechanism.apply(pair.anonymized),
            cluster_id=pair.cluster_id,
            cluster_size=pair.cluster_size,
        )


class NoiseAdditionFilter(PrivacyFilter):
    """
    Record-level Laplace noise, without buffering.

    Every ingested record is emitted on the same call, so this filter never
    returns PENDING. Records are not clustered and count as clusters of one for
    disclosure risk.
    """

    def prepare(self) -> None:
        idx_to_sensitivity = compute_sensitivities(
            self.schema,
            self.config.sensitivity_model,
            self.config.sensitivity,
            cluster_size=1,
        )
        self.mechanism = LaplaceMechanism(
            self.logger, self.config.epsilon, idx_to_sensitivity, self.config.seed
        )
        self._next_record: Optional[Record] = None

    def ingest(self, record: Record) -> None:
        assert self._next_record is None, "Previous record was not emitted"
        self._next_record = record

    def signal_exhausted(self) -> None:
        pass

    def anonymize_next(self) -> Optional[RecordPair]:
        if self._next_record is None:
            return None
        record, self._next_record = self._next_record, None
        return RecordPair(original=record, anonymized=self.mechanism.apply(record), cluster_size=1)

    def has_pending(self) -> bool:
        return self._next_record is not None


_FILTER_KIND_TO_CLASS: dict[FilterKind, type[PrivacyFilter]] = {
    FilterKind.DIFFERENTIAL_PRIVACY: DifferentialPrivacyFilter,
    FilterKind.MICROAGGREGATION: MicroaggregationFilter,
    FilterKind.NOISE_ADDITION: NoiseAdditionFilter,
}


def make_filter(
    logger: logging.Logger,
    kind: FilterKind,
    source: RecordSource,
    config: Optional[FilterConfig] = None,
) -> PrivacyFilter:
    """
    Build a privacy filter of the given kind over a source.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording the anonymization process.
    kind : FilterKind
        Which filter to build.
    source : RecordSource
        Source of the records to anonymize.
    config : Optional[FilterConfig], default=None
        Filter parameters; defaults are used if None.

    Returns
    -------
    PrivacyFilter
        The prepared filter.

    Raises
    ------
    ValueError
        If kind is unknown or the configuration is invalid.
    """
    if kind not in _FILTER_KIND_TO_CLASS:
        raise ValueError(f"Unknown filter kind ({kind})")
    return _FILTER_KIND_TO_CLASS[kind](logger, source, config or FilterConfig())
