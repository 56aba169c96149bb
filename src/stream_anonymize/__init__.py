"""
Stream Anonymize - Privacy-preserving anonymization of record streams.

This package implements buffered k-anonymous microaggregation, Laplace noise for
differential privacy, and incremental disclosure risk and information loss
evaluation for potentially unbounded streams of records.
"""

from stream_anonymize._version import __version__
from stream_anonymize.config import FilterConfig, FilterKind, SensitivityModel
from stream_anonymize.data_quality import compute_data_quality_metrics
from stream_anonymize.evaluation import Evaluation
from stream_anonymize.exceptions import CapacityExceeded, EvaluationDisabled, Exhausted
from stream_anonymize.filters import (
    DifferentialPrivacyFilter,
    MicroaggregationFilter,
    NoiseAdditionFilter,
    PrivacyFilter,
    PullResult,
    PullStatus,
    make_filter,
)
from stream_anonymize.records import Attribute, AttributeType, Record, RecordPair, Schema
from stream_anonymize.sources import DataFrameSource, RecordSource, infer_schema
from stream_anonymize.task import (
    AnonymizationResult,
    AnonymizeCallbacks,
    anonymize_stream,
    format_anonymization_report,
)

__all__ = [
    "__version__",
    "FilterConfig",
    "FilterKind",
    "SensitivityModel",
    "make_filter",
    "PrivacyFilter",
    "DifferentialPrivacyFilter",
    "MicroaggregationFilter",
    "NoiseAdditionFilter",
    "PullResult",
    "PullStatus",
    "Evaluation",
    "compute_data_quality_metrics",
    "CapacityExceeded",
    "EvaluationDisabled",
    "Exhausted",
    "Attribute",
    "AttributeType",
    "Record",
    "RecordPair",
    "Schema",
    "RecordSource",
    "DataFrameSource",
    "infer_schema",
    "anonymize_stream",
    "format_anonymization_report",
    "AnonymizeCallbacks",
    "AnonymizationResult",
]
