"""
Record model for the streaming anonymization pipeline.

A stream is a sequence of fixed-width records that share a single schema for
the lifetime of the stream. Records are immutable: every transformation
(microaggregation, noise injection) produces a new record, which guarantees
that the original record captured from the source is never mutated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

AttributeType = Enum("AttributeType", ["NUMERIC", "CATEGORICAL"])


@dataclass(frozen=True)
class Attribute:
    """
    Description of a single attribute (column) of a stream.

    Parameters
    ----------
    name : str
        Attribute name, unique within a schema.
    attribute_type : AttributeType
        Whether values are numeric or categorical.
    quasi_identifying : bool, default=True
        Whether the attribute is a quasi-identifier, i.e. subject to
        microaggregation and noise.
    domain : Optional[Tuple[float, float]], default=None
        Publicly known (lower, upper) bounds of a numeric attribute. Used by
        the domain-range sensitivity model; must not be derived from private data
        if the differential privacy guarantee is to hold.
    """

    name: str
    attribute_type: AttributeType
    quasi_identifying: bool = True
    domain: Optional[tuple[float, float]] = None

    @property
    def is_numeric(self) -> bool:
        return self.attribute_type == AttributeType.NUMERIC

    @property
    def domain_width(self) -> Optional[float]:
        if self.domain is None:
            return None
        lower, upper = self.domain
        return float(upper - lower)


@dataclass(frozen=True)
class Schema:
    """
    Ordered attribute descriptors shared by all records of one stream.

    Parameters
    ----------
    attributes : Tuple[Attribute, ...]
        The attributes, in record order.
    relation : str, default="stream"
        Name of the stream, used when rendering the header.

    Raises
    ------
    ValueError
        If attribute names are not unique, or a domain is given for a
        categorical attribute or is inverted.
    """

    attributes: tuple[Attribute, ...]
    relation: str = "stream"

    def __post_init__(self) -> None:
        names = [attribute.name for attribute in self.attributes]
        if len(set(names)) != len(names):
            raise ValueError(f"Attribute names must be unique, got {names}")
        for attribute in self.attributes:
            if attribute.domain is None:
                continue
            if not attribute.is_numeric:
                raise ValueError(f"Domain given for categorical attribute ({attribute.name})")
            lower, upper = attribute.domain
            if upper < lower:
                raise ValueError(
                    f"Domain upper bound ({upper}) < lower bound ({lower}) for {attribute.name}"
                )

    def __len__(self) -> int:
        return len(self.attributes)

    @property
    def names(self) -> list[str]:
        return [attribute.name for attribute in self.attributes]

    @property
    def qid_names(self) -> list[str]:
        return [attribute.name for attribute in self.attributes if attribute.quasi_identifying]

    @property
    def qid_indices(self) -> list[int]:
        return [idx for idx, attribute in enumerate(self.attributes) if attribute.quasi_identifying]

    @property
    def numerical_qid_indices(self) -> list[int]:
        return [
            idx
            for idx, attribute in enumerate(self.attributes)
            if attribute.quasi_identifying and attribute.is_numeric
        ]

    def index_of(self, name: str) -> int:
        for idx, attribute in enumerate(self.attributes):
            if attribute.name == name:
                return idx
        raise KeyError(name)

    def header(self) -> str:
        """
        Render a textual header describing the stream, one attribute per line.

        Returns
        -------
        str
            ARFF-style header, e.g. ``@attribute age numeric``, with quasi-identifying
            attributes flagged by a trailing comment.
        """
        lines = [f"@relation {self.relation}"]
        for attribute in self.attributes:
            kind = "numeric" if attribute.is_numeric else "string"
            line = f"@attribute {attribute.name} {kind}"
            if attribute.quasi_identifying:
                line += " % quasi-identifier"
            lines.append(line)
        lines.append("@data")
        return "\n".join(lines)


@dataclass(frozen=True)
class Record:
    """
    An immutable, fixed-width vector of attribute values.
    """

    values: tuple[Any, ...]

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, idx: int) -> Any:
        return self.values[idx]

    def replace(self, idx_to_value: dict[int, Any]) -> "Record":
        """
        Return a copy of this record with some values replaced.

        Parameters
        ----------
        idx_to_value : Dict[int, Any]
            Mapping from attribute index to its new value.

        Returns
        -------
        Record
            A new record; this record is left unchanged.
        """
        if not idx_to_value:
            return self
        values = list(self.values)
        for idx, value in idx_to_value.items():
            values[idx] = value
        return Record(tuple(values))

    def to_dict(self, schema: Schema) -> dict[str, Any]:
        assert len(schema) == len(self.values), (
            f"Record width ({len(self.values)}) != schema width ({len(schema)})"
        )
        return dict(zip(schema.names, self.values))

    def __str__(self) -> str:
        return ",".join("?" if is_missing(value) else str(value) for value in self.values)


@dataclass(frozen=True)
class RecordPair:
    """
    An original record together with its anonymized counterpart.

    Parameters
    ----------
    original : Record
        The record as read from the source.
    anonymized : Record
        The record to publish.
    cluster_id : Optional[int], default=None
        Identifier of the microaggregation cluster the record belonged to, if any.
    cluster_size : Optional[int], default=None
        Size of that cluster, used to estimate disclosure risk.
    """

    original: Record
    anonymized: Record
    cluster_id: Optional[int] = field(default=None, compare=False)
    cluster_size: Optional[int] = field(default=None, compare=False)


def is_missing(value: Any) -> bool:
    # float("nan") != float("nan")
    return value is None or (isinstance(value, float) and value != value)
