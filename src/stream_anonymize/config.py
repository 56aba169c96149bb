"""
Configuration of privacy filters.

The only inputs that alter the behavior of the core pipeline are gathered in
:class:`FilterConfig`. File paths, output silencing and reporting cadence belong
to whoever drives the filter (see :mod:`stream_anonymize.task`).
"""

import math
from dataclasses import dataclass
from enum import Enum

from stream_anonymize.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_K,
    DEFAULT_PRIVACY_EPSILON,
    DEFAULT_SEED,
    DEFAULT_SENSITIVITY,
    MINIMUM_BUFFER_SIZE,
    MINIMUM_K,
)

FilterKind = Enum("FilterKind", ["DIFFERENTIAL_PRIVACY", "MICROAGGREGATION", "NOISE_ADDITION"])

SensitivityModel = Enum("SensitivityModel", ["FIXED", "DOMAIN_RANGE"])


@dataclass(frozen=True)
class FilterConfig:
    """
    Parameters of a privacy filter.

    Parameters
    ----------
    k : int, default=3
        Size of the clusters used for microaggregation (k-anonymity); >= 2.
    buffer_size : int, default=100
        Number of records buffered before clustering; >= 10 and >= k.
    epsilon : float, default=0.1
        Differential privacy budget; > 0, smaller means more noise.
    seed : int, default=3141592
        Seed of the noise generator.
    sensitivity_model : SensitivityModel, default=SensitivityModel.FIXED
        How the sensitivity of each noisy attribute is determined:

        - FIXED: every attribute uses ``sensitivity``.
        - DOMAIN_RANGE: the attribute's public domain width, divided by the
          cluster size when records are microaggregated.
    sensitivity : float, default=1.0
        Sensitivity used by SensitivityModel.FIXED; > 0.
    evaluate : bool, default=True
        Whether the filter keeps disclosure risk and information loss estimates.
    """

    k: int = DEFAULT_K
    buffer_size: int = DEFAULT_BUFFER_SIZE
    epsilon: float = DEFAULT_PRIVACY_EPSILON
    seed: int = DEFAULT_SEED
    sensitivity_model: SensitivityModel = SensitivityModel.FIXED
    sensitivity: float = DEFAULT_SENSITIVITY
    evaluate: bool = True

    def validate(self) -> None:
        """
        Check the configuration.

        Raises
        ------
        ValueError
            If any parameter is out of its allowed range.
        """
        if self.k < MINIMUM_K:
            raise ValueError(f"k ({self.k}) must be >= {MINIMUM_K}")
        if self.buffer_size < MINIMUM_BUFFER_SIZE:
            raise ValueError(f"buffer_size ({self.buffer_size}) must be >= {MINIMUM_BUFFER_SIZE}")
        if self.k > self.buffer_size:
            raise ValueError(f"k ({self.k}) must be <= buffer_size ({self.buffer_size})")
        if not math.isfinite(self.epsilon) or self.epsilon <= 0:
            raise ValueError(f"epsilon ({self.epsilon}) must be a finite value > 0")
        if not math.isfinite(self.sensitivity) or self.sensitivity <= 0:
            raise ValueError(f"sensitivity ({self.sensitivity}) must be a finite value > 0")
        if not isinstance(self.sensitivity_model, SensitivityModel):
            raise ValueError(f"Unknown sensitivity model ({self.sensitivity_model})")
