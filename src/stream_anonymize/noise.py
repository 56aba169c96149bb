"""
Noise mechanisms for differentially private publication of records.

The :class:`LaplaceMechanism` adds independent zero-mean Laplace noise with
scale ``sensitivity / epsilon`` to each numeric quasi-identifying attribute of a
record. Categorical attributes and attributes that are not quasi-identifying
pass through unchanged, so the differential privacy guarantee only covers the
numeric quasi-identifiers.

Sensitivity models
------------------
The sensitivity of an attribute bounds how much one individual can change the
published value, and thus determines the actual privacy guarantee:

- SensitivityModel.FIXED: the same configured sensitivity for every attribute.
- SensitivityModel.DOMAIN_RANGE: the width of the attribute's public domain
  divided by the number of records averaged into the published value. For a
  microaggregated value this is k, since replacing one of the k records of a
  cluster moves its mean by at most ``width / k``; for record-level noise it is 1.

  The final cluster of a stream may hold fewer than k records. Its
  representatives have a sensitivity of ``width / size`` > ``width / k``, so the
  noise added to them is too small for the nominal epsilon: the differential
  privacy guarantee of those records is weaker, by a factor of at most k. This
  is logged as a warning when the cluster is formed.

References
----------
Soria-Comas, J., Domingo-Ferrer, J., Sánchez, D. & Martínez, S.
Enhancing data utility in differential privacy via microaggregation-based
k-anonymity. The VLDB Journal 23, 771-794 (2014).
"""

import logging
from abc import ABCMeta, abstractmethod

import numpy as np

from stream_anonymize.config import SensitivityModel
from stream_anonymize.constants import MAX_RANDOM_STATE
from stream_anonymize.records import Record, Schema


def compute_sensitivities(
    schema: Schema,
    sensitivity_model: SensitivityModel,
    sensitivity: float,
    cluster_size: int,
) -> dict[int, float]:
    """
    Compute the sensitivity of every numeric quasi-identifying attribute.

    Parameters
    ----------
    schema : Schema
        Schema of the stream.
    sensitivity_model : SensitivityModel
        How sensitivities are determined.
    sensitivity : float
        Sensitivity used by SensitivityModel.FIXED.
    cluster_size : int
        Number of records averaged into each published value; >= 1.

    Returns
    -------
    Dict[int, float]
        Mapping from attribute index to sensitivity.

    Raises
    ------
    ValueError
        If SensitivityModel.DOMAIN_RANGE is used and an attribute has no domain.
    """
    assert cluster_size >= 1, f"cluster_size ({cluster_size}) must be >= 1"
    idx_to_sensitivity: dict[int, float] = {}
    for idx in schema.numerical_qid_indices:
        attribute = schema.attributes[idx]
        if sensitivity_model == SensitivityModel.FIXED:
            idx_to_sensitivity[idx] = float(sensitivity)
        elif sensitivity_model == SensitivityModel.DOMAIN_RANGE:
            domain_width = attribute.domain_width
            if domain_width is None:
                raise ValueError(
                    f"Attribute {attribute.name} has no domain, required by {sensitivity_model}"
                )
            idx_to_sensitivity[idx] = domain_width / cluster_size
        else:
            raise ValueError(f"Unknown sensitivity model ({sensitivity_model})")
    return idx_to_sensitivity


class NoiseMechanism(metaclass=ABCMeta):
    """
    Randomized transformation applied to each record before publication.
    """

    @abstractmethod
    def apply(self, record: Record) -> Record:
        """
        Return a randomized copy of the record; the record itself is unchanged.
        """

    @abstractmethod
    def reset(self) -> None:
        """
        Return the mechanism to its initial random state.
        """


class LaplaceMechanism(NoiseMechanism):
    """
    Additive Laplace noise calibrated to per-attribute sensitivities.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording the calibration.
    epsilon : float
        Differential privacy budget; > 0.
    idx_to_sensitivity : Dict[int, float]
        Sensitivity of every attribute to perturb, by attribute index; see
        :func:`compute_sensitivities`.
    seed : int
        Seed of the generator owned by this mechanism. Negative seeds are
        reduced modulo 2**32.

    Raises
    ------
    ValueError
        If epsilon is not > 0 or a sensitivity is negative.

    Notes
    -----
    One sample is drawn for every perturbed attribute of every record, even when
    the value is missing, so that identical seeds and input sequences always
    produce identical outputs.
    """

    def __init__(
        self,
        logger: logging.Logger,
        epsilon: float,
        idx_to_sensitivity: dict[int, float],
        seed: int,
    ):
        if not epsilon > 0:
            raise ValueError(f"epsilon ({epsilon}) must be > 0")
        if any(sensitivity < 0 for sensitivity in idx_to_sensitivity.values()):
            raise ValueError(f"Sensitivities must be >= 0, got {idx_to_sensitivity}")
        self.logger = logger
        self.epsilon = float(epsilon)
        self.seed = int(seed) % (MAX_RANDOM_STATE + 1)
        self.indices = sorted(idx_to_sensitivity.keys())
        self.scales = np.array(
            [idx_to_sensitivity[idx] / self.epsilon for idx in self.indices], dtype=np.float64
        )
        self.logger.info(
            "Laplace mechanism with epsilon %s and scales %s",
            self.epsilon,
            dict(zip(self.indices, self.scales.tolist())),
        )
        self.reset()

    def reset(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    def sample(self) -> np.ndarray:
        """
        Draw one noise value per perturbed attribute.

        Returns
        -------
        np.ndarray
            Noise values, aligned with ``self.indices``.
        """
        return self.rng.laplace(0.0, self.scales)

    def apply(self, record: Record) -> Record:
        if not self.indices:
            return record
        noise = self.sample()
        idx_to_value = {}
        for idx, noise_value in zip(self.indices, noise):
            value = record[idx]
            if value is None:
                continue
            # nan + noise stays nan
            idx_to_value[idx] = float(value) + float(noise_value)
        return record.replace(idx_to_value)
