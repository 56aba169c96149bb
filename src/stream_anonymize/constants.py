"""
Shared constants for the streaming anonymization pipeline.

This module defines constants used across components for consistency in
operations like float comparisons, random number generation, and the default
values of the filter configuration.
"""

import math

import numpy as np

# Used to determine equality of floats
MAXIMUM_PRECISION_DIGITS: int = 8
EPSILON: float = math.pow(10, -MAXIMUM_PRECISION_DIGITS)

MAX_RANDOM_STATE: int = 2**32 - 1
NOT_DEFINED_NA: float = np.nan

# Filter configuration defaults and lower bounds
DEFAULT_K: int = 3
MINIMUM_K: int = 2
DEFAULT_BUFFER_SIZE: int = 100
MINIMUM_BUFFER_SIZE: int = 10
DEFAULT_PRIVACY_EPSILON: float = 0.1
DEFAULT_SEED: int = 3141592
DEFAULT_SENSITIVITY: float = 1.0

DEFAULT_EVALUATION_UPDATE_RATE: int = 10
