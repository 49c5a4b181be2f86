"""
Hidden Markov Model module.

Log-space forward/backward recursions, expected sufficient statistics and the
discrete HMM container.
"""

from .model import DiscreteHMM
from .recursions import forward, backward, log_add
from .statistics import (
    sequence_log_likelihood,
    expected_transitions,
    expected_emissions,
    normalize_rows
)

__all__ = [
    "DiscreteHMM",
    "forward",
    "backward",
    "log_add",
    "sequence_log_likelihood",
    "expected_transitions",
    "expected_emissions",
    "normalize_rows"
]
