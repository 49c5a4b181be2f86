"""
Input validation for model parameters, observation sequences and iteration counts.

All checks run before any recursion is computed so that malformed input is
reported to the caller instead of surfacing as NaN later on.
"""

import numbers
import logging
from typing import Tuple

import numpy as np

from ..exceptions import InvalidModelInputError, IterationCountError

logger = logging.getLogger(__name__)


def _as_float_array(values, name: str, ndim: int) -> np.ndarray:
    try:
        array = np.array(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidModelInputError(f"{name} is not numeric: {e}")

    if array.ndim != ndim:
        raise InvalidModelInputError(
            f"{name} must be {ndim}-dimensional, got shape {array.shape}"
        )
    if array.size == 0:
        raise InvalidModelInputError(f"{name} is empty")
    if not np.all(np.isfinite(array)):
        raise InvalidModelInputError(f"{name} contains non-finite values")
    return array


def _check_probabilities(array: np.ndarray, name: str, tolerance: float) -> None:
    if np.any(array < -tolerance) or np.any(array > 1.0 + tolerance):
        raise InvalidModelInputError(f"{name} contains entries outside [0, 1]")

    sums = array.sum(axis=-1)
    bad = np.flatnonzero(np.abs(np.atleast_1d(sums) - 1.0) > tolerance)
    if bad.size:
        if array.ndim == 1:
            raise InvalidModelInputError(f"{name} sums to {float(sums)}, expected 1.0")
        raise InvalidModelInputError(
            f"{name} rows {bad.tolist()} don't sum to 1.0: {np.atleast_1d(sums)[bad]}"
        )


def _clip_to_unit_interval(array: np.ndarray) -> np.ndarray:
    # Entries within tolerance of [0, 1] are pulled inside it
    if np.all((array >= 0.0) & (array <= 1.0)):
        return array
    clipped = np.clip(array, 0.0, 1.0)
    return clipped / clipped.sum(axis=-1, keepdims=True)


def validate_model(start_prob, transition_prob, emission_prob,
                   tolerance: float = 1e-6) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Validate an HMM parameter triple.

    Args:
        start_prob: Initial state distribution [N]
        transition_prob: Row-stochastic transition matrix [N, N]
        emission_prob: Row-stochastic emission matrix [N, K]
        tolerance: Allowed deviation of each row sum from 1.0

    Returns:
        Float copies of (start_prob, transition_prob, emission_prob); arrays
        with entries slightly outside [0, 1] are clipped and renormalized

    Raises:
        InvalidModelInputError: If shapes disagree or a distribution is invalid
    """
    start = _as_float_array(start_prob, "start_prob", 1)
    transition = _as_float_array(transition_prob, "transition_prob", 2)
    emission = _as_float_array(emission_prob, "emission_prob", 2)

    n_states = start.shape[0]

    if transition.shape != (n_states, n_states):
        raise InvalidModelInputError(
            f"transition_prob shape {transition.shape} doesn't match expected "
            f"({n_states}, {n_states})"
        )

    if emission.shape[0] != n_states:
        raise InvalidModelInputError(
            f"emission_prob has {emission.shape[0]} rows, expected {n_states}"
        )

    _check_probabilities(start, "start_prob", tolerance)
    _check_probabilities(transition, "transition_prob", tolerance)
    _check_probabilities(emission, "emission_prob", tolerance)

    return (_clip_to_unit_interval(start),
            _clip_to_unit_interval(transition),
            _clip_to_unit_interval(emission))


def validate_observations(observations, n_symbols: int) -> np.ndarray:
    """
    Validate a 1-indexed observation sequence and convert it to 0-based indices.

    Args:
        observations: Sequence of symbol IDs in [1, n_symbols]
        n_symbols: Size of the emission alphabet (K)

    Returns:
        0-based integer array [L]

    Raises:
        InvalidModelInputError: If the sequence is empty, non-integer or out of range
    """
    try:
        obs = np.asarray(observations)
    except (TypeError, ValueError) as e:
        raise InvalidModelInputError(f"Observation sequence is not array-like: {e}")

    if obs.ndim == 2 and 1 in obs.shape:
        obs = obs.ravel()

    if obs.ndim != 1:
        raise InvalidModelInputError(
            f"Observation sequence must be 1-dimensional, got shape {obs.shape}"
        )

    if obs.size == 0:
        raise InvalidModelInputError("Observation sequence is empty")

    if not np.issubdtype(obs.dtype, np.number) or np.issubdtype(obs.dtype, np.complexfloating):
        raise InvalidModelInputError(f"Observation sequence has non-numeric dtype {obs.dtype}")

    if not np.issubdtype(obs.dtype, np.integer):
        if not np.all(np.isfinite(obs)) or np.any(obs != np.round(obs)):
            raise InvalidModelInputError("Observation sequence contains non-integer symbols")

    obs = obs.astype(int)

    if np.any(obs < 1) or np.any(obs > n_symbols):
        raise InvalidModelInputError(f"Observations must be in range [1, {n_symbols}]")

    return obs - 1


def validate_iterations_count(iterations_count) -> int:
    """
    Validate the number of EM iterations.

    Raises:
        IterationCountError: If the count is not an integer >= 1
    """
    if isinstance(iterations_count, bool) or not isinstance(iterations_count, numbers.Integral):
        raise IterationCountError(
            f"iterations_count must be an integer, got {type(iterations_count).__name__}"
        )
    if iterations_count < 1:
        raise IterationCountError(f"iterations_count must be >= 1, got {iterations_count}")
    return int(iterations_count)
