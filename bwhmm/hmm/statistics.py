"""
Expected sufficient statistics for Baum-Welch (E-step) and row normalization (M-step).
"""

import logging
from typing import Optional

import numpy as np
from scipy.special import logsumexp

from .recursions import log_add
from ..exceptions import DegenerateStatisticsError, InvalidModelInputError

logger = logging.getLogger(__name__)

DEGENERATE_POLICIES = ('uniform', 'previous', 'raise')


def sequence_log_likelihood(forward_table: np.ndarray) -> float:
    """
    Total log-likelihood of the sequence: logsumexp of the last forward column.
    """
    with np.errstate(divide='ignore'):
        return float(logsumexp(forward_table[:, -1]))


def _check_log_likelihood(log_likelihood: float) -> None:
    if not np.isfinite(log_likelihood):
        raise DegenerateStatisticsError(
            f"Observation sequence has zero probability under the current model "
            f"(log-likelihood={log_likelihood})"
        )


def expected_transitions(observations: np.ndarray,
                         forward_table: np.ndarray,
                         backward_table: np.ndarray,
                         transition_prob: np.ndarray,
                         emission_prob: np.ndarray,
                         log_likelihood: float) -> np.ndarray:
    """
    Expected number of x -> y transitions given the observation sequence.

    Args:
        observations: 0-based observation indices [T]
        forward_table: Forward log-probabilities [n_states, T]
        backward_table: Backward log-probabilities [n_states, T]
        transition_prob: Current transition matrix [n_states, n_states]
        emission_prob: Current emission matrix [n_states, n_symbols]
        log_likelihood: Total sequence log-likelihood

    Returns:
        Unnormalized expected transition counts [n_states, n_states]

    Raises:
        DegenerateStatisticsError: If the sequence has zero probability
    """
    _check_log_likelihood(log_likelihood)

    n_states, T = forward_table.shape
    counts = np.zeros((n_states, n_states))

    if T < 2:
        return counts

    with np.errstate(divide='ignore'):
        log_transition = np.log(transition_prob)
        # [y, t] = backward[y, t+1] + log B[y, o_t+1]
        log_next = backward_table[:, 1:] + np.log(emission_prob[:, observations[1:]])

        for x in range(n_states):
            terms = forward_table[x, :-1][np.newaxis, :] + log_next + log_transition[x][:, np.newaxis]
            counts[x] = np.exp(logsumexp(terms, axis=1) - log_likelihood)

    return counts


def expected_emissions(observations: np.ndarray,
                       forward_table: np.ndarray,
                       backward_table: np.ndarray,
                       n_symbols: int,
                       log_likelihood: float) -> np.ndarray:
    """
    Expected number of times each state emits each symbol.

    Args:
        observations: 0-based observation indices [T]
        forward_table: Forward log-probabilities [n_states, T]
        backward_table: Backward log-probabilities [n_states, T]
        n_symbols: Size of the emission alphabet
        log_likelihood: Total sequence log-likelihood

    Returns:
        Unnormalized expected emission counts [n_states, n_symbols]

    Raises:
        DegenerateStatisticsError: If the sequence has zero probability
    """
    _check_log_likelihood(log_likelihood)

    n_states = forward_table.shape[0]
    log_gamma = forward_table + backward_table
    acc = np.full((n_states, n_symbols), -np.inf)

    for t, symbol in enumerate(observations):
        acc[:, symbol] = log_add(acc[:, symbol], log_gamma[:, t])

    return np.exp(acc - log_likelihood)


def normalize_rows(counts: np.ndarray,
                   name: str,
                   policy: str = 'uniform',
                   previous: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Normalize expected counts into a row-stochastic matrix.

    Rows whose sum is zero or not finite are degenerate (typically an
    unreachable state). They are handled according to ``policy``:

    - 'uniform': warn and spread the row uniformly
    - 'previous': warn and keep the corresponding row of ``previous``
    - 'raise': raise DegenerateStatisticsError

    Args:
        counts: Expected counts [n_rows, n_cols]
        name: Matrix name used in log and error messages
        policy: Degenerate-row policy
        previous: Matrix to fall back on for the 'previous' policy

    Returns:
        New row-stochastic matrix

    Raises:
        DegenerateStatisticsError: If a row is degenerate and policy is 'raise'
        InvalidModelInputError: If the policy is unknown or 'previous' lacks a matrix
    """
    if policy not in DEGENERATE_POLICIES:
        raise InvalidModelInputError(
            f"Unknown degenerate policy '{policy}', expected one of {DEGENERATE_POLICIES}"
        )
    if policy == 'previous' and (previous is None or previous.shape != counts.shape):
        raise InvalidModelInputError("The 'previous' policy requires a matrix with the same shape as counts")

    row_sums = counts.sum(axis=1)
    degenerate = ~np.isfinite(row_sums) | (row_sums <= 0)

    normalized = np.empty_like(counts, dtype=float)
    valid = ~degenerate
    normalized[valid] = counts[valid] / row_sums[valid, np.newaxis]

    for state in np.flatnonzero(degenerate):
        if policy == 'raise':
            raise DegenerateStatisticsError(
                f"Expected {name} counts for state {state + 1} sum to {row_sums[state]}"
            )

        if policy == 'previous':
            normalized[state] = previous[state]
        else:
            normalized[state] = 1.0 / counts.shape[1]

        logger.warning(
            f"Degenerate {name} row for state {state + 1} (sum={row_sums[state]}); "
            f"applied '{policy}' fallback"
        )

    return normalized
