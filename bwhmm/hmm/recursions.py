"""
Forward and backward recursions for a discrete HMM in natural-log space.

Tables are laid out as [n_states, T]: column t holds the log-probabilities
for time step t. Observations passed to this module are 0-based symbol
indices; conversion from the public 1-based IDs happens during validation.
"""

import logging

import numpy as np
from scipy.special import logsumexp

from ..exceptions import InvalidModelInputError

logger = logging.getLogger(__name__)

FORWARD_MODES = ('linear', 'log')


def log_add(acc, term):
    """
    Fold one log-domain term into a running log-sum-exp accumulator.

    Works elementwise on scalars or arrays. An accumulator or term equal to
    -inf contributes nothing, so zero-probability transitions never produce NaN.

    Args:
        acc: Running accumulator (start from -inf)
        term: Log-domain value to add

    Returns:
        log(exp(acc) + exp(term))
    """
    acc = np.asarray(acc, dtype=float)
    term = np.asarray(term, dtype=float)

    hi = np.maximum(acc, term)
    lo = np.minimum(acc, term)

    with np.errstate(invalid='ignore'):
        combined = hi + np.log1p(np.exp(lo - hi))

    return np.where(lo == -np.inf, hi, combined)[()]


def forward(observations: np.ndarray,
            start_prob: np.ndarray,
            transition_prob: np.ndarray,
            emission_prob: np.ndarray,
            mode: str = 'linear') -> np.ndarray:
    """
    Compute the forward table log P(o_0..o_t, q_t = s).

    Args:
        observations: 0-based observation indices [T]
        start_prob: Initial state probabilities [n_states]
        transition_prob: Transition matrix [n_states, n_states]
        emission_prob: Emission matrix [n_states, n_symbols]
        mode: 'linear' sums over previous states with a shifted linear-space
            vector-matrix product; 'log' does the sum with logsumexp

    Returns:
        Forward table [n_states, T]
    """
    if mode not in FORWARD_MODES:
        raise InvalidModelInputError(f"Unknown forward mode '{mode}', expected one of {FORWARD_MODES}")

    T = len(observations)
    n_states = start_prob.shape[0]
    alpha = np.empty((n_states, T))

    with np.errstate(divide='ignore'):
        alpha[:, 0] = np.log(start_prob * emission_prob[:, observations[0]])

        if mode == 'log':
            log_transition = np.log(transition_prob)
            log_emission = np.log(emission_prob)

        for t in range(1, T):
            prev = alpha[:, t - 1]

            if mode == 'log':
                alpha[:, t] = (logsumexp(prev[:, np.newaxis] + log_transition, axis=0)
                               + log_emission[:, observations[t]])
                continue

            # Linear-space state sum; only safe for small-to-moderate n_states
            shift = prev.max()
            if not np.isfinite(shift):
                alpha[:, t] = -np.inf
                continue

            state_sum = np.exp(prev - shift) @ transition_prob
            alpha[:, t] = np.log(state_sum * emission_prob[:, observations[t]]) + shift

    logger.debug(f"Forward pass completed: T={T}, mode={mode}")
    return alpha


def backward(observations: np.ndarray,
             transition_prob: np.ndarray,
             emission_prob: np.ndarray) -> np.ndarray:
    """
    Compute the backward table log P(o_t+1..o_T-1 | q_t = s).

    The last column is 0 (log 1). Each earlier entry folds the per-next-state
    terms with log_add, starting from -inf.

    Args:
        observations: 0-based observation indices [T]
        transition_prob: Transition matrix [n_states, n_states]
        emission_prob: Emission matrix [n_states, n_symbols]

    Returns:
        Backward table [n_states, T]
    """
    T = len(observations)
    n_states = transition_prob.shape[0]
    beta = np.empty((n_states, T))
    beta[:, T - 1] = 0.0

    with np.errstate(divide='ignore'):
        for t in range(T - 2, -1, -1):
            symbol = observations[t + 1]
            acc = np.full(n_states, -np.inf)

            for next_state in range(n_states):
                term = (beta[next_state, t + 1]
                        + np.log(transition_prob[:, next_state] * emission_prob[next_state, symbol]))
                acc = log_add(acc, term)

            beta[:, t] = acc

    logger.debug(f"Backward pass completed: T={T}")
    return beta
