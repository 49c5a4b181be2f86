"""
Baum-Welch training loop.

This module drives a fixed number of EM iterations over a single observation
sequence, re-estimating transition and emission probabilities and recording
a convergence trace. Start probabilities are kept fixed for the whole run.
"""

import time
from typing import Tuple, Optional, Dict, Any

import numpy as np

from ..hmm.recursions import forward, backward, FORWARD_MODES
from ..hmm.statistics import (
    sequence_log_likelihood,
    expected_transitions,
    expected_emissions,
    normalize_rows,
    DEGENERATE_POLICIES
)
from ..hmm.validation import validate_model, validate_observations, validate_iterations_count
from ..exceptions import InvalidModelInputError
from ..config import get_config
from ..logger import get_logger

logger = get_logger(__name__)

# Relative slack before a log-likelihood decrease is reported
LIKELIHOOD_DECREASE_TOLERANCE = 1e-8


def model_divergence(transition_prob: np.ndarray,
                     emission_prob: np.ndarray,
                     new_transition_prob: np.ndarray,
                     new_emission_prob: np.ndarray) -> float:
    """Sum of the Frobenius norms of the emission and transition updates."""
    return float(np.linalg.norm(emission_prob - new_emission_prob)
                 + np.linalg.norm(transition_prob - new_transition_prob))


class BaumWelchTrainer:
    """
    Fixed-iteration Baum-Welch trainer for a discrete HMM.

    Each iteration is a pure function of the previous model and the
    observation sequence; the forward, backward and expected-count tables
    live only for the duration of one iteration.
    """

    def __init__(self,
                 iterations_count: Optional[int] = None,
                 forward_mode: Optional[str] = None,
                 degenerate_policy: Optional[str] = None,
                 tolerance: Optional[float] = None,
                 verbose: bool = False):
        """
        Initialize BaumWelchTrainer, falling back to the 'hmm' config section.

        Args:
            iterations_count: Number of EM iterations (>= 1)
            forward_mode: 'linear' or 'log' state-sum in the forward recursion
            degenerate_policy: 'uniform', 'previous' or 'raise'
            tolerance: Allowed deviation of probability rows from 1.0 on input
            verbose: Log a per-iteration report at INFO level

        Raises:
            IterationCountError: If iterations_count is invalid
            InvalidModelInputError: If forward_mode or degenerate_policy is unknown
        """
        if iterations_count is None:
            iterations_count = get_config('hmm', 'iterations_count')
        if forward_mode is None:
            forward_mode = get_config('hmm', 'forward_mode')
        if degenerate_policy is None:
            degenerate_policy = get_config('hmm', 'degenerate_policy')
        if tolerance is None:
            tolerance = get_config('hmm', 'stochastic_tolerance')

        self.iterations_count = validate_iterations_count(iterations_count)

        if forward_mode not in FORWARD_MODES:
            raise InvalidModelInputError(
                f"Unknown forward mode '{forward_mode}', expected one of {FORWARD_MODES}"
            )
        if degenerate_policy not in DEGENERATE_POLICIES:
            raise InvalidModelInputError(
                f"Unknown degenerate policy '{degenerate_policy}', expected one of {DEGENERATE_POLICIES}"
            )

        self.forward_mode = forward_mode
        self.degenerate_policy = degenerate_policy
        self.tolerance = tolerance
        self.verbose = verbose

        self.log_likelihood_history_ = []
        self.training_stats: Dict[str, Any] = {}

        logger.debug(f"BaumWelchTrainer initialized: iterations={self.iterations_count}, "
                     f"forward_mode={forward_mode}, degenerate_policy={degenerate_policy}")

    def iterate(self,
                observations: np.ndarray,
                start_prob: np.ndarray,
                transition_prob: np.ndarray,
                emission_prob: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float, float]:
        """
        Run one EM iteration on validated inputs.

        Args:
            observations: 0-based observation indices [T]
            start_prob: Initial state probabilities [n_states]
            transition_prob: Current transition matrix [n_states, n_states]
            emission_prob: Current emission matrix [n_states, n_symbols]

        Returns:
            Tuple of (new_transition_prob, new_emission_prob, divergence, log_likelihood)
            where log_likelihood is that of the model entering the iteration
        """
        forward_table = forward(observations, start_prob, transition_prob, emission_prob,
                                mode=self.forward_mode)
        backward_table = backward(observations, transition_prob, emission_prob)
        log_likelihood = sequence_log_likelihood(forward_table)

        transition_counts = expected_transitions(
            observations, forward_table, backward_table,
            transition_prob, emission_prob, log_likelihood
        )
        emission_counts = expected_emissions(
            observations, forward_table, backward_table,
            emission_prob.shape[1], log_likelihood
        )

        new_transition = normalize_rows(transition_counts, 'transition',
                                        policy=self.degenerate_policy, previous=transition_prob)
        new_emission = normalize_rows(emission_counts, 'emission',
                                      policy=self.degenerate_policy, previous=emission_prob)

        divergence = model_divergence(transition_prob, emission_prob, new_transition, new_emission)

        return new_transition, new_emission, divergence, log_likelihood

    def fit(self,
            observations,
            start_prob,
            transition_prob,
            emission_prob) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Train transition and emission probabilities with Baum-Welch.

        Args:
            observations: Observation sequence of 1-indexed symbol IDs [T]
            start_prob: Initial state probabilities [n_states] (never re-estimated)
            transition_prob: Initial transition matrix [n_states, n_states]
            emission_prob: Initial emission matrix [n_states, n_symbols]

        Returns:
            Tuple of (transition_prob, emission_prob, convergence_trace) where
            convergence_trace has shape [2, iterations_count]: row 0 holds the
            iteration index (from 1), row 1 the divergence between successive models

        Raises:
            InvalidModelInputError: If the model or observations are invalid
            DegenerateStatisticsError: If statistics cannot be normalized under
                the 'raise' policy, or the sequence has zero probability
        """
        start, transition, emission = validate_model(
            start_prob, transition_prob, emission_prob, tolerance=self.tolerance
        )
        obs = validate_observations(observations, emission.shape[1])

        n_states, n_symbols = emission.shape
        convergence_trace = np.zeros((2, self.iterations_count))
        log_likelihood_history = []

        logger.info(f"Starting Baum-Welch: {n_states} states, {n_symbols} symbols, "
                    f"T={len(obs)}, {self.iterations_count} iterations")

        start_time = time.time()

        for iteration in range(1, self.iterations_count + 1):
            transition_new, emission_new, divergence, log_likelihood = self.iterate(
                obs, start, transition, emission
            )

            if log_likelihood_history:
                previous = log_likelihood_history[-1]
                if log_likelihood < previous - LIKELIHOOD_DECREASE_TOLERANCE * max(1.0, abs(previous)):
                    logger.warning(f"Log-likelihood decreased by {previous - log_likelihood:.6g} "
                                   f"at iteration {iteration}")

            log_likelihood_history.append(log_likelihood)
            convergence_trace[0, iteration - 1] = iteration
            convergence_trace[1, iteration - 1] = divergence

            transition, emission = transition_new, emission_new

            if self.verbose:
                self._report(iteration, transition, emission, divergence, log_likelihood)

        training_time = time.time() - start_time

        final_forward = forward(obs, start, transition, emission, mode=self.forward_mode)
        final_log_likelihood = sequence_log_likelihood(final_forward)

        self.log_likelihood_history_ = log_likelihood_history
        self.training_stats = {
            'iterations': self.iterations_count,
            'sequence_length': int(len(obs)),
            'n_states': int(n_states),
            'n_symbols': int(n_symbols),
            'forward_mode': self.forward_mode,
            'degenerate_policy': self.degenerate_policy,
            'initial_log_likelihood': log_likelihood_history[0],
            'final_log_likelihood': final_log_likelihood,
            'log_likelihood_history': list(log_likelihood_history),
            'divergence_history': convergence_trace[1].tolist(),
            'training_time': training_time
        }

        logger.info(f"Baum-Welch completed in {training_time:.2f}s: "
                    f"log-likelihood {log_likelihood_history[0]:.6f} -> {final_log_likelihood:.6f}")

        return transition, emission, convergence_trace

    def _report(self, iteration: int, transition_prob: np.ndarray, emission_prob: np.ndarray,
                divergence: float, log_likelihood: float) -> None:
        logger.info(f"Iteration {iteration}/{self.iterations_count}: "
                    f"divergence={divergence:.6g}, log_likelihood={log_likelihood:.6f}")
        logger.info(f"Transition probabilities:\n{np.array2string(transition_prob, precision=6)}")
        logger.info(f"Emission probabilities:\n{np.array2string(emission_prob, precision=6)}")


def fit(observation_sequence,
        start_prob,
        transition_prob,
        emission_prob,
        iterations_count: int,
        verbose: bool = False) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Estimate HMM transition and emission probabilities with Baum-Welch.

    Forward mode, degenerate-row policy and input tolerance come from the
    'hmm' configuration section.

    Args:
        observation_sequence: Observation symbol IDs in [1, n_symbols]
        start_prob: Initial state probabilities [n_states]
        transition_prob: Initial transition matrix [n_states, n_states]
        emission_prob: Initial emission matrix [n_states, n_symbols]
        iterations_count: Number of EM iterations (>= 1)
        verbose: Log a per-iteration report

    Returns:
        Tuple of (transition_prob, emission_prob, convergence_trace)
    """
    trainer = BaumWelchTrainer(iterations_count=iterations_count, verbose=verbose)
    return trainer.fit(observation_sequence, start_prob, transition_prob, emission_prob)
