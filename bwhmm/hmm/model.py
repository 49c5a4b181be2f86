"""
Discrete Hidden Markov Model container.

Holds the (start_prob, transition_prob, emission_prob) triple, provides the
uniform and random initialization strategies, and delegates inference and
training to the recursion and trainer modules.
"""

import numpy as np
from typing import Tuple, Optional
import logging

from .recursions import forward, backward
from .statistics import sequence_log_likelihood
from .validation import validate_model, validate_observations
from ..config import get_config
from ..exceptions import InvalidModelInputError

logger = logging.getLogger(__name__)

INIT_STRATEGIES = ('uniform', 'random')


class DiscreteHMM:
    """
    Discrete Hidden Markov Model with N hidden states and K observation symbols.

    Observation symbols are 1-indexed at this interface: a sequence for a
    model with K symbols contains values in [1, K].
    """

    def __init__(self, n_states: int, n_symbols: int, init: Optional[str] = None,
                 random_state: Optional[int] = None):
        """
        Initialize DiscreteHMM with specified dimensions.

        Args:
            n_states: Number of hidden states (N >= 1)
            n_symbols: Number of observation symbols (K >= 1)
            init: 'uniform' or 'random' (default: config init.strategy)
            random_state: Random seed for the 'random' strategy
        """
        if n_states < 1 or n_symbols < 1:
            raise InvalidModelInputError(
                f"n_states and n_symbols must be >= 1, got {n_states} and {n_symbols}"
            )

        if init is None:
            init = get_config('init', 'strategy') or 'uniform'
        if init not in INIT_STRATEGIES:
            raise InvalidModelInputError(f"Unknown init strategy '{init}', expected one of {INIT_STRATEGIES}")

        if random_state is None:
            random_state = get_config('init', 'random_seed')

        self.n_states = n_states
        self.n_symbols = n_symbols
        self.init = init

        rng = np.random.RandomState(random_state)

        self.start_prob = self._init_start_probabilities()
        if init == 'uniform':
            self.transition_prob = self._init_uniform_transitions()
            self.emission_prob = np.ones((n_states, n_symbols)) / n_symbols
        else:
            self.transition_prob = self._random_stochastic((n_states, n_states), rng)
            self.emission_prob = self._random_stochastic((n_states, n_symbols), rng)

        self.convergence_trace_: Optional[np.ndarray] = None
        self.log_likelihood_history_ = []
        self.training_stats_ = {}

        logger.debug(f"Initialized DiscreteHMM ({init}) with {n_states} states and {n_symbols} symbols")

    @classmethod
    def from_parameters(cls, start_prob, transition_prob, emission_prob) -> 'DiscreteHMM':
        """
        Build a model from explicit parameters.

        Raises:
            InvalidModelInputError: If the parameters are not a valid HMM
        """
        tolerance = get_config('hmm', 'stochastic_tolerance')
        start, transition, emission = validate_model(start_prob, transition_prob, emission_prob,
                                                     tolerance=tolerance)
        model = cls(n_states=start.shape[0], n_symbols=emission.shape[1], init='uniform')
        model.start_prob = start
        model.transition_prob = transition
        model.emission_prob = emission
        return model

    def _init_start_probabilities(self) -> np.ndarray:
        return np.ones(self.n_states) / self.n_states

    def _init_uniform_transitions(self) -> np.ndarray:
        """
        Spread (1 - w) uniformly over every row and add w to the diagonal,
        where w is init.self_transition_weight.
        """
        weight = get_config('init', 'self_transition_weight')
        if weight is None:
            weight = 0.3
        A = np.full((self.n_states, self.n_states), (1.0 - weight) / self.n_states)
        A[np.diag_indices(self.n_states)] += weight
        return A

    @staticmethod
    def _random_stochastic(shape: Tuple[int, int], rng: np.random.RandomState) -> np.ndarray:
        M = rng.rand(*shape)
        return M / M.sum(axis=1, keepdims=True)

    def validate_stochastic_matrices(self) -> bool:
        """
        Validate that all probability matrices satisfy stochastic properties.

        Returns:
            bool: True if all matrices are valid stochastic matrices

        Raises:
            InvalidModelInputError: If any matrix violates stochastic properties
        """
        validate_model(self.start_prob, self.transition_prob, self.emission_prob,
                       tolerance=get_config('hmm', 'stochastic_tolerance'))
        logger.debug("All stochastic matrix properties validated successfully")
        return True

    def get_parameters(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Get current model parameters.

        Returns:
            Tuple of (start_prob, transition_prob, emission_prob) copies
        """
        return self.start_prob.copy(), self.transition_prob.copy(), self.emission_prob.copy()

    def set_parameters(self, start_prob, transition_prob, emission_prob) -> None:
        """
        Set model parameters after validating dimensions and stochasticity.

        Raises:
            InvalidModelInputError: If dimensions don't match or parameters are invalid
        """
        start, transition, emission = validate_model(
            start_prob, transition_prob, emission_prob,
            tolerance=get_config('hmm', 'stochastic_tolerance')
        )

        if start.shape != (self.n_states,) or emission.shape != (self.n_states, self.n_symbols):
            raise InvalidModelInputError(
                f"Parameters for {start.shape[0]} states and {emission.shape[1]} symbols don't match "
                f"model with {self.n_states} states and {self.n_symbols} symbols"
            )

        self.start_prob = start
        self.transition_prob = transition
        self.emission_prob = emission

        logger.debug("Model parameters updated and validated")

    def forward(self, observations, mode: Optional[str] = None) -> np.ndarray:
        """Forward log-probability table [n_states, T] for a 1-indexed sequence."""
        obs = validate_observations(observations, self.n_symbols)
        if mode is None:
            mode = get_config('hmm', 'forward_mode')
        return forward(obs, self.start_prob, self.transition_prob, self.emission_prob, mode=mode)

    def backward(self, observations) -> np.ndarray:
        """Backward log-probability table [n_states, T] for a 1-indexed sequence."""
        obs = validate_observations(observations, self.n_symbols)
        return backward(obs, self.transition_prob, self.emission_prob)

    def score(self, observations, mode: Optional[str] = None) -> float:
        """
        Compute log-likelihood of an observation sequence.

        Args:
            observations: Sequence of 1-indexed symbol IDs [T]
            mode: Forward state-sum mode (default: config)

        Returns:
            Log-likelihood of the observation sequence
        """
        return sequence_log_likelihood(self.forward(observations, mode=mode))

    def fit(self, observations, iterations_count: Optional[int] = None,
            verbose: bool = False, **trainer_options) -> 'DiscreteHMM':
        """
        Re-estimate transition and emission probabilities with Baum-Welch.

        Start probabilities are left unchanged.

        Args:
            observations: Sequence of 1-indexed symbol IDs [T]
            iterations_count: Number of EM iterations (default: config)
            verbose: Log a per-iteration report
            **trainer_options: forward_mode, degenerate_policy or tolerance

        Returns:
            self
        """
        from ..train.trainer import BaumWelchTrainer

        trainer = BaumWelchTrainer(iterations_count=iterations_count, verbose=verbose,
                                   **trainer_options)
        transition, emission, trace = trainer.fit(
            observations, self.start_prob, self.transition_prob, self.emission_prob
        )

        self.transition_prob = transition
        self.emission_prob = emission
        self.convergence_trace_ = trace
        self.log_likelihood_history_ = list(trainer.log_likelihood_history_)
        self.training_stats_ = trainer.training_stats

        return self

    def __repr__(self) -> str:
        """String representation of the HMM."""
        return f"DiscreteHMM(n_states={self.n_states}, n_symbols={self.n_symbols})"
