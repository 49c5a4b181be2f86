"""
Unit tests for DiscreteHMM model implementation.

Tests cover initialization, stochastic matrix properties, parameter validation,
scoring and training through the model interface.
"""

import pytest
import numpy as np
from scipy.special import logsumexp

from bwhmm.config import set_config
from bwhmm.hmm.model import DiscreteHMM
from bwhmm.exceptions import InvalidModelInputError


class TestDiscreteHMMInitialization:
    """Test HMM initialization and basic properties."""

    def test_custom_dimensions(self):
        """Test initialization with custom dimensions."""
        hmm = DiscreteHMM(n_states=4, n_symbols=6)

        assert hmm.n_states == 4
        assert hmm.n_symbols == 6
        assert hmm.start_prob.shape == (4,)
        assert hmm.transition_prob.shape == (4, 4)
        assert hmm.emission_prob.shape == (4, 6)
        assert hmm.convergence_trace_ is None

    def test_uniform_initialization(self):
        """Test the default uniform strategy with self-transition weight 0.3."""
        hmm = DiscreteHMM(n_states=2, n_symbols=4)

        np.testing.assert_allclose(hmm.start_prob, [0.5, 0.5])
        np.testing.assert_allclose(hmm.transition_prob, [[0.65, 0.35], [0.35, 0.65]])
        np.testing.assert_allclose(hmm.emission_prob, 0.25)

    def test_self_transition_weight_from_config(self):
        """Test that the diagonal boost follows configuration."""
        set_config('init', 'self_transition_weight', 0.0)

        hmm = DiscreteHMM(n_states=3, n_symbols=2)

        np.testing.assert_allclose(hmm.transition_prob, 1.0 / 3)

    def test_reproducible_random_initialization(self):
        """Test that random_state produces reproducible initialization."""
        hmm1 = DiscreteHMM(3, 5, init='random', random_state=42)
        hmm2 = DiscreteHMM(3, 5, init='random', random_state=42)

        np.testing.assert_array_equal(hmm1.transition_prob, hmm2.transition_prob)
        np.testing.assert_array_equal(hmm1.emission_prob, hmm2.emission_prob)

    def test_different_random_states(self):
        """Test that different random states produce different initializations."""
        hmm1 = DiscreteHMM(3, 5, init='random', random_state=42)
        hmm2 = DiscreteHMM(3, 5, init='random', random_state=123)

        assert not np.array_equal(hmm1.transition_prob, hmm2.transition_prob)
        assert not np.array_equal(hmm1.emission_prob, hmm2.emission_prob)

    def test_strategy_from_config(self):
        """Test that the init strategy falls back to configuration."""
        set_config('init', 'strategy', 'random')

        hmm = DiscreteHMM(2, 3, random_state=0)

        assert hmm.init == 'random'

    @pytest.mark.parametrize("init", ['uniform', 'random'])
    def test_matrices_are_stochastic(self, init):
        """Test that both strategies produce valid distributions."""
        hmm = DiscreteHMM(5, 7, init=init, random_state=1)

        assert hmm.validate_stochastic_matrices()
        np.testing.assert_allclose(hmm.transition_prob.sum(axis=1), 1.0)
        np.testing.assert_allclose(hmm.emission_prob.sum(axis=1), 1.0)

    def test_invalid_dimensions(self):
        """Test that empty state or symbol spaces are rejected."""
        with pytest.raises(InvalidModelInputError):
            DiscreteHMM(0, 3)
        with pytest.raises(InvalidModelInputError):
            DiscreteHMM(2, 0)

    def test_unknown_strategy(self):
        """Test that an unknown init strategy is rejected."""
        with pytest.raises(InvalidModelInputError, match="Unknown init strategy"):
            DiscreteHMM(2, 2, init='dirichlet')

    def test_repr(self):
        """Test string representation."""
        assert repr(DiscreteHMM(2, 3)) == "DiscreteHMM(n_states=2, n_symbols=3)"


class TestParameters:
    """Test explicit parameter handling."""

    def test_from_parameters(self, weather_model):
        """Test building a model from explicit matrices."""
        start, transition, emission = weather_model

        hmm = DiscreteHMM.from_parameters(start, transition, emission)

        assert hmm.n_states == 3
        assert hmm.n_symbols == 3
        np.testing.assert_array_equal(hmm.transition_prob, transition)

    def test_from_parameters_accepts_lists(self):
        """Test that nested lists are converted to float arrays."""
        hmm = DiscreteHMM.from_parameters([1.0], [[1.0]], [[0.25, 0.75]])

        assert hmm.emission_prob.dtype == float
        assert hmm.n_symbols == 2

    def test_from_parameters_rejects_invalid(self):
        """Test that invalid matrices are rejected."""
        with pytest.raises(InvalidModelInputError, match="start_prob sums to"):
            DiscreteHMM.from_parameters([0.6, 0.6], np.eye(2), np.eye(2))

    def test_get_parameters_returns_copies(self, weather_model):
        """Test that get_parameters doesn't expose internal arrays."""
        hmm = DiscreteHMM.from_parameters(*weather_model)

        start, transition, emission = hmm.get_parameters()
        transition[0, 0] = 99.0

        assert hmm.transition_prob[0, 0] == 0.7

    def test_set_parameters(self, weather_model):
        """Test replacing parameters of matching dimensions."""
        hmm = DiscreteHMM(3, 3)

        hmm.set_parameters(*weather_model)

        np.testing.assert_array_equal(hmm.emission_prob, weather_model[2])

    def test_set_parameters_dimension_mismatch(self, symmetric_model):
        """Test that parameters for a different model size are rejected."""
        hmm = DiscreteHMM(3, 3)

        with pytest.raises(InvalidModelInputError, match="don't match"):
            hmm.set_parameters(*symmetric_model)

    def test_validate_detects_corruption(self):
        """Test that validation notices a matrix modified in place."""
        hmm = DiscreteHMM(2, 2)
        hmm.emission_prob[0] = [0.9, 0.9]

        with pytest.raises(InvalidModelInputError, match="emission_prob"):
            hmm.validate_stochastic_matrices()


class TestInference:
    """Test forward, backward and scoring through the model."""

    def test_score(self, symmetric_model, alternating_sequence):
        """Test the hand-computed likelihood."""
        hmm = DiscreteHMM.from_parameters(*symmetric_model)

        assert hmm.score(alternating_sequence) == pytest.approx(np.log(0.0625))

    @pytest.mark.parametrize("mode", ['linear', 'log'])
    def test_score_modes(self, weather_model, weather_sequence, mode):
        """Test that both forward modes score identically."""
        hmm = DiscreteHMM.from_parameters(*weather_model)

        assert hmm.score(weather_sequence, mode=mode) == pytest.approx(hmm.score(weather_sequence))

    def test_forward_backward_tables(self, weather_model, weather_sequence):
        """Test table shapes and the forward-backward identity."""
        hmm = DiscreteHMM.from_parameters(*weather_model)

        alpha = hmm.forward(weather_sequence)
        beta = hmm.backward(weather_sequence)

        assert alpha.shape == beta.shape == (3, len(weather_sequence))
        np.testing.assert_allclose(logsumexp(alpha + beta, axis=0), hmm.score(weather_sequence))

    def test_column_vector_sequence(self, symmetric_model, alternating_sequence):
        """Test that an [L, 1] sequence is accepted."""
        hmm = DiscreteHMM.from_parameters(*symmetric_model)

        assert hmm.score(alternating_sequence.reshape(-1, 1)) == pytest.approx(np.log(0.0625))

    def test_out_of_range_symbol(self, symmetric_model):
        """Test that symbols outside [1, K] are rejected."""
        hmm = DiscreteHMM.from_parameters(*symmetric_model)

        with pytest.raises(InvalidModelInputError, match=r"range \[1, 2\]"):
            hmm.score([1, 2, 3])


class TestModelTraining:
    """Test Baum-Welch training through the model interface."""

    def test_fit_updates_model(self, weather_model, weather_sequence):
        """Test that fit re-estimates transitions and emissions only."""
        hmm = DiscreteHMM.from_parameters(*weather_model)
        initial_score = hmm.score(weather_sequence)

        result = hmm.fit(weather_sequence, iterations_count=10)

        assert result is hmm
        np.testing.assert_array_equal(hmm.start_prob, weather_model[0])
        assert not np.allclose(hmm.transition_prob, weather_model[1])
        assert hmm.score(weather_sequence) > initial_score
        assert hmm.convergence_trace_.shape == (2, 10)
        assert len(hmm.log_likelihood_history_) == 10
        assert hmm.training_stats_['iterations'] == 10
        assert hmm.validate_stochastic_matrices()

    def test_fit_forwards_trainer_options(self, weather_model, weather_sequence):
        """Test that trainer options reach the trainer."""
        hmm = DiscreteHMM.from_parameters(*weather_model)

        hmm.fit(weather_sequence, iterations_count=2, forward_mode='log', degenerate_policy='raise')

        assert hmm.training_stats_['forward_mode'] == 'log'
        assert hmm.training_stats_['degenerate_policy'] == 'raise'

    def test_fit_from_uniform_start(self, weather_sequence):
        """Test training from the uniform initialization."""
        hmm = DiscreteHMM(2, 3, init='uniform')

        hmm.fit(weather_sequence, iterations_count=5)

        assert hmm.validate_stochastic_matrices()
        assert np.all(np.isfinite(hmm.log_likelihood_history_))
