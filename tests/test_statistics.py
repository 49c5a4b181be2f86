"""
Unit tests for expected sufficient statistics and row normalization.
"""

from unittest import mock

import pytest
import numpy as np

from bwhmm.hmm import statistics
from bwhmm.hmm.recursions import forward, backward
from bwhmm.hmm.statistics import (
    sequence_log_likelihood,
    expected_transitions,
    expected_emissions,
    normalize_rows
)
from bwhmm.exceptions import DegenerateStatisticsError, InvalidModelInputError


def linear_tables(obs, start, transition, emission):
    """Unscaled linear-space alpha and beta tables."""
    n_states, T = start.shape[0], len(obs)
    alpha = np.zeros((n_states, T))
    beta = np.ones((n_states, T))
    alpha[:, 0] = start * emission[:, obs[0]]
    for t in range(1, T):
        alpha[:, t] = (alpha[:, t - 1] @ transition) * emission[:, obs[t]]
    for t in range(T - 2, -1, -1):
        beta[:, t] = transition @ (emission[:, obs[t + 1]] * beta[:, t + 1])
    return alpha, beta


def compute_statistics(obs, start, transition, emission):
    alpha = forward(obs, start, transition, emission)
    beta = backward(obs, transition, emission)
    log_likelihood = sequence_log_likelihood(alpha)
    xi = expected_transitions(obs, alpha, beta, transition, emission, log_likelihood)
    gamma = expected_emissions(obs, alpha, beta, emission.shape[1], log_likelihood)
    return xi, gamma, log_likelihood


class TestExpectedCounts:
    """Test expected transition and emission counts."""

    def test_sequence_log_likelihood(self, symmetric_model, alternating_sequence):
        """Test the likelihood read from the last forward column."""
        start, transition, emission = symmetric_model
        alpha = forward(alternating_sequence - 1, start, transition, emission)

        assert sequence_log_likelihood(alpha) == pytest.approx(np.log(0.0625))

    def test_transitions_match_linear_reference(self, weather_model, weather_sequence):
        """Test expected transitions against linear-space xi sums."""
        start, transition, emission = weather_model
        obs = weather_sequence - 1

        xi, _, _ = compute_statistics(obs, start, transition, emission)

        alpha, beta = linear_tables(obs, start, transition, emission)
        likelihood = alpha[:, -1].sum()
        expected = np.zeros((3, 3))
        for t in range(len(obs) - 1):
            expected += (alpha[:, t][:, np.newaxis] * transition
                         * (emission[:, obs[t + 1]] * beta[:, t + 1])[np.newaxis, :])
        expected /= likelihood

        np.testing.assert_allclose(xi, expected, rtol=1e-8)

    def test_emissions_match_linear_reference(self, weather_model, weather_sequence):
        """Test expected emissions against linear-space gamma sums."""
        start, transition, emission = weather_model
        obs = weather_sequence - 1

        _, gamma, _ = compute_statistics(obs, start, transition, emission)

        alpha, beta = linear_tables(obs, start, transition, emission)
        posterior = alpha * beta / alpha[:, -1].sum()
        expected = np.zeros((3, 3))
        for t, symbol in enumerate(obs):
            expected[:, symbol] += posterior[:, t]

        np.testing.assert_allclose(gamma, expected, rtol=1e-8)

    def test_count_totals(self, weather_model, weather_sequence):
        """Test that transitions total T-1 and emissions total T."""
        start, transition, emission = weather_model
        obs = weather_sequence - 1

        xi, gamma, _ = compute_statistics(obs, start, transition, emission)

        assert xi.sum() == pytest.approx(len(obs) - 1)
        assert gamma.sum() == pytest.approx(len(obs))

    def test_unobserved_symbol_has_zero_count(self, weather_model):
        """Test that a symbol absent from the sequence gets no emission mass."""
        start, transition, emission = weather_model
        obs = np.array([0, 1, 0, 1, 1])

        _, gamma, _ = compute_statistics(obs, start, transition, emission)

        np.testing.assert_array_equal(gamma[:, 2], 0.0)

    def test_single_observation_has_no_transitions(self, symmetric_model):
        """Test that T=1 yields an all-zero transition count matrix."""
        start, transition, emission = symmetric_model
        obs = np.array([0])

        xi, gamma, _ = compute_statistics(obs, start, transition, emission)

        np.testing.assert_array_equal(xi, np.zeros((2, 2)))
        assert gamma.sum() == pytest.approx(1.0)

    def test_zero_probability_sequence(self):
        """Test that a sequence the model cannot produce raises."""
        start = np.array([1.0, 0.0])
        transition = np.array([[1.0, 0.0],
                               [0.0, 1.0]])
        emission = np.array([[1.0, 0.0],
                             [0.0, 1.0]])
        obs = np.array([0, 1])

        alpha = forward(obs, start, transition, emission)
        beta = backward(obs, transition, emission)
        log_likelihood = sequence_log_likelihood(alpha)

        assert log_likelihood == -np.inf
        with pytest.raises(DegenerateStatisticsError, match="zero probability"):
            expected_transitions(obs, alpha, beta, transition, emission, log_likelihood)
        with pytest.raises(DegenerateStatisticsError, match="zero probability"):
            expected_emissions(obs, alpha, beta, 2, log_likelihood)


class TestNormalizeRows:
    """Test the M-step normalization and degenerate-row policies."""

    def test_rows_sum_to_one(self):
        """Test ordinary row normalization."""
        counts = np.array([[1.0, 3.0],
                           [2.0, 2.0]])

        normalized = normalize_rows(counts, 'transition')

        np.testing.assert_allclose(normalized, [[0.25, 0.75], [0.5, 0.5]])

    def test_uniform_policy(self):
        """Test that a zero row becomes uniform and a warning names the state."""
        counts = np.array([[1.0, 1.0, 2.0],
                           [0.0, 0.0, 0.0]])

        with mock.patch.object(statistics.logger, 'warning') as warning:
            normalized = normalize_rows(counts, 'emission', policy='uniform')

        np.testing.assert_allclose(normalized[1], [1 / 3, 1 / 3, 1 / 3])
        np.testing.assert_allclose(normalized[0], [0.25, 0.25, 0.5])
        warning.assert_called_once()
        assert "state 2" in warning.call_args[0][0]
        assert "emission" in warning.call_args[0][0]

    def test_previous_policy(self):
        """Test that a zero row keeps the previous model's row."""
        counts = np.array([[0.0, 0.0],
                           [1.0, 3.0]])
        previous = np.array([[0.9, 0.1],
                             [0.5, 0.5]])

        with mock.patch.object(statistics.logger, 'warning') as warning:
            normalized = normalize_rows(counts, 'transition', policy='previous', previous=previous)

        np.testing.assert_allclose(normalized, [[0.9, 0.1], [0.25, 0.75]])
        assert "state 1" in warning.call_args[0][0]

    def test_raise_policy(self):
        """Test that the strict policy raises with the 1-based state ID."""
        counts = np.array([[0.0, 0.0],
                           [1.0, 3.0]])

        with pytest.raises(DegenerateStatisticsError, match="state 1"):
            normalize_rows(counts, 'transition', policy='raise')

    def test_non_finite_row_is_degenerate(self):
        """Test that NaN row sums are treated like zero rows."""
        counts = np.array([[np.nan, 1.0],
                           [1.0, 1.0]])

        with mock.patch.object(statistics.logger, 'warning'):
            normalized = normalize_rows(counts, 'emission')

        np.testing.assert_allclose(normalized, [[0.5, 0.5], [0.5, 0.5]])

    def test_unknown_policy(self):
        """Test that an unknown policy is rejected."""
        with pytest.raises(InvalidModelInputError, match="Unknown degenerate policy"):
            normalize_rows(np.ones((2, 2)), 'transition', policy='ignore')

    def test_previous_policy_requires_matrix(self):
        """Test that 'previous' without a fallback matrix is rejected."""
        with pytest.raises(InvalidModelInputError):
            normalize_rows(np.ones((2, 2)), 'transition', policy='previous')
