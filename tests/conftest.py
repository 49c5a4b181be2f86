"""
Test configuration and fixtures for bwhmm.

This file contains pytest configuration and shared fixtures
for testing the bwhmm system.
"""

import pytest
import tempfile
import numpy as np
from pathlib import Path

from bwhmm.config import reset_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def clean_config():
    """Restore default configuration around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def symmetric_model():
    """Two-state model with uniform transitions and mirrored emissions."""
    start = np.array([0.5, 0.5])
    transition = np.array([[0.5, 0.5],
                           [0.5, 0.5]])
    emission = np.array([[0.6, 0.4],
                         [0.4, 0.6]])
    return start, transition, emission


@pytest.fixture
def alternating_sequence():
    """1-indexed sequence alternating between the two symbols."""
    return np.array([1, 2, 1, 2])


@pytest.fixture
def weather_model():
    """Three-state, three-symbol model with distinct rows."""
    start = np.array([0.6, 0.3, 0.1])
    transition = np.array([[0.7, 0.2, 0.1],
                           [0.3, 0.5, 0.2],
                           [0.2, 0.3, 0.5]])
    emission = np.array([[0.5, 0.4, 0.1],
                         [0.1, 0.3, 0.6],
                         [0.3, 0.3, 0.4]])
    return start, transition, emission


@pytest.fixture
def weather_sequence():
    """1-indexed sequence over three symbols."""
    return np.array([1, 2, 3, 3, 1, 2, 1, 1, 3, 2, 2, 3, 1, 3, 3, 2, 1, 1, 2, 3])


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
