"""
Input/output module for observation sequences, initial models and matrices.
"""

from .files import (
    load_observation_sequence,
    save_observation_sequence,
    load_initial_model,
    save_initial_model,
    load_matrix,
    save_matrix,
    MODEL_SCHEMA
)

__all__ = [
    "load_observation_sequence",
    "save_observation_sequence",
    "load_initial_model",
    "save_initial_model",
    "load_matrix",
    "save_matrix",
    "MODEL_SCHEMA"
]
