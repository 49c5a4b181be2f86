"""
File formats for observation sequences, initial models and trained matrices.

Observation sequences are plain text with whitespace- or comma-separated
integer symbol IDs. Initial models are JSON documents validated against
MODEL_SCHEMA. Trained matrices are written as plain-text tables.
"""

import json
import re
from pathlib import Path
from typing import Optional, Tuple, Union

import jsonschema
import numpy as np

from ..exceptions import InvalidModelInputError, SequenceFileError
from ..logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]

_PROBABILITY = {"type": "number", "minimum": 0.0, "maximum": 1.0}

_MATRIX = {
    "type": "array",
    "minItems": 1,
    "items": {"type": "array", "minItems": 1, "items": _PROBABILITY}
}

# JSON schema for initial model files
MODEL_SCHEMA = {
    "type": "object",
    "properties": {
        "start_prob": {
            "type": "array",
            "minItems": 1,
            "items": _PROBABILITY,
            "description": "Initial state distribution [N]"
        },
        "transition_prob": dict(_MATRIX, description="Row-stochastic transition matrix [N, N]"),
        "emission_prob": dict(_MATRIX, description="Row-stochastic emission matrix [N, K]"),
        "description": {
            "type": "string",
            "description": "Free-form notes (optional)"
        }
    },
    "required": ["start_prob", "transition_prob", "emission_prob"],
    "additionalProperties": True
}

_SEPARATORS = re.compile(r"[\s,;]+")


def load_observation_sequence(path: PathLike) -> np.ndarray:
    """
    Load an observation sequence of 1-indexed symbol IDs.

    Args:
        path: Text file with integer IDs separated by whitespace, commas or semicolons

    Returns:
        Integer array [T]

    Raises:
        SequenceFileError: If the file is missing, empty or contains non-integers
    """
    path = Path(path)

    if not path.exists():
        raise SequenceFileError(f"Observation file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SequenceFileError(f"Failed to read observation file {path}: {e}")

    tokens = [token for token in _SEPARATORS.split(text) if token]
    if not tokens:
        raise SequenceFileError(f"Observation file is empty: {path}")

    try:
        sequence = np.array([int(token) for token in tokens], dtype=int)
    except ValueError as e:
        raise SequenceFileError(f"Observation file {path} contains a non-integer symbol: {e}")

    logger.debug(f"Loaded observation sequence from {path}: T={len(sequence)}")
    return sequence


def save_observation_sequence(path: PathLike, sequence) -> None:
    """Write an observation sequence as one line of space-separated IDs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(" ".join(str(int(symbol)) for symbol in np.asarray(sequence).ravel()) + "\n",
                    encoding="utf-8")


def load_initial_model(path: PathLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Load an initial model from a JSON file.

    Only the document structure is checked here; stochasticity and shape
    agreement are checked by the trainer before the first iteration.

    Returns:
        Tuple of (start_prob, transition_prob, emission_prob)

    Raises:
        SequenceFileError: If the file is missing or not valid JSON
        InvalidModelInputError: If the document doesn't match MODEL_SCHEMA
    """
    path = Path(path)

    if not path.exists():
        raise SequenceFileError(f"Model file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise SequenceFileError(f"Invalid JSON in model file {path}: {e}")

    try:
        jsonschema.validate(document, MODEL_SCHEMA)
    except jsonschema.ValidationError as e:
        raise InvalidModelInputError(f"Model file {path} failed schema validation: {e.message}")

    try:
        start = np.array(document["start_prob"], dtype=float)
        transition = np.array(document["transition_prob"], dtype=float)
        emission = np.array(document["emission_prob"], dtype=float)
    except ValueError as e:
        raise InvalidModelInputError(f"Model file {path} has ragged matrices: {e}")

    logger.debug(f"Loaded initial model from {path}: {start.shape[0]} states")
    return start, transition, emission


def save_initial_model(path: PathLike, start_prob, transition_prob, emission_prob,
                       description: Optional[str] = None) -> None:
    """Write a model triple in the JSON format read by load_initial_model."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    document = {
        "start_prob": np.asarray(start_prob, dtype=float).tolist(),
        "transition_prob": np.asarray(transition_prob, dtype=float).tolist(),
        "emission_prob": np.asarray(emission_prob, dtype=float).tolist()
    }
    if description:
        document["description"] = description

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)


def save_matrix(path: PathLike, matrix) -> None:
    """Write a 1-D or 2-D array as a plain-text table."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(path, np.atleast_2d(np.asarray(matrix, dtype=float)), fmt="%.10g")


def load_matrix(path: PathLike) -> np.ndarray:
    """Read a plain-text table written by save_matrix as a 2-D array."""
    path = Path(path)
    if not path.exists():
        raise SequenceFileError(f"Matrix file not found: {path}")
    return np.atleast_2d(np.loadtxt(path, dtype=float, ndmin=2))
