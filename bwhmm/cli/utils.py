"""
CLI utility functions.

Common utilities for CLI commands including error handling and validation.
"""

from pathlib import Path

import typer

from .errors import (
    handle_cli_error,
    validate_file_exists,
    validate_models_directory
)


def handle_error(error: Exception, operation: str, debug: bool = False) -> None:
    """Handle and display errors consistently; re-raise typer exits untouched."""
    if isinstance(error, typer.Exit):
        raise error
    handle_cli_error(error, operation, debug)


def debug_enabled(ctx: typer.Context) -> bool:
    """Whether the global --debug flag was passed."""
    return bool(ctx.meta.get("debug", False))


def validate_observation_file(path: Path) -> Path:
    """Validate that the provided path is an existing observation file."""
    return validate_file_exists(path, "observation file")


def validate_model_directory(path: Path) -> Path:
    """Validate that the provided path contains trained models."""
    return validate_models_directory(path)
