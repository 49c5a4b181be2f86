"""
Comprehensive error handling for CLI commands.

Defines CLI exceptions, maps library exceptions onto exit codes and provides
validation helpers with helpful suggestions.
"""

import sys
import difflib
import platform
import traceback
from importlib import metadata
from pathlib import Path
from typing import Optional, Dict, Any
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..exceptions import (
    InvalidModelInputError,
    DegenerateStatisticsError,
    IterationCountError,
    ModelPersistenceError,
    SequenceFileError
)

console = Console()
logger = logging.getLogger(__name__)

REQUIRED_PACKAGES = ["numpy", "scipy", "joblib", "jsonschema", "typer", "rich"]

# Exit codes for different error types
EXIT_CODES = {
    "success": 0,
    "general_error": 1,
    "invalid_usage": 2,
    "input_error": 10,
    "model_error": 11,
    "invalid_model": 12,
    "degenerate": 13,
    "config_error": 14,
    "system_error": 20
}


class BWHMMCLIError(Exception):
    """Base exception for CLI-specific errors."""

    def __init__(self, message: str, exit_code: int = 1, suggestions: Optional[list] = None):
        self.message = message
        self.exit_code = exit_code
        self.suggestions = suggestions or []
        super().__init__(message)


class InputFileError(BWHMMCLIError):
    """Observation or model file errors."""

    def __init__(self, message: str, suggestions: Optional[list] = None):
        super().__init__(message, EXIT_CODES["input_error"], suggestions)


class ModelError(BWHMMCLIError):
    """Trained-model errors."""

    def __init__(self, message: str, suggestions: Optional[list] = None):
        super().__init__(message, EXIT_CODES["model_error"], suggestions)


class ConfigurationError(BWHMMCLIError):
    """Configuration errors."""

    def __init__(self, message: str, suggestions: Optional[list] = None):
        super().__init__(message, EXIT_CODES["config_error"], suggestions)


# Library exception -> (exit code key, suggestions)
LIBRARY_ERRORS = [
    (IterationCountError, "invalid_usage", [
        "Pass a positive integer: --iterations 50"
    ]),
    (InvalidModelInputError, "invalid_model", [
        "Check that every probability row sums to 1",
        "Check that symbol IDs in the sequence are within [1, K]",
        "Check that the transition matrix is N x N and the emission matrix has N rows"
    ]),
    (DegenerateStatisticsError, "degenerate", [
        "Use --degenerate uniform or --degenerate previous to recover from unreachable states",
        "Start from a model without zero probabilities, e.g. --init uniform"
    ]),
    (SequenceFileError, "input_error", [
        "Observation files hold integer symbol IDs separated by spaces, commas or newlines"
    ]),
    (ModelPersistenceError, "model_error", [
        "Use --force to overwrite existing models",
        "List saved models: bwhmm models list <models_dir>"
    ])
]


def resolve_exit_code(error: Exception) -> int:
    """Exit code for an exception raised during a CLI command."""
    if isinstance(error, BWHMMCLIError):
        return error.exit_code
    for error_type, code_name, _ in LIBRARY_ERRORS:
        if isinstance(error, error_type):
            return EXIT_CODES[code_name]
    return EXIT_CODES["general_error"]


def _suggestions_for(error: Exception) -> list:
    if getattr(error, 'suggestions', None):
        return error.suggestions
    for error_type, _, suggestions in LIBRARY_ERRORS:
        if isinstance(error, error_type):
            return suggestions
    return []


def format_error_message(error: Exception, operation: str, debug: bool = False) -> str:
    """Format error message with context and suggestions."""
    error_type = type(error).__name__

    message_parts = [
        f"[red]Error during {operation}:[/red]",
        f"[red]{error_type}: {error}[/red]"
    ]

    suggestions = _suggestions_for(error)
    if suggestions:
        message_parts.append("")
        message_parts.append("[yellow]Suggestions:[/yellow]")
        for suggestion in suggestions:
            message_parts.append(f"  • {suggestion}")

    if debug:
        message_parts.append("")
        message_parts.append("[dim]Debug information:[/dim]")
        message_parts.append(f"[dim]{traceback.format_exc()}[/dim]")

    return "\n".join(message_parts)


def handle_cli_error(error: Exception, operation: str, debug: bool = False) -> None:
    """Handle CLI errors with rich formatting and helpful messages."""
    exit_code = resolve_exit_code(error)

    console.print(format_error_message(error, operation, debug))
    group = operation.split()[0]
    help_command = f"bwhmm {group} --help" if group in USAGE_EXAMPLES else "bwhmm --help"
    console.print(f"\n[dim]For more help, run: {help_command}[/dim]")

    logger.error(f"CLI error in {operation}: {error}", exc_info=debug)

    raise typer.Exit(exit_code)


def validate_file_exists(path: Path, file_type: str = "file") -> Path:
    """Validate that a file exists, suggesting close matches when it doesn't."""
    if path.is_file():
        return path

    if path.exists():
        raise InputFileError(f"Path is not a file: {path}")

    suggestions = []
    if path.parent.is_dir():
        siblings = [item.name for item in path.parent.iterdir() if item.is_file()]
        close = difflib.get_close_matches(path.name, siblings, n=3)
        if close:
            suggestions.append(f"Did you mean one of: {', '.join(close)}")
    else:
        suggestions.append(f"Directory does not exist: {path.parent}")

    raise InputFileError(f"{file_type.capitalize()} not found: {path}", suggestions=suggestions)


def validate_directory_exists(path: Path, dir_type: str = "directory") -> Path:
    """Validate that a directory exists."""
    if path.is_dir():
        return path

    if path.exists():
        raise InputFileError(f"Path is not a directory: {path}")

    raise InputFileError(
        f"{dir_type.capitalize()} not found: {path}",
        suggestions=[f"Check the path spelling: {path}"]
    )


def validate_models_directory(path: Path) -> Path:
    """Validate that a directory holds at least one saved model."""
    validate_directory_exists(path, "models directory")

    model_names = {item.stem for item in path.glob("*.pkl")}
    if not model_names:
        raise ModelError(
            f"No model files (*.pkl) found in: {path}",
            suggestions=[f"Train a model first: bwhmm train run <observations> {path} --states 2"]
        )

    orphaned = sorted(name for name in model_names if not (path / f"{name}_meta.json").exists())
    if orphaned:
        console.print(f"[yellow]Warning: metadata missing for {', '.join(orphaned)}[/yellow]")

    return path


def check_system_requirements() -> Dict[str, Any]:
    """Report the interpreter version and the installed version of each dependency."""
    requirements = {
        "python_version": {
            "required": "3.8+",
            "current": platform.python_version(),
            "satisfied": sys.version_info >= (3, 8)
        }
    }

    for package in REQUIRED_PACKAGES:
        try:
            requirements[package] = {"installed": True, "version": metadata.version(package)}
        except metadata.PackageNotFoundError:
            requirements[package] = {
                "installed": False,
                "install_command": f"pip install {package}"
            }

    return requirements


def display_system_info() -> None:
    """Display system information and requirements status."""
    requirements = check_system_requirements()

    python_req = requirements.pop("python_version")
    status = "[green]✓[/green]" if python_req["satisfied"] else "[red]✗[/red]"
    console.print(Panel.fit(
        f"[bold]System Information[/bold]\n"
        f"Python: {status} {python_req['current']} (required: {python_req['required']})",
        border_style="blue"
    ))

    table = Table(title="Package Status")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Status")

    for package, info in requirements.items():
        if info["installed"]:
            table.add_row(package, info["version"], "[green]✓[/green]")
        else:
            table.add_row(package, "-", f"[red]✗[/red] {info['install_command']}")

    console.print(table)


USAGE_EXAMPLES = {
    "train": [
        ("Train a 2-state model from a uniform initialization",
         "bwhmm train run sequence.txt models/ --states 2 --iterations 50"),
        ("Train from an explicit initial model",
         "bwhmm train run sequence.txt models/ --model initial.json --name weather"),
        ("Score a sequence under a saved model",
         "bwhmm train score sequence.txt models/ weather")
    ],
    "models": [
        ("List saved models", "bwhmm models list models/"),
        ("Show the matrices of a saved model", "bwhmm models show models/ weather")
    ]
}


def display_usage_examples(command: Optional[str] = None) -> None:
    """Display usage examples for one command group, or all of them."""
    groups = [command] if command in USAGE_EXAMPLES else list(USAGE_EXAMPLES)

    console.print(Panel.fit("[bold]bwhmm Usage Examples[/bold]", border_style="green"))

    for group in groups:
        console.print(f"\n[bold cyan]{group.title()} Commands:[/bold cyan]")
        for description, example in USAGE_EXAMPLES[group]:
            console.print(f"[dim]# {description}[/dim]")
            console.print(f"  {example}")
