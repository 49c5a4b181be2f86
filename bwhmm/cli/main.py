"""
Main CLI application for bwhmm.

Provides command-line interface for Baum-Welch training, scoring and model inspection.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from ..config import load_config_file, get_config
from ..logger import set_log_level, enable_file_logging
from .errors import (
    handle_cli_error,
    check_system_requirements,
    display_system_info,
    display_usage_examples,
    ConfigurationError,
    EXIT_CODES
)

# Initialize Rich console for pretty output
console = Console()

# Create main Typer app
app = typer.Typer(
    name="bwhmm",
    help="Baum-Welch training for discrete Hidden Markov Models",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True
)

# Import and add subcommands
from .train import train_app
from .models import models_app

app.add_typer(train_app, name="train")
app.add_typer(models_app, name="models")


@app.command("info")
def system_info():
    """Display system information and requirements status."""
    display_system_info()


@app.command("examples")
def show_examples(
    command: Optional[str] = typer.Argument(
        None,
        help="Show examples for specific command (train/models)"
    )
):
    """Show usage examples for bwhmm commands."""
    display_usage_examples(command)


@app.command("version")
def show_version():
    """Show bwhmm version information."""
    from .. import __version__

    requirements = check_system_requirements()
    numeric_stack = ", ".join(
        f"{package} {requirements[package].get('version', 'missing')}"
        for package in ("numpy", "scipy")
    )

    console.print(Panel.fit(
        f"[bold]bwhmm Version {__version__}[/bold]\n"
        f"Baum-Welch training for discrete Hidden Markov Models\n"
        f"Python {requirements['python_version']['current']} ({numeric_stack})",
        border_style="blue"
    ))


# Global options
@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging and debug information"
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress all output except errors"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode with detailed error traces"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to JSON configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False
    )
):
    """
    bwhmm: Baum-Welch training for discrete Hidden Markov Models

    Re-estimates the transition and emission probabilities of an HMM from a
    single sequence of integer symbols, with a fixed number of EM iterations.

    \b
    Quick Start:
    1. Train a model:    bwhmm train run <observations> <models> --states 2
    2. Score a sequence: bwhmm train score <observations> <models> <name>
    3. Inspect models:   bwhmm models list <models>

    \b
    For detailed examples: bwhmm examples
    For system info:       bwhmm info
    """
    # Store global options in context for error handling
    ctx.meta["verbose"] = verbose
    ctx.meta["quiet"] = quiet
    ctx.meta["debug"] = debug

    if config_file:
        try:
            load_config_file(str(config_file))
        except ValueError as e:
            handle_cli_error(
                ConfigurationError(
                    str(e),
                    suggestions=["Configuration files are JSON objects keyed by section (hmm, init, persistence, logging)"]
                ),
                "configuration loading",
                debug
            )

    # Set up logging based on verbosity
    if quiet:
        set_log_level('ERROR')
    elif verbose or debug:
        set_log_level('DEBUG')
    else:
        set_log_level(get_config('logging', 'level') or 'INFO')

    if get_config('logging', 'file_logging'):
        enable_file_logging(get_config('logging', 'log_file'))


def cli_main():
    """Main entry point for CLI with error handling."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_CODES["general_error"])


if __name__ == "__main__":
    cli_main()
