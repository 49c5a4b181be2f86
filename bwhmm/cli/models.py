"""
Model inspection CLI commands.
"""

from pathlib import Path
import logging

import numpy as np
import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from ..train import ModelPersistence
from .utils import handle_error, debug_enabled, validate_model_directory

console = Console()
logger = logging.getLogger(__name__)

models_app = typer.Typer(
    name="models",
    help="Trained model inspection commands"
)


def _matrix_table(title: str, matrix: np.ndarray, column_prefix: str) -> Table:
    matrix = np.atleast_2d(matrix)
    table = Table(title=title)
    table.add_column("State", style="cyan", justify="right")
    for column in range(matrix.shape[1]):
        table.add_column(f"{column_prefix}{column + 1}", justify="right")

    for row in range(matrix.shape[0]):
        table.add_row(str(row + 1), *[f"{value:.6f}" for value in matrix[row]])

    return table


def _format_value(value) -> str:
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


@models_app.command("list")
def list_models(
    ctx: typer.Context,
    models_dir: Path = typer.Argument(..., help="Directory containing trained models")
):
    """List trained models with their dimensions and final log-likelihood."""
    try:
        models_dir = validate_model_directory(models_dir)
        models_info = ModelPersistence(str(models_dir)).list_available_models()

        table = Table(title=f"Models in {models_dir}")
        table.add_column("Name", style="cyan")
        table.add_column("States", style="magenta", justify="right")
        table.add_column("Symbols", style="magenta", justify="right")
        table.add_column("Iterations", style="green", justify="right")
        table.add_column("Final Log-Likelihood", style="yellow", justify="right")
        table.add_column("Saved", style="blue")

        for info in models_info:
            if not info['metadata_exists'] or info.get('metadata_error'):
                table.add_row(info['name'], "-", "-", "-", "-", "[red]metadata missing[/red]")
                continue
            table.add_row(
                info['name'],
                str(info['n_states']),
                str(info['n_symbols']),
                str(info['iterations']),
                _format_value(info['final_log_likelihood']),
                str(info['saved_at'])
            )

        console.print(table)
        console.print(f"{len(models_info)} model(s) found")

    except Exception as e:
        handle_error(e, "models list", debug_enabled(ctx))


@models_app.command("show")
def show_model(
    ctx: typer.Context,
    models_dir: Path = typer.Argument(..., help="Directory containing trained models"),
    name: str = typer.Argument(..., help="Name of the trained model")
):
    """Show the matrices and training summary of a trained model."""
    try:
        models_dir = validate_model_directory(models_dir)
        model, metadata = ModelPersistence(str(models_dir)).load_model(name)

        summary = [
            f"[bold]{metadata.get('name', name)}[/bold]",
            f"States: {model.n_states}",
            f"Symbols: {model.n_symbols}"
        ]
        for key in ('iterations', 'sequence_length', 'forward_mode', 'degenerate_policy',
                    'initial_log_likelihood', 'final_log_likelihood', 'saved_at'):
            if key in metadata:
                summary.append(f"{key.replace('_', ' ').capitalize()}: {_format_value(metadata[key])}")

        console.print(Panel.fit("\n".join(summary), border_style="blue"))
        console.print(_matrix_table("Start Probabilities", model.start_prob, "p"))
        console.print(_matrix_table("Transition Probabilities", model.transition_prob, "to "))
        console.print(_matrix_table("Emission Probabilities", model.emission_prob, "sym "))

    except Exception as e:
        handle_error(e, "models show", debug_enabled(ctx))
