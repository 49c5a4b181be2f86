"""
Training CLI commands.

Commands for training HMM models on observation sequences and scoring
sequences under trained models.
"""

from pathlib import Path
from typing import Optional
import logging

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.panel import Panel

from ..hmm import DiscreteHMM
from ..io import load_observation_sequence, load_initial_model
from ..train import ModelPersistence
from .errors import BWHMMCLIError, ModelError, EXIT_CODES
from .utils import handle_error, debug_enabled, validate_observation_file, validate_model_directory

console = Console()
logger = logging.getLogger(__name__)

# Rows of the convergence table shown at each end of a long run
TRACE_PREVIEW_ROWS = 10

# Create train subcommand group
train_app = typer.Typer(
    name="train",
    help="Model training commands"
)


def _build_initial_model(sequence, model_file: Optional[Path], n_states: Optional[int],
                         n_symbols: Optional[int], init: Optional[str],
                         seed: Optional[int]) -> DiscreteHMM:
    if model_file is not None:
        start, transition, emission = load_initial_model(model_file)
        return DiscreteHMM.from_parameters(start, transition, emission)

    if n_states is None:
        raise BWHMMCLIError(
            "Either --states or --model is required",
            EXIT_CODES["invalid_usage"],
            suggestions=[
                "Start from a generated model: --states 3",
                "Start from an explicit model: --model initial.json"
            ]
        )

    if n_symbols is None:
        n_symbols = int(sequence.max())
        logger.debug(f"Inferred {n_symbols} symbols from the observation sequence")

    return DiscreteHMM(n_states, n_symbols, init=init, random_state=seed)


def _convergence_table(model: DiscreteHMM) -> Table:
    table = Table(title="Convergence")
    table.add_column("Iteration", style="cyan", justify="right")
    table.add_column("Divergence", style="magenta", justify="right")
    table.add_column("Log-Likelihood", style="green", justify="right")

    trace = model.convergence_trace_
    history = model.log_likelihood_history_
    n_iterations = trace.shape[1]

    if n_iterations > 2 * TRACE_PREVIEW_ROWS:
        shown = list(range(TRACE_PREVIEW_ROWS)) + [None] + \
            list(range(n_iterations - TRACE_PREVIEW_ROWS, n_iterations))
    else:
        shown = list(range(n_iterations))

    for column in shown:
        if column is None:
            table.add_row("...", "...", "...")
            continue
        table.add_row(
            str(int(trace[0, column])),
            f"{trace[1, column]:.6g}",
            f"{history[column]:.6f}"
        )

    return table


@train_app.command("run")
def train_run(
    ctx: typer.Context,
    observations_file: Path = typer.Argument(
        ...,
        help="Text file of 1-indexed integer observation symbols"
    ),
    output_dir: Path = typer.Argument(
        ...,
        help="Output directory for the trained model"
    ),
    n_states: Optional[int] = typer.Option(
        None,
        "--states",
        "-s",
        help="Number of hidden states (required unless --model is given)"
    ),
    n_symbols: Optional[int] = typer.Option(
        None,
        "--symbols",
        "-k",
        help="Number of observation symbols (default: largest symbol in the sequence)"
    ),
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations",
        "-i",
        help="Number of Baum-Welch iterations (default: config)"
    ),
    init: Optional[str] = typer.Option(
        None,
        "--init",
        help="Initialization strategy: uniform or random (default: config)"
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for --init random"
    ),
    model_file: Optional[Path] = typer.Option(
        None,
        "--model",
        "-m",
        help="JSON file with start_prob, transition_prob and emission_prob"
    ),
    forward_mode: Optional[str] = typer.Option(
        None,
        "--forward-mode",
        help="State-sum mode of the forward recursion: linear or log"
    ),
    degenerate: Optional[str] = typer.Option(
        None,
        "--degenerate",
        help="Handling of all-zero expected-count rows: uniform, previous or raise"
    ),
    name: str = typer.Option(
        "model",
        "--name",
        "-n",
        help="Name under which the model is saved"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing model with the same name"
    ),
    report: bool = typer.Option(
        False,
        "--report",
        "-r",
        help="Log the matrices after every iteration"
    )
):
    """
    Train an HMM on one observation sequence with Baum-Welch.

    The start probabilities stay fixed; transition and emission probabilities
    are re-estimated for exactly the requested number of iterations. The
    model is saved with joblib and its matrices are exported as text tables.

    Examples:
    ```
    # Uniform 2-state initialization, 50 iterations
    bwhmm train run sequence.txt models/ --states 2 --iterations 50

    # Explicit initial model
    bwhmm train run sequence.txt models/ --model initial.json --name weather
    ```
    """
    try:
        if report and ctx.meta.get("quiet"):
            raise BWHMMCLIError(
                "--report can't be combined with --quiet",
                EXIT_CODES["invalid_usage"],
                suggestions=["Drop --quiet to see the per-iteration report"]
            )

        observations_file = validate_observation_file(observations_file)
        sequence = load_observation_sequence(observations_file)

        persistence = ModelPersistence(str(output_dir))
        if persistence.exists(name) and not force:
            raise ModelError(
                f"Model '{name}' already exists in: {output_dir}",
                suggestions=["Use --force to overwrite", "Choose another name with --name"]
            )

        model = _build_initial_model(sequence, model_file, n_states, n_symbols, init, seed)

        console.print(Panel.fit(
            f"[bold]Baum-Welch Training[/bold]\n"
            f"Observations: {observations_file} (T={len(sequence)})\n"
            f"Output: {output_dir}\n"
            f"States: {model.n_states}\n"
            f"Symbols: {model.n_symbols}\n"
            f"Initial model: {model_file or model.init}\n"
            f"Iterations: {iterations if iterations is not None else 'config default'}",
            border_style="blue"
        ))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console
        ) as progress:
            progress.add_task("Training...", total=None)
            model.fit(
                sequence,
                iterations_count=iterations,
                verbose=report,
                forward_mode=forward_mode,
                degenerate_policy=degenerate
            )

        metadata = dict(model.training_stats_)
        metadata.update({
            'observations_file': str(observations_file),
            'initial_model': str(model_file) if model_file else model.init,
            'convergence_trace': model.convergence_trace_
        })

        model_path, metadata_path = persistence.save_model(name, model, metadata, overwrite=force)
        exported = persistence.export_matrices(name, model, model.convergence_trace_)

        console.print(_convergence_table(model))

        stats = model.training_stats_
        console.print(f"\n[bold green]Training completed![/bold green]")
        console.print(f"Log-likelihood: {stats['initial_log_likelihood']:.6f} -> "
                      f"{stats['final_log_likelihood']:.6f}")
        console.print(f"Model saved to: {model_path}")
        console.print(f"Metadata saved to: {metadata_path}")
        console.print(f"Matrices exported to: {Path(exported['transition_prob']).parent}")

    except Exception as e:
        handle_error(e, "train run", debug_enabled(ctx))


@train_app.command("score")
def score_sequence(
    ctx: typer.Context,
    observations_file: Path = typer.Argument(
        ...,
        help="Text file of 1-indexed integer observation symbols"
    ),
    models_dir: Path = typer.Argument(
        ...,
        help="Directory containing trained models"
    ),
    name: str = typer.Argument(..., help="Name of the trained model"),
    forward_mode: Optional[str] = typer.Option(
        None,
        "--forward-mode",
        help="State-sum mode of the forward recursion: linear or log"
    )
):
    """Compute the log-likelihood of an observation sequence under a trained model."""
    try:
        observations_file = validate_observation_file(observations_file)
        models_dir = validate_model_directory(models_dir)

        sequence = load_observation_sequence(observations_file)
        model, _ = ModelPersistence(str(models_dir)).load_model(name)

        log_likelihood = model.score(sequence, mode=forward_mode)

        console.print(f"[bold]{name}[/bold]: log-likelihood = {log_likelihood:.6f} (T={len(sequence)})")

    except Exception as e:
        handle_error(e, "train score", debug_enabled(ctx))
