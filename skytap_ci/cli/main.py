"""
Main CLI entry point for skytap-ci.

This module defines the command-line interface using Typer, running
Skytap lifecycle steps from a pipeline file or one at a time.
"""

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from skytap_ci import config
from skytap_ci.exceptions import SkytapError
from skytap_ci.runner import StepRunner, load_pipeline
from skytap_ci.steps import STEP_TYPES
from skytap_ci.utils.log import StepLogger

console = Console()

app = typer.Typer(
    name="skytap-ci",
    help="skytap-ci - Drive Skytap environments, networks and containers from a CI pipeline",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# options shared by every command, set by the callback
state = {"verbose": False}


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        from skytap_ci import __version__
        console.print(f"skytap-ci version: [bold green]{__version__}[/bold green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose output",
    ),
) -> None:
    """skytap-ci - Skytap lab lifecycle steps for build pipelines."""
    state["verbose"] = verbose


def parse_params(values: List[str]) -> Dict[str, str]:
    """Turn repeated ``key=value`` options into a parameter dict"""
    params = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--param")
        params[key.strip()] = value
    return params


def create_runner(workspace: Optional[str]) -> StepRunner:
    logger = StepLogger(verbose=config.is_logging_enabled(True if state["verbose"] else None))
    return StepRunner(logger=logger, workspace=workspace)


@app.command()
def run(
    pipeline_file: Path = typer.Argument(
        ...,
        help="Path to the pipeline YAML file",
    ),
    workspace: Optional[str] = typer.Option(
        None,
        "-w",
        "--workspace",
        help="Directory bare descriptor filenames are resolved against (default: $WORKSPACE or cwd)",
    ),
) -> None:
    """
    Run every step of a pipeline file in order.

    The first failing step stops the pipeline and the command exits with status 1.
    """
    try:
        pipeline = load_pipeline(pipeline_file)
        with create_runner(workspace) as runner:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task(f"Running {len(pipeline.steps)} steps...", total=None)
                succeeded = runner.run(pipeline)
                progress.update(task, description="Pipeline finished")

    except SkytapError as e:
        console.print(f"❌ Error running pipeline: [red]{str(e)}[/red]")
        raise typer.Exit(1)

    if not succeeded:
        console.print(f"❌ Pipeline [bold]{pipeline_file}[/bold] [red]failed[/red]")
        raise typer.Exit(1)
    console.print(f"✅ Pipeline [bold green]{pipeline_file}[/bold green] completed")


@app.command()
def step(
    action: str = typer.Argument(
        ...,
        help="Action tag of the step, see 'skytap-ci actions'",
    ),
    param: List[str] = typer.Option(
        [],
        "-p",
        "--param",
        help="Step parameter as key=value, repeatable",
    ),
    workspace: Optional[str] = typer.Option(
        None,
        "-w",
        "--workspace",
        help="Directory bare descriptor filenames are resolved against",
    ),
) -> None:
    """
    Run a single step.
    """
    if action not in STEP_TYPES:
        console.print(f"❌ Unknown action: [red]{action}[/red]")
        raise typer.Exit(1)

    params = parse_params(param)
    try:
        with create_runner(workspace) as runner:
            succeeded = runner.run_step(action, params)
    except SkytapError as e:
        console.print(f"❌ Error running step: [red]{str(e)}[/red]")
        raise typer.Exit(1)

    if not succeeded:
        console.print(f"❌ Step [bold]{action}[/bold] [red]failed[/red]")
        raise typer.Exit(1)
    console.print(f"✅ Step [bold green]{action}[/bold green] succeeded")


@app.command()
def actions() -> None:
    """
    List the available step actions.
    """
    table = Table(title="Available Actions")
    table.add_column("Action", style="cyan")
    table.add_column("Description", style="green")
    table.add_column("Parameters", style="white")

    for tag in sorted(STEP_TYPES):
        step_type = STEP_TYPES[tag]
        fields = ", ".join(step_type.params_model.model_fields)
        table.add_row(tag, step_type.display_name, fields)

    console.print(table)


if __name__ == "__main__":
    app()
