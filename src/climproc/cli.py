from __future__ import annotations

import logging
from pathlib import Path

import click
import pandas as pd

from climproc.audit import get_logger
from climproc.config import ProcessingConfig
from climproc.datasets import ClimateDataset
from climproc.orchestrator import ScriptOrchestrator
from climproc.plan import jobs_to_frame, save_plan
from climproc.sorter import sort_by_dependencies


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    metavar="PATH",
    help="Path to YAML config file. Uses built-in defaults if omitted.",
)
@click.option(
    "--output-dir",
    "output_dir",
    default=None,
    metavar="DIR",
    help="Directory for generated scripts, logs and outputs. Overrides config file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log every job as it is created.")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    output_dir: str | None,
    verbose: bool,
) -> None:
    """climproc: generate PBS job scripts for climate data processing."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        config = ProcessingConfig.from_yaml(config_path) if config_path else ProcessingConfig()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if output_dir is not None:
        config.output_directory = Path(output_dir)
    ctx.obj["config"] = config


def _message(exc: Exception) -> str:
    # str(KeyError) wraps the message in quotes.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)


def _select_datasets(config: ProcessingConfig, name: str | None) -> list[ClimateDataset]:
    """Return the configured datasets, or only the one called *name*."""
    if not config.datasets:
        raise click.ClickException("No datasets configured. Add a 'datasets' section to the config file.")
    try:
        specs = [config.get_dataset(name)] if name else config.datasets
        return [ClimateDataset.from_spec(spec, config) for spec in specs]
    except (KeyError, ValueError) as exc:
        raise click.ClickException(_message(exc)) from exc


def _generate(config: ProcessingConfig, dataset_name: str | None) -> tuple[ScriptOrchestrator, list[Path]]:
    datasets = _select_datasets(config, dataset_name)
    orchestrator = ScriptOrchestrator(config, audit=get_logger(config))
    scripts = []
    for dataset in datasets:
        try:
            scripts.append(orchestrator.generate_scripts(dataset))
        except (KeyError, ValueError) as exc:
            raise click.ClickException(f"{dataset.name}: {_message(exc)}") from exc
    return orchestrator, scripts


@main.command()
@click.option("--dataset", "dataset_name", default=None, metavar="NAME", help="Only generate scripts for NAME.")
@click.option(
    "--plan-file",
    "plan_file",
    default=None,
    metavar="PATH",
    help="Also write the job table to PATH as CSV.",
)
@click.pass_context
def generate(ctx: click.Context, dataset_name: str | None, plan_file: str | None) -> None:
    """Generate job scripts and submission scripts for each dataset."""
    config: ProcessingConfig = ctx.obj["config"]

    orchestrator, scripts = _generate(config, dataset_name)
    for script in scripts:
        click.echo(f"  Wrote {script}")

    wrapper = ScriptOrchestrator.generate_wrapper_script(
        config.output_directory, scripts, audit=orchestrator.audit
    )

    if plan_file is not None:
        jobs = [job for dataset_jobs in orchestrator.generated.values() for job in dataset_jobs]
        save_plan(jobs_to_frame(jobs), plan_file)
        click.echo(f"Job table written to {plan_file}.")

    click.echo(f"Generated scripts for {len(scripts)} dataset(s). Submit all jobs with:")
    click.echo(f"  {wrapper}")


@main.command()
@click.option("--dataset", "dataset_name", default=None, metavar="NAME", help="Only show dataset NAME.")
@click.pass_context
def order(ctx: click.Context, dataset_name: str | None) -> None:
    """Show each dataset's processors in dependency order without writing anything."""
    config: ProcessingConfig = ctx.obj["config"]

    rows = []
    for dataset in _select_datasets(config, dataset_name):
        try:
            processors = sort_by_dependencies(dataset.get_processors())
        except ValueError as exc:
            raise click.ClickException(f"{dataset.name}: {exc}") from exc
        for position, processor in enumerate(processors, start=1):
            rows.append(
                {
                    "dataset": dataset.name,
                    "position": position,
                    "processor": repr(processor),
                    "output": str(processor.output_format),
                    "dependencies": ", ".join(sorted(str(d) for d in processor.dependencies)),
                }
            )

    if not rows:
        click.echo("No processors configured.")
        return

    click.echo(pd.DataFrame(rows).to_string(index=False))


@main.command()
@click.option("--dataset", "dataset_name", default=None, metavar="NAME", help="Only plan dataset NAME.")
@click.pass_context
def plan(ctx: click.Context, dataset_name: str | None) -> None:
    """Generate job scripts and show every job in submission order."""
    config: ProcessingConfig = ctx.obj["config"]

    orchestrator, _ = _generate(config, dataset_name)
    for name, jobs in orchestrator.generated.items():
        click.echo(f"Dataset {name}: {len(jobs)} job(s)")
        frame = jobs_to_frame(jobs)
        click.echo(frame[["name", "variable", "stage", "dependencies"]].to_string(index=False))
