"""CLI entrypoint for ohmyblack."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from pydantic import ValidationError

from src.core.exceptions import ConfigError


def _setup_logging(verbose: bool = False) -> None:
    """Apply logging configuration from config/default.yaml."""
    from src.core.config import load_config

    try:
        config = load_config()
        level_name = config.logging.level
        fmt = config.logging.format
    except ConfigError:
        level_name = "INFO"
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    _configure_logging(level_name, fmt, verbose)


def _configure_logging(level_name: str, fmt: str, verbose: bool = False, force: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=force)


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose (DEBUG) logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """ohmyblack builder-validator orchestration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose=verbose)


@cli.command("run")
@click.option(
    "--task",
    "task_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file with one task, a list of tasks, or {tasks: [...]}.",
)
@click.option(
    "--out",
    "out_path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("ohmyblack_results.json"),
    show_default=True,
    help="Output path for serialized orchestration results.",
)
@click.option(
    "--runner",
    "runner_backend",
    required=False,
    type=click.Choice(["cli", "openrouter"]),
    default=None,
    help="Agent runner backend (overrides config).",
)
@click.option("--max-retries", required=False, type=click.IntRange(min=0), default=None)
@click.option("--env", required=False, default=None, help="Optional config overlay environment.")
@click.option(
    "--config-dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory holding default.yaml and models.yaml.",
)
@click.pass_context
def run(
    ctx: click.Context,
    task_path: Path,
    out_path: Path,
    runner_backend: Optional[str],
    max_retries: Optional[int],
    env: Optional[str],
    config_dir: Optional[Path],
) -> None:
    """Run tasks through the builder-validator cycle."""
    from src.agents.runner import create_runner
    from src.core.config import load_config, load_model_registry
    from src.llm.router import ModelRouter
    from src.orchestrator.cycle import CycleOrchestrator
    from src.orchestrator.report import format_report_markdown, generate_cycle_report

    try:
        config = load_config(config_dir, env)
        registry = load_model_registry(config_dir)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if config_dir is not None or env is not None:
        _configure_logging(
            config.logging.level, config.logging.format, ctx.obj.get("verbose", False), force=True,
        )
    tasks = _load_tasks(task_path, config.cycle.default_validation_type.value)

    if runner_backend:
        config.runner = config.runner.model_copy(update={"backend": runner_backend})
    if max_retries is not None:
        config.cycle = config.cycle.model_copy(update={"max_retries": max_retries})

    router = ModelRouter(registry)
    try:
        runner = create_runner(config, router)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    orchestrator = CycleOrchestrator(runner, config.cycle, router, progress_callback=click.echo)

    async def _run_all() -> list:
        try:
            return await orchestrator.run_many(tasks)
        finally:
            await runner.close()

    results = asyncio.run(_run_all())

    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"results": [r.model_dump(mode="json") for r in results]}
    out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    click.echo("")
    click.echo(format_report_markdown(generate_cycle_report(results)))
    click.echo(f"Wrote results to {out_path}")

    if not all(r.success for r in results):
        ctx.exit(1)


@cli.command("parse-verdict")
@click.argument("raw_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--kind", "validator_kind", required=True, help="Validator kind (syntax, logic, ...).")
@click.option("--task-id", required=True, help="Task the verdict belongs to.")
def parse_verdict(raw_path: Path, validator_kind: str, task_id: str) -> None:
    """Parse a saved validator response and print the verdict as JSON."""
    from src.verification.validator_parser import parse_validator_output

    raw = raw_path.read_text(encoding="utf-8", errors="replace")
    verdict = parse_validator_output(raw, validator_kind, task_id)
    click.echo(verdict.model_dump_json(indent=2, by_alias=True))


@cli.command("report")
@click.argument("results_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def report(results_path: Path) -> None:
    """Render the markdown report for a saved results file."""
    from src.core.models import OrchestrationResult
    from src.orchestrator.report import format_report_markdown, generate_cycle_report

    data = _load_document(results_path)
    items = data.get("results") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise click.ClickException("Results file must hold a list or {results: [...]}.")
    try:
        results = [OrchestrationResult.model_validate(item) for item in items]
    except ValidationError as exc:
        raise click.ClickException(f"Invalid results file: {exc}") from exc

    click.echo(format_report_markdown(generate_cycle_report(results)))


@cli.command("models")
@click.option(
    "--config-dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
)
def models(config_dir: Optional[Path]) -> None:
    """List model classes, the validator roster and escalation agents."""
    from src.core.config import load_model_registry

    try:
        registry = load_model_registry(config_dir)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(click.style("Model classes", bold=True))
    for model_class, model_id in registry.model_classes.items():
        click.echo(f"  {model_class.value:<8} {model_id}")

    click.echo(click.style("Validators", bold=True))
    for kind, assignment in registry.validators.items():
        click.echo(f"  {kind:<12} {assignment.agent} ({assignment.model_class.value})")

    click.echo(click.style("Escalation", bold=True))
    for level, assignment in registry.escalation.items():
        click.echo(f"  {level.value:<12} {assignment.agent} ({assignment.model_class.value})")
    click.echo(f"  {'human':<12} (surfaced to the caller, never auto-invoked)")


def _load_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Could not read {path}: {exc}") from exc


def _load_tasks(path: Path, default_validation_type: str = "validator") -> list:
    from src.core.models import TaskSpec

    data = _load_document(path)
    if isinstance(data, dict) and "tasks" in data:
        data = data["tasks"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not data:
        raise click.ClickException("Task file must hold a task object or a non-empty list of tasks.")
    for item in data:
        if isinstance(item, dict) and "validationType" not in item and "validation_type" not in item:
            item["validation_type"] = default_validation_type
    try:
        return [TaskSpec.model_validate(item) for item in data]
    except ValidationError as exc:
        raise click.ClickException(f"Invalid task spec: {exc}") from exc


def main() -> None:
    """Entry point used by `ohmyblack` console script."""
    from dotenv import load_dotenv
    load_dotenv(Path(__file__).parent.parent / ".env", override=True)
    cli()


if __name__ == "__main__":
    main()
