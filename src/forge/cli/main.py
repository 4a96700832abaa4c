"""Main CLI entry point for forge."""

import asyncio
import json
import logging
from typing import Any

import click

from forge.config.manager import ConfigManager
from forge.config.schema import get_config_file
from forge.orchestration.models import WorkflowContext, WorkflowResult
from forge.orchestration.orchestrator import WorkflowOrchestrator
from forge.orchestration.state_machine import TRANSITIONS
from forge.output.formatter import get_formatter

logger = logging.getLogger(__name__)


def configure_logging(level: str, verbose: bool = False) -> None:
    """Set the root log level from config, or DEBUG with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_value(raw: str) -> Any:
    """Interpret a command-line value as JSON when possible (numbers, booleans, lists)."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--no-color", is_flag=True, help="Disable colors")
@click.version_option(package_name="forge-orchestrator")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    no_color: bool,
) -> None:
    """Forge - quality-gated multi-agent code generation.

    \b
    Examples:
        forge run "build a login form with validation"
        forge run --mode tutor "what is a closure?"
        forge config set quality.threshold 0.8
        forge states
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["no_color"] = no_color

    configure_logging(ConfigManager.get_config().logging.level, verbose)
    get_formatter(color=not no_color, verbose=verbose)


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--mode", type=click.Choice(["builder", "tutor"]), default="builder", help="Generate code or explain")
@click.option("-u", "--user", "user_id", help="User id for profile and memory")
@click.option("-s", "--session", "session_id", help="Session id")
@click.option("-f", "--framework", help="Framework hint")
@click.option("-p", "--provider", help="Provider requested for this prompt")
@click.option("--json", "output_json", is_flag=True, help="JSON output")
def run(
    prompt: tuple[str, ...],
    mode: str,
    user_id: str | None,
    session_id: str | None,
    framework: str | None,
    provider: str | None,
    output_json: bool,
) -> None:
    """Run a prompt through the plan/execute/review workflow."""
    formatter = get_formatter()
    context = WorkflowContext(
        prompt=" ".join(prompt),
        mode=mode,  # type: ignore[arg-type]
        user_id=user_id,
        framework=framework,
        provider=provider,
    )
    if session_id:
        context.session_id = session_id
    if not output_json:
        context.on_state_change = formatter.print_state
        context.on_status_update = formatter.print_status

    try:
        result = asyncio.run(_run_workflow(context))
    except ValueError as e:
        formatter.print_error(str(e))
        raise SystemExit(1)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        formatter.print_result(result)

    if result.is_error:
        raise SystemExit(1)


async def _run_workflow(context: WorkflowContext) -> WorkflowResult:
    orchestrator = WorkflowOrchestrator(ConfigManager.get_config())
    result = await orchestrator.execute_workflow(context)
    await orchestrator.drain()
    return result


@cli.command()
def states() -> None:
    """Show the workflow state machine."""
    get_formatter().print_transitions(TRANSITIONS)


# --- Subcommands ---


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Show current configuration."""
    config = ConfigManager.get_config()
    formatter = get_formatter()
    formatter.console.print_json(json.dumps(config.model_dump(), indent=2))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a value by dotted path, e.g. ``retry.max_revisions 2``."""
    formatter = get_formatter()
    try:
        ConfigManager.set_value(key, _parse_value(value))
    except (KeyError, ValueError) as e:
        formatter.print_error(str(e))
        raise SystemExit(1)
    formatter.print_success(f"Set {key} = {ConfigManager.get_value(key)}")


@config.command("path")
def config_path() -> None:
    """Show the user config file path."""
    click.echo(str(get_config_file()))


if __name__ == "__main__":
    cli()
