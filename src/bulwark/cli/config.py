"""
bulwark config - Show the effective resilience settings.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bulwark.exceptions import ConfigurationError

app = typer.Typer(name="config", help="Show resilience configuration", invoke_without_command=True)

console = Console()


@app.callback()
def config(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment overlay (bulwark.{env}.yaml)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory or config file"),
) -> None:
    """
    Print the retry and circuit breaker settings that policy_from_config would build.
    """
    if ctx.invoked_subcommand is not None:
        return

    from bulwark.config.builder import circuit_breaker_from_config, retry_policy_from_config
    from bulwark.config.loader import load_config

    try:
        cfg = load_config(project_dir, env=env)
        policy = retry_policy_from_config(cfg)
        breaker = circuit_breaker_from_config(cfg)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    retry_table = Table(title="Retry", show_header=True)
    retry_table.add_column("Setting", style="cyan")
    retry_table.add_column("Value", style="green")
    retry_table.add_row("mode", "forever" if policy.forever else "bounded")
    if policy.forever:
        retry_table.add_row("fixed_delay", f"{policy.fixed_delay}s")
    else:
        retry_table.add_row("max_attempts", str(policy.max_attempts))
        retry_table.add_row("seed_delay", f"{policy.seed_delay}s")
        retry_table.add_row("max_delay", f"{policy.max_delay}s")
    retry_table.add_row("retry_on_circuit_open", str(policy.retry_on_circuit_open))
    retry_table.add_row("max_duration", f"{policy.max_duration}s" if policy.max_duration else "-")
    retry_table.add_row(
        "retryable_status_codes", ", ".join(str(c) for c in sorted(policy.classifier.retryable_status_codes))
    )

    breaker_table = Table(title="Circuit Breaker", show_header=True)
    breaker_table.add_column("Setting", style="cyan")
    breaker_table.add_column("Value", style="green")
    breaker_table.add_row("name", breaker.name)
    breaker_table.add_row("exceptions_allowed_before_breaking", str(breaker.exceptions_allowed_before_breaking))
    breaker_table.add_row("duration_of_break", f"{breaker.duration_of_break}s")

    console.print(retry_table)
    console.print(breaker_table)
