"""
bulwark demo - Send a fake message through a chaotic client.

A stand-in "send message" call fails with connection errors for a while, and
the composed retry + circuit breaker policy carries it through to success.
"""

import asyncio
import copy
import uuid
from pathlib import Path

import typer
from rich.console import Console

from bulwark.config.builder import policy_from_config
from bulwark.config.loader import Config, load_config
from bulwark.core.hooks import log_on_break, log_on_half_open, log_on_reset, log_on_retry
from bulwark.exceptions import BulwarkError
from bulwark.testing import FaultInjector
from bulwark.utils.logging import get_logger, setup_logging

logger = get_logger("bulwark.cli.demo")

app = typer.Typer(name="demo", help="Run the chaos demo through the resilience policy", invoke_without_command=True)

console = Console()

DEFAULT_DEMO_CONFIG = {
    "resilience": {
        "retry": {"mode": "forever", "fixed_delay": 0.25},
        "circuit_breaker": {"name": "messaging", "exceptions_allowed_before_breaking": 5, "duration_of_break": 5.0},
    }
}


async def send_message(body: str) -> dict:
    """Pretend to hand a message to a messaging API."""
    await asyncio.sleep(0)
    return {"sid": f"SM{uuid.uuid4().hex}", "body": body, "status": "queued"}


async def run_demo(config: Config, fail_for: float | None, fail_times: int | None) -> dict:
    policy = policy_from_config(
        config,
        on_retry=log_on_retry,
        on_break=log_on_break,
        on_reset=log_on_reset,
        on_half_open=log_on_half_open,
    )
    chaos = FaultInjector(
        lambda: send_message("Coming to you live from a very chaotic world!"),
        fail_for=fail_for,
        fail_times=fail_times,
    )
    return await policy.execute(chaos)


@app.callback()
def demo(
    ctx: typer.Context,
    fail_for: float = typer.Option(10.0, "--fail-for", help="Seconds the fake client keeps failing"),
    fail_times: int | None = typer.Option(None, "--fail-times", help="Fail this many calls instead of a time window"),
    bounded: bool = typer.Option(False, "--bounded", help="Use bounded jittered retries instead of retrying forever"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="bulwark.yaml file or project directory"),
    env: str | None = typer.Option(None, help="Environment overlay (bulwark.{env}.yaml)"),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
) -> None:
    """
    Send a message through a client that fails for a while.
    """
    if ctx.invoked_subcommand is not None:
        return

    setup_logging(level=log_level)

    try:
        config = load_config(config_path, env=env) if config_path else Config(copy.deepcopy(DEFAULT_DEMO_CONFIG))
        if bounded:
            config.data.setdefault("resilience", {}).setdefault("retry", {})["mode"] = "bounded"
        message = asyncio.run(run_demo(config, None if fail_times is not None else fail_for, fail_times))
    except (BulwarkError, FileNotFoundError) as e:
        logger.error(f"Demo failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    console.print(f"[green]Message sent![/green] Sid: {message['sid']}")
