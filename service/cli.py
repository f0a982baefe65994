"""CLI interface for generating verified code."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from tqdm import tqdm

from codegen_core.schemas import Attempt, Session
from sandbox.executor import SandboxRunner

from .api import GenerateRequest, run_session
from .config import ServiceConfig, configure_logging, load_config

app = typer.Typer(help="Verified code generation CLI")


def _load(config_path: Optional[str]) -> ServiceConfig:
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.secho(f"❌ Invalid config: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="What the code should do"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to service YAML config"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Model-service API key (default: config or OPENAI_API_KEY)"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1, help="Override the attempt budget"),
    demo: bool = typer.Option(False, "--demo", help="Use the offline fake model (no API key needed)"),
    show_transcript: bool = typer.Option(False, "--show-transcript", help="Append the transcript to passing code"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Generate code, run it in the sandbox, and retry until the model approves it."""
    config = _load(config_path)
    updates: dict[str, object] = {}
    if max_attempts is not None:
        updates["max_attempts"] = max_attempts
    if show_transcript:
        updates["include_transcript"] = True
    if demo:
        updates["llm"] = config.llm.model_copy(update={"provider_type": "fake", "model_name": "fake-model"})
    config = config.model_copy(update=updates)
    configure_logging(log_level or config.log_level)

    try:
        request = GenerateRequest(api_key=api_key, prompt=prompt)
    except ValueError as e:
        typer.secho(f"❌ Invalid request: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    with tqdm(total=config.max_attempts, desc="Attempts", ncols=80, leave=False) as pbar:

        def _on_attempt(attempt: Attempt, session: Session) -> None:
            pbar.update(1)
            pbar.set_postfix_str("passed" if attempt.passed else "failed")

        try:
            session = run_session(request, config, on_attempt=_on_attempt)
        except ValueError as e:
            typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)

    attempts_used = len(session.attempts)
    if session.status == "passed":
        typer.secho(f"✅ Code verified after {attempts_used} attempt(s)", fg=typer.colors.GREEN)
    else:
        typer.secho(
            f"⚠️  No passing code after {attempts_used} attempt(s); debugging details follow",
            fg=typer.colors.YELLOW,
        )
    typer.echo(session.final_result or "")


@app.command()
def run_sandbox(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JavaScript file to execute"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to service YAML config"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Override the sandbox timeout"),
) -> None:
    """Run a JavaScript file in the sandbox and print its captured console.log output."""
    config = _load(config_path)
    configure_logging(config.log_level)
    runner = SandboxRunner(
        node_binary=config.node_binary,
        timeout_ms=timeout_ms or config.sandbox_timeout_ms,
        memory_limit_mb=config.sandbox_memory_limit_mb,
    )
    result = runner.run(file.read_text(encoding="utf-8"))
    if result.failed:
        typer.secho(f"❌ {result.failure_reason}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    typer.echo(result.log)


@app.command()
def show_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to service YAML config"),
) -> None:
    """Print the effective configuration (credentials hidden)."""
    config = _load(config_path)
    data = config.to_dict()
    llm_data = data.get("llm")
    if isinstance(llm_data, dict) and llm_data.get("api_key"):
        llm_data["api_key"] = "***"
    typer.echo(yaml.dump(data, default_flow_style=False, sort_keys=False, indent=2))


if __name__ == "__main__":
    app()
