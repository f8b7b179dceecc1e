import asyncio
import json
import os
from typing import Optional

import typer

from dispatch_agent.config import load_dotenv


app = typer.Typer(help="Drone dispatch assistant CLI")


def _apply_overrides(
    model: Optional[str],
    base_url: Optional[str],
    backend_url: Optional[str],
    progress: bool,
) -> None:
    # Load .env before building the agent (settings are read from the environment)
    load_dotenv()
    if model:
        os.environ["MODEL_NAME"] = model
    if base_url:
        os.environ["ANTHROPIC_API_BASE"] = base_url
    if backend_url:
        os.environ["ILP_BACKEND_URL"] = backend_url
    os.environ["AGENT_PROGRESS"] = "1" if progress else "0"


_MODEL_OPT = typer.Option(None, "--model", "-m", help="Override model name")
_BASE_URL_OPT = typer.Option(None, "--base-url", help="Override the Messages API base URL")
_BACKEND_OPT = typer.Option(None, "--backend-url", help="Override the drone backend URL (default: http://localhost:8080)")
_PROGRESS_OPT = typer.Option(True, "--progress/--no-progress", help="Print model/tool progress")


@app.command()
def ask(
    message: str = typer.Argument(..., help="User message for a single turn"),
    model: Optional[str] = _MODEL_OPT,
    base_url: Optional[str] = _BASE_URL_OPT,
    backend_url: Optional[str] = _BACKEND_OPT,
    progress: bool = _PROGRESS_OPT,
):
    """Run one turn of the tool-calling loop and print the result as JSON."""
    _apply_overrides(model, base_url, backend_url, progress)
    try:
        from dispatch_agent.factory import build_agent  # noqa: WPS433 (runtime import after env overrides)
        agent = build_agent()
        result = asyncio.run(agent.run_turn([{"role": "user", "content": message}]))
        payload = {
            "content": result.content,
            "toolCalls": [t.model_dump(by_alias=True) for t in result.tool_calls],
            "converged": result.converged,
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    except Exception as exc:
        typer.echo(
            json.dumps({"error": str(exc), "type": exc.__class__.__name__}, indent=2),
            err=True,
        )
        raise typer.Exit(code=1)


@app.command()
def chat(
    model: Optional[str] = _MODEL_OPT,
    base_url: Optional[str] = _BASE_URL_OPT,
    backend_url: Optional[str] = _BACKEND_OPT,
    progress: bool = _PROGRESS_OPT,
):
    """Interactive session; type 'confirm' after a plan to schedule it."""
    _apply_overrides(model, base_url, backend_url, progress)
    from dispatch_agent.agent.session import ChatSession  # noqa: WPS433
    from dispatch_agent.factory import build_agent  # noqa: WPS433
    from dispatch_agent.store import DeliveryStore  # noqa: WPS433

    session = ChatSession(build_agent(), DeliveryStore())
    typer.echo(session.transcript[0]["content"])
    while True:
        try:
            text = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            typer.echo("")
            break
        if not text:
            continue
        if text in ("exit", "quit"):
            break
        try:
            reply = asyncio.run(session.send(text))
        except Exception as exc:
            typer.echo(json.dumps({"error": str(exc), "type": exc.__class__.__name__}), err=True)
            continue
        typer.echo(reply.content)
        for delivery in reply.deliveries:
            typer.echo(json.dumps(delivery.model_dump(by_alias=True, exclude={"path"}), ensure_ascii=False))


if __name__ == "__main__":
    app()
