"""
CLI Module — Typer-based command-line interface.
"""

from __future__ import annotations

import json
from typing import Optional

import typer

app = typer.Typer(
    name="companion",
    help="tg-companion — persona-driven Telegram chat assistant",
)


@app.command()
def run(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config YAML file"
    ),
) -> None:
    """Start the companion bot."""
    from companion.main import main as run_main

    run_main(config)


@app.command("check-config")
def check_config(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config YAML file"
    ),
) -> None:
    """Validate configuration file without starting the bot."""
    from companion.config import load_config

    try:
        cfg = load_config(config)
        typer.echo("✅ Configuration is valid.")
        typer.echo(f"   Telegram API ID:  {cfg.telegram.api_id}")
        typer.echo(f"   LLM providers:    {cfg.llm.providers}")
        typer.echo(f"   Cache entries:    {cfg.gate.max_cache_entries}")
        typer.echo(
            f"   Rate limit:       {cfg.gate.max_requests_per_window} per "
            f"{cfg.gate.rate_window_ms} ms"
        )
        typer.echo(f"   System prompt:    {cfg.chat.system_prompt_path}")
    except Exception as e:
        typer.echo(f"❌ Config error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def ask(
    message: list[str] = typer.Argument(help="Message(s) to send, in order"),
    chat_id: int = typer.Option(0, "--chat-id", help="Requester key for rate limiting"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config YAML file"
    ),
) -> None:
    """Send messages through the responder and gate (no Telegram needed)."""
    import asyncio
    from companion.config import load_config
    from companion.main import build_llm_client, build_responder

    async def _ask():
        cfg = load_config(config)
        llm = build_llm_client(cfg)
        try:
            responder = build_responder(cfg, llm)
            for text in message:
                typer.echo(f"📤 {text}")
                reply = await responder.reply(chat_id, text)
                typer.echo(f"📥 {reply}\n")
            responder.prompts.history_store.save()
            typer.echo(f"📊 Gate stats:\n{json.dumps(responder.gate.stats(), indent=2)}")
        finally:
            await llm.close()

    asyncio.run(_ask())


if __name__ == "__main__":
    app()
