"""Command line interface for the coding copilot."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable

import click

from . import git_tools
from .agent import AgentLoop, CopilotSession, ResultStream
from .agent.context import (
    CODEBASE_DEFAULT_PROMPT,
    ContextRequestError,
    is_context_request,
    parse_context_request,
    shell_command,
)
from .changes.tracker import RollbackError
from .providers.llm import LLMError, create_adapter
from .session import ChatClient
from .utils.config import ConfigError, Settings, load_settings
from .utils.logger import configure_logging, get_logger

LOGGER = get_logger(__name__)

CHAT_HELP = """Commands:
  /help         Show this help
  /reset        Clear the conversation
  /models       List available models
  /model NAME   Switch to another model
  exit, quit    Leave the chat
"""

CODE_HELP = """Shortcuts:
  @file PATH [question]              Add a file to the conversation
  @folder [depth=N] DIR [question]   Add a folder listing
  @codebase [depth=N] [question]     Add the project layout and ask about it
  @git diff|status [question]        Add git output
  /!COMMAND                          Run a shell command in the workspace
  /help                              Show this help
  exit, quit                         Leave code mode
"""

_HANDLED_ERRORS = (LLMError, ConfigError, git_tools.GitIntegrationError, RollbackError)


def _build_context(settings: Settings) -> Dict[str, Any]:
    return {"settings": settings, "session": None, "chat": None}


def _get_session(ctx: click.Context) -> CopilotSession:
    session = ctx.obj.get("session")
    if session is not None:
        return session
    settings: Settings = ctx.obj["settings"]
    try:
        settings.active_provider()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    session = CopilotSession(settings, adapter=create_adapter(timeout=settings.request_timeout))
    ctx.obj["session"] = session
    ctx.call_on_close(session.close)
    return session


def _get_chat(ctx: click.Context) -> ChatClient:
    chat = ctx.obj.get("chat")
    if chat is None:
        settings: Settings = ctx.obj["settings"]
        chat = ChatClient(settings, create_adapter(timeout=settings.request_timeout))
        ctx.obj["chat"] = chat
    return chat


def _echo_stream(stream: ResultStream) -> None:
    try:
        for event in stream:
            if event.kind == "error":
                click.echo(click.style(f"\nError: {event.text}", fg="red"), err=True)
            elif event.kind == "cancelled":
                click.echo(click.style("\n[cancelled]", fg="yellow"))
            elif event.kind == "tool_result":
                click.echo(click.style(event.text, fg="cyan"), nl=False)
            else:
                click.echo(event.text, nl=False)
    except KeyboardInterrupt:
        stream.cancel()
        _echo_stream(stream)
    click.echo()


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config file.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--workspace",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    help="Project directory to work in (defaults to the current directory).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool, workspace: Path | None) -> None:
    """AI coding copilot: chat, code with confirmation, or run an agent toward a goal."""
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if verbose:
        settings.log_level = "DEBUG"
    if workspace is not None:
        settings.workspace_root = workspace.resolve()
    configure_logging(settings.log_level, structured=settings.structured_logging, log_file=settings.log_file)
    ctx.obj = _build_context(settings)


# --------------------------------------------------------------------------------------
# Chat
# --------------------------------------------------------------------------------------


def _chat_once(chat: ChatClient, message: str) -> None:
    try:
        chat.ask(message, on_chunk=lambda fragment: click.echo(fragment, nl=False))
    except (LLMError, ConfigError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo()


def _chat_command(chat: ChatClient, line: str) -> bool:
    """Handle a slash command; returns False for unknown commands."""
    command, _, argument = line.partition(" ")
    if command == "/help":
        click.echo(CHAT_HELP)
    elif command == "/reset":
        chat.reset()
        click.echo("Conversation cleared.")
    elif command == "/models":
        try:
            for name in chat.list_models():
                click.echo(f"  {name}")
        except (LLMError, ConfigError) as exc:
            click.echo(f"Error: {exc}", err=True)
    elif command == "/model" and argument.strip():
        chat.switch_model(argument.strip())
        click.echo(f"Using model {chat.model}")
    else:
        return False
    return True


@cli.command()
@click.argument("message", nargs=-1)
@click.pass_context
def chat(ctx: click.Context, message: tuple[str, ...]) -> None:
    """Chat with the model; starts an interactive session when MESSAGE is omitted."""
    client = _get_chat(ctx)
    if message:
        _chat_once(client, " ".join(message))
        return

    click.echo("Interactive chat. Type /help for commands, 'exit' to leave.")
    while True:
        try:
            line = click.prompt("You", prompt_suffix="> ").strip()
        except click.Abort:
            break
        if line.lower() in {"exit", "quit"}:
            break
        if not line:
            continue
        if line.startswith("/"):
            if not _chat_command(client, line):
                click.echo("Unknown command. Type /help for the list.")
            continue
        try:
            _chat_once(client, line)
        except click.ClickException as exc:
            click.echo(f"Error: {exc.message}", err=True)


# --------------------------------------------------------------------------------------
# Copilot prompts
# --------------------------------------------------------------------------------------


def _run_copilot_prompt(session: CopilotSession, prompt: str) -> None:
    _echo_stream(session.process_prompt(prompt))
    changes = session.pending_changes()
    if not changes:
        return
    click.echo("Pending changes:")
    for change in changes:
        click.echo(f"  {change.status:<9} {change.file_path}")
    answer = click.prompt(
        "Apply these changes? (yes/no)",
        type=click.Choice(["yes", "y", "no", "n"], case_sensitive=False),
        show_choices=False,
    )
    try:
        confirmation = session.handle_confirmation(answer)
    except _HANDLED_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc
    if confirmation.status == "accepted":
        click.echo("Changes committed.")
    else:
        click.echo("Changes rolled back.")


def _handle_code_input(session: CopilotSession, text: str) -> None:
    if text == "/help":
        click.echo(CODE_HELP, nl=False)
        return
    command = shell_command(text)
    if command is not None:
        if not command:
            click.echo("No command specified after /!", err=True)
            return
        click.echo(f"Running command: {command}")
        click.echo(session.run_shell(command))
        return

    if is_context_request(text):
        try:
            request = parse_context_request(text, session.workspace)
            session.add_context(request)
        except ContextRequestError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Added {request.type} context to the conversation: {request.describe()}")
        text = request.question
        if not text and request.type == "codebase":
            text = CODEBASE_DEFAULT_PROMPT
        if not text:
            return

    _run_copilot_prompt(session, text)


def _prompts(first: Iterable[str]) -> Iterable[str]:
    initial = " ".join(first).strip()
    if initial:
        yield initial
        return
    while True:
        try:
            line = click.prompt("Prompt", prompt_suffix="> ").strip()
        except click.Abort:
            return
        if line.lower() in {"exit", "quit"}:
            return
        if line:
            yield line


@cli.command()
@click.argument("prompt", nargs=-1)
@click.pass_context
def code(ctx: click.Context, prompt: tuple[str, ...]) -> None:
    """Run a copilot prompt through the analysis/context/modification/verification phases.

    Interactive lines may also use the @ context shortcuts or /!COMMAND; /help lists them.
    """
    session = _get_session(ctx)
    for text in _prompts(prompt):
        try:
            _handle_code_input(session, text)
        except click.ClickException as exc:
            if prompt:
                raise
            click.echo(f"Error: {exc.message}", err=True)


@cli.command()
@click.argument("goal", nargs=-1, required=True)
@click.option("--max-iterations", type=int, default=None, help="Stop after this many tasks.")
@click.pass_context
def agent(ctx: click.Context, goal: tuple[str, ...], max_iterations: int | None) -> None:
    """Work toward GOAL task by task, asking for confirmation after each one."""
    session = _get_session(ctx)
    loop = AgentLoop(
        session,
        read_command=lambda label: click.prompt(label, default="", show_default=False, prompt_suffix=""),
        echo=lambda text: click.echo(text, nl=False),
        max_iterations=max_iterations,
    )
    try:
        state = loop.run(" ".join(goal))
    except click.Abort:
        click.echo("\nAgent mode interrupted.")
        return
    except _HANDLED_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"\nAgent finished: {len(state.completed_tasks)} task(s) completed.")


# --------------------------------------------------------------------------------------
# Models / config
# --------------------------------------------------------------------------------------


@cli.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List the models the configured provider offers."""
    client = _get_chat(ctx)
    try:
        names = client.list_models()
    except (LLMError, ConfigError) as exc:
        raise click.ClickException(str(exc)) from exc
    if not names:
        click.echo("No models reported.")
        return
    for name in names:
        marker = "*" if name == client.model else " "
        click.echo(f"{marker} {name}")


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective configuration."""
    settings: Settings = ctx.obj["settings"]
    try:
        provider = settings.active_provider()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"provider:      {provider.name} ({provider.type})")
    click.echo(f"base_url:      {provider.base_url}")
    click.echo(f"api_key:       {'set' if provider.api_key else 'not set'}")
    click.echo(f"model:         {settings.model}")
    click.echo(f"temperature:   {settings.temperature}")
    click.echo(f"max_tokens:    {settings.max_tokens}")
    click.echo(f"workspace:     {settings.workspace_root}")
    click.echo(f"backups:       {settings.backup_root()}")


def main() -> None:
    cli(prog_name="aicopilot")


if __name__ == "__main__":  # pragma: no cover
    main()
