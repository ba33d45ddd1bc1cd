"""
Main CLI entry point for cvwriter.

Provides the command-line interface using Click. Every command works on
conversations kept in the configured data directory, so an interview can be
continued across invocations with `cvwriter send ID ...`.
"""

import asyncio as _asyncio
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.markdown as _rich_markdown
import rich.table as _rich_table
import yaml as _yaml

import cvwriter
import cvwriter.config as config
import cvwriter.config.sources as config_sources
import cvwriter.core.driver as driver
import cvwriter.errors as errors
import cvwriter.storage as storage

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

EXIT_WORDS = frozenset({"exit", "quit", "/exit", "/quit"})

_console = _rich_console.Console(highlight=False)


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _fail(message: str, *, json_output: bool = False) -> _typing.NoReturn:
    """Report an error and exit with status 1."""
    if json_output:
        _click.echo(_json.dumps({"error": message}, indent=2))
    else:
        _click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


def _create_service(settings: config.Settings) -> driver.InterviewService:
    """Build the interview service for CLI commands."""
    return driver.InterviewService.from_settings(settings)


def _get_service(ctx: _click.Context) -> driver.InterviewService:
    service: driver.InterviewService | None = ctx.obj.get("service")
    if service is None:
        service = _create_service(ctx.obj["settings"])
        ctx.obj["service"] = service
        ctx.call_on_close(service.close)
    return service


def _print_markdown(text: str) -> None:
    _console.print(_rich_markdown.Markdown(text))


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(cvwriter.__version__, "-v", "--version", prog_name="cvwriter")
@_click.option(
    "--model",
    type=str,
    default=None,
    help="Model to use instead of the configured one",
)
@_click.option(
    "--api-key",
    type=str,
    default=None,
    envvar="CVWRITER_API_KEY",
    help="Credential to use instead of the configured one",
)
@_click.option(
    "--max-output-size",
    type=_click.IntRange(min=1),
    default=None,
    help="Maximum tokens per completion",
)
@_click.option(
    "--spend-ceiling",
    type=_click.IntRange(min=0),
    default=None,
    help="Tokens a conversation may spend before calls are refused",
)
@_click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    model: str | None,
    api_key: str | None,
    max_output_size: int | None,
    spend_ceiling: int | None,
    verbose: bool,
) -> None:
    """
    cvwriter - AI resume interviewer.

    \b
    Examples:
        cvwriter new                          # Start a conversation, print its id
        cvwriter send abc123 "I'm a nurse"    # Send one message
        cvwriter chat                         # Interactive interview
        cvwriter show abc123                  # Collected answers and resume
        cvwriter export abc123 -o cv.pdf      # Save the rendered resume
        cvwriter config                       # Show configuration
    """
    try:
        settings = config.Settings()
    except config_sources.ConfigFileError as e:
        _fail(str(e))

    level = "DEBUG" if verbose else settings.logging.level
    _logging.basicConfig(
        level=getattr(_logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["overrides"] = driver.TurnOverrides(
        credential=api_key,
        model=model,
        max_output_size=max_output_size,
        spend_ceiling=spend_ceiling,
    )


@cli.command()
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def new(ctx: _click.Context, json_output: bool) -> None:
    """Start a new conversation and print its id."""
    service = _get_service(ctx)
    try:
        conversation_id = service.create_conversation()
    except errors.CvWriterError as e:
        _fail(str(e), json_output=json_output)

    if json_output:
        _click.echo(_json.dumps({"id": conversation_id}, indent=2))
    else:
        _click.echo(conversation_id)


@cli.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def list_cmd(ctx: _click.Context, json_output: bool) -> None:
    """List stored conversations."""
    settings: config.Settings = ctx.obj["settings"]
    store = storage.JsonConversationStore(settings.storage.conversations_dir)
    summaries = store.list_summaries()

    if json_output:
        _click.echo(_json.dumps(summaries, indent=2))
        return

    if not summaries:
        _click.echo("No conversations found.")
        return

    table = _rich_table.Table("ID", "Stage", "Profession", "Answered", "Tokens")
    for s in summaries:
        table.add_row(
            s["id"],
            s["need"],
            s["profession"] or "-",
            f"{s['answered']}/{s['questions']}",
            str(s["tokens_spent"]),
        )
    _console.print(table)


async def _send(
    service: driver.InterviewService,
    conversation_id: str,
    text: str,
    overrides: driver.TurnOverrides,
) -> driver.TurnReply:
    return await service.handle_message(
        driver.TurnInput(conversation_id=conversation_id, text=text, overrides=overrides)
    )


def _show_reply(
    service: driver.InterviewService,
    reply: driver.TurnReply,
) -> None:
    """Print a reply; a freshly generated resume is shown in full."""
    if reply.generated:
        conv = service.get_conversation(reply.conversation_id)
        if conv.resume:
            _print_markdown(conv.resume)
        _click.echo(
            f"\nResume rendered. Save it with: cvwriter export {reply.conversation_id} -o FILE"
        )
    _click.echo(reply.text)


@cli.command()
@_click.argument("conversation_id")
@_click.argument("text", nargs=-1, required=True)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def send(
    ctx: _click.Context,
    conversation_id: str,
    text: tuple[str, ...],
    json_output: bool,
) -> None:
    """Send one message to a conversation and print the reply."""
    service = _get_service(ctx)
    message = " ".join(text)
    try:
        reply = _run_async(_send(service, conversation_id, message, ctx.obj["overrides"]))
    except errors.CvWriterError as e:
        _fail(str(e), json_output=json_output)

    if json_output:
        _click.echo(reply.model_dump_json(indent=2))
    else:
        _show_reply(service, reply)


async def _chat_loop(
    service: driver.InterviewService,
    conversation_id: str,
    overrides: driver.TurnOverrides,
) -> None:
    while True:
        try:
            text = _click.prompt("you", prompt_suffix="> ")
        except _click.Abort:
            _click.echo()
            return
        if text.strip().lower() in EXIT_WORDS:
            return
        if not text.strip():
            continue

        try:
            reply = await _send(service, conversation_id, text, overrides)
        except errors.ConversationNotFoundError:
            raise
        except errors.CvWriterError as e:
            # A failed turn leaves the conversation usable; let the user retry
            _click.echo(f"Error: {e}", err=True)
            continue
        _show_reply(service, reply)


@cli.command()
@_click.argument("conversation_id", required=False)
@_click.pass_context
def chat(ctx: _click.Context, conversation_id: str | None) -> None:
    """Interactive interview. Starts a new conversation unless ID is given.

    Type "reset" to start over, "resume" to see a finished resume, and
    "exit" to leave.
    """
    service = _get_service(ctx)
    try:
        if conversation_id is None:
            conversation_id = service.create_conversation()
            _click.echo(f"Conversation: {conversation_id}")
        else:
            service.get_conversation(conversation_id)
        _run_async(_chat_loop(service, conversation_id, ctx.obj["overrides"]))
    except errors.CvWriterError as e:
        _fail(str(e))


@cli.command()
@_click.argument("conversation_id")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def show(ctx: _click.Context, conversation_id: str, json_output: bool) -> None:
    """Show what a conversation has collected so far."""
    service = _get_service(ctx)
    try:
        conv = service.get_conversation(conversation_id)
    except errors.CvWriterError as e:
        _fail(str(e), json_output=json_output)

    if json_output:
        _click.echo(_json.dumps(conv.to_dict(), indent=2, ensure_ascii=False))
        return

    _click.echo(f"Conversation: {conv.id}")
    _click.echo(f"  Stage: {conv.need.value}")
    _click.echo(f"  Profession: {conv.profession or '-'}")
    _click.echo(f"  Messages: {len(conv.transcript)}")
    _click.echo(f"  Tokens spent: {conv.tokens_spent}")

    if conv.questions:
        table = _rich_table.Table("#", "Question", "Answer")
        for q in conv.questions:
            table.add_row(str(q.index), q.text, q.answer or "")
        _console.print(table)

    if conv.resume:
        _click.echo()
        _print_markdown(conv.resume)


@cli.command()
@_click.argument("conversation_id")
@_click.option(
    "-o",
    "--output",
    type=_click.Path(dir_okay=False, writable=True, path_type=_pathlib.Path),
    required=True,
    help="File to write the rendered resume to",
)
@_click.pass_context
def export(ctx: _click.Context, conversation_id: str, output: _pathlib.Path) -> None:
    """Write the rendered resume of a conversation to a file."""
    service = _get_service(ctx)
    try:
        data = service.load_artifact(conversation_id)
    except errors.CvWriterError as e:
        _fail(str(e))

    try:
        output.write_bytes(data)
    except OSError as e:
        _fail(f"Cannot write {output}: {e}")
    _click.echo(f"Wrote {len(data)} bytes to {output}")


@cli.command(name="config")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--show-prompts", is_flag=True, help="Include the stage prompts")
@_click.pass_context
def config_cmd(ctx: _click.Context, as_json: bool, show_prompts: bool) -> None:
    """Show effective configuration from all sources."""
    settings: config.Settings = ctx.obj["settings"]
    data = settings.model_dump(mode="json")
    if data.get("model", {}).get("api_key"):
        data["model"]["api_key"] = "***"
    if not show_prompts:
        data.pop("prompts", None)

    if as_json:
        _click.echo(_json.dumps(data, indent=2))
    else:
        _click.echo(_yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip())

    unknown = settings.collect_unknown_keys()
    for key in sorted(unknown):
        _click.echo(f"Warning: unknown config key '{key}'", err=True)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="cvwriter")


if __name__ == "__main__":
    main()
