"""``agentic-cli`` command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from agentic_cli import __version__
from agentic_cli import commands
from agentic_cli.errors import AgenticCLIError

_PROVIDERS = "openai, anthropic, google, grok or a configured alias"


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentic-cli",
        description="Agentic command line tool for OpenAI, Anthropic, Gemini and Grok.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # llm
    llm = sub.add_parser("llm", help="Send a prompt (plus optional files) to a model")
    llm.add_argument("inputs", nargs="+", help="Prompt words and/or file or directory paths")
    llm.add_argument("-p", "--provider", help=_PROVIDERS)
    llm.add_argument("-m", "--model", help="Model identifier")
    llm.add_argument("--tools", action="store_true", help="Let the model use file tools")
    llm.add_argument("--root", default=".", help="Directory the file tools may access")
    llm.add_argument("--shell", action="store_true", help="Also allow read-only shell commands")
    llm.add_argument("--max-iterations", type=_positive_int, default=10)
    llm.add_argument(
        "--no-throw",
        action="store_true",
        help="Return the last response instead of failing when the iteration cap is hit",
    )
    llm.add_argument("--trace", action="store_true", help="Print tool loop trace to stderr")
    llm.add_argument("--stream", action="store_true", help="Stream the answer (no tools)")
    llm.add_argument("--temperature", type=float)
    llm.add_argument("--max-tokens", type=int)
    llm.set_defaults(handler=commands.llm_command)

    # writer
    writer = sub.add_parser("writer", help="Generate text from a structured writer prompt")
    writer.add_argument("prompt", nargs="+", help="What to write")
    writer.add_argument("--context", help="Background the writer should know")
    writer.add_argument("--output", help="Expected output format")
    writer.add_argument("--tone", help="Tone of voice")
    writer.add_argument("--validation", help="Criteria the result must satisfy")
    writer.add_argument("-p", "--provider", help=_PROVIDERS)
    writer.add_argument("-m", "--model", help="Model identifier")
    writer.set_defaults(handler=commands.writer_command)

    # tools
    tools = sub.add_parser("tools", help="Inspect the built-in tools")
    tools_sub = tools.add_subparsers(dest="tools_command", required=True)
    tools_list = tools_sub.add_parser("list", help="List tools and validate them")
    tools_list.add_argument("--provider", help="Validate the tools for this provider type")
    tools_list.add_argument("--root", default=".")
    tools_list.add_argument("--shell", action="store_true", help="Include the shell tool")
    tools_list.set_defaults(handler=commands.tools_list_command)

    # credentials
    creds = sub.add_parser("credentials", help="Manage API keys in the OS keychain")
    creds_sub = creds.add_subparsers(dest="credentials_command", required=True)
    for action, handler in (
        ("set", commands.credentials_set_command),
        ("delete", commands.credentials_delete_command),
    ):
        p = creds_sub.add_parser(action, help=f"{action.capitalize()} an API key")
        p.add_argument("provider", help="openai, anthropic, google or grok")
        p.add_argument("--account", default="default", help="Provider instance name")
        p.set_defaults(handler=handler)

    # config
    config = sub.add_parser("config", help="Show or change the configuration")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Print the configuration").set_defaults(
        handler=commands.config_show_command
    )
    set_default = config_sub.add_parser("set-default", help="Set the default provider")
    set_default.add_argument("provider")
    set_default.set_defaults(handler=commands.config_set_default_command)

    # mcp
    mcp = sub.add_parser("mcp", help="Model Context Protocol server")
    mcp_sub = mcp.add_subparsers(dest="mcp_command", required=True)
    serve = mcp_sub.add_parser("serve", help="Serve the tools and role tools over stdio")
    serve.add_argument("--root", default=".", help="Directory the tools may access")
    serve.add_argument("--name", help="Server name reported to clients")
    serve.add_argument("--server-version", help="Server version reported to clients")
    serve.add_argument("--instructions", help="Instructions sent to clients on connect")
    serve.add_argument("--tool-prefix", help="Prefix for every published tool name")
    serve.add_argument("-p", "--provider", help=f"Provider for role tools: {_PROVIDERS}")
    serve.add_argument("--shell", action="store_true", help="Also publish the shell tool")
    serve.add_argument("--no-roles", action="store_true", help="Do not publish role tools")
    serve.add_argument("--max-iterations", type=_positive_int, default=10)
    serve.set_defaults(handler=commands.mcp_serve_command)

    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


async def run(
    argv: Optional[Sequence[str]] = None,
    ctx: Optional[commands.CommandContext] = None,
) -> int:
    args = build_parser().parse_args(argv)
    ctx = ctx or commands.CommandContext()
    try:
        return await args.handler(ctx, args)
    except AgenticCLIError as exc:
        ctx.err(f"Error: {exc}")
        return 1
    finally:
        await ctx.factory.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        return asyncio.run(run(argv))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
