"""
Command implementations behind the ``agentic-cli`` entry point.

Each command is an async function taking a ``CommandContext`` and the parsed
argparse namespace and returning a process exit code. Collaborators live on
the context so tests can swap them without touching the network or the
keychain.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

from agentic_cli.config import ConfigManager, ProviderConfig
from agentic_cli.context import ContextSource, FileContextManager, split_file_args
from agentic_cli.credentials import CredentialStore
from agentic_cli.errors import ConfigurationError, UnsupportedProviderError
from agentic_cli.mcp import (
    DEFAULT_SERVER_NAME,
    AgenticMCPServer,
    Role,
    RoleSettings,
    RoleToolHandler,
)
from agentic_cli.orchestrator import ToolLoopOptions, ToolLoopOrchestrator
from agentic_cli.params import build_request
from agentic_cli.provider import ProviderType
from agentic_cli.providers.base import BaseProvider
from agentic_cli.providers.factory import ProviderFactory, create_provider_factory
from agentic_cli.tools import FileSystemTool, ShellTool, ToolExecutor, ToolRegistry
from agentic_cli.types.chat import ChatMessage, ProviderRequest, ProviderResponse
from agentic_cli.types.tool import ToolExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = ProviderType.OPENAI.value

TOOL_SYSTEM_PROMPT = (
    "You are a helpful assistant working inside a local project directory. "
    "Use the available file tools to inspect or change files when the task "
    "needs it, then answer concisely."
)


@dataclass
class CommandContext:
    config: ConfigManager = field(default_factory=ConfigManager)
    credentials: CredentialStore = field(default_factory=CredentialStore)
    factory: Optional[ProviderFactory] = None
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    stderr: TextIO = field(default_factory=lambda: sys.stderr)
    prompt_secret: Callable[[str], str] = getpass.getpass

    def __post_init__(self) -> None:
        if self.factory is None:
            self.factory = create_provider_factory(self.credentials)

    def out(self, text: str = "", end: str = "\n") -> None:
        print(text, end=end, file=self.stdout, flush=True)

    def err(self, text: str) -> None:
        print(text, file=self.stderr, flush=True)


# -------------------- helpers ---------------------

async def resolve_provider(
    ctx: CommandContext,
    alias: Optional[str],
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    instance_name: Optional[str] = None,
) -> BaseProvider:
    """Look up the provider config for *alias* and return a configured provider."""
    alias = alias or ctx.config.get("default_provider") or DEFAULT_PROVIDER
    pconfig = ctx.config.get_provider_config(alias) or ProviderConfig(provider_type=alias)
    overrides: dict[str, Any] = {
        k: v
        for k, v in (("model", model), ("temperature", temperature), ("max_tokens", max_tokens))
        if v is not None
    }
    if overrides:
        pconfig = replace(pconfig, **overrides)
    if not ctx.factory.has_provider_type(pconfig.provider_type):
        raise UnsupportedProviderError(pconfig.provider_type)
    return await ctx.factory.configure_provider(pconfig.provider_type, pconfig, instance_name)


def build_tools(root: str | Path, *, shell: bool = False) -> tuple[ToolRegistry, ToolExecutor]:
    registry = ToolRegistry()
    executor = ToolExecutor(registry)
    FileSystemTool(root).register(registry, executor)
    if shell:
        ShellTool(root).register(registry, executor)
    return registry, executor


def _print_failure(ctx: CommandContext, response: ProviderResponse) -> int:
    message = response.error.message if response.error else "unknown provider error"
    ctx.err(f"Error: {message}")
    return 1


# -------------------- llm ---------------------

async def llm_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    paths, words = split_file_args(args.inputs)
    prompt = " ".join(words).strip()

    context = FileContextManager()
    for path in paths:
        context.add_source(ContextSource(path, recursive=True))
    rendered = context.render()
    if not prompt and not rendered:
        ctx.err("Error: a prompt or at least one file path is required")
        return 2

    content = prompt
    if rendered:
        content = f"{prompt}\n\n{rendered}" if prompt else rendered
        logger.info(
            f"Loaded {len(context.get_context_items())} context file(s), "
            f"~{context.get_total_tokens()} tokens"
        )

    provider = await resolve_provider(
        ctx,
        args.provider,
        model=args.model,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    messages: list[ChatMessage] = []
    if args.tools:
        messages.append({"role": "system", "content": TOOL_SYSTEM_PROMPT})
    messages.append({"role": "user", "content": content})
    request = build_request(messages, {"stream": args.stream and not args.tools})

    if args.tools:
        return await _run_tool_loop(ctx, provider, request, args)
    if args.stream:
        return await _run_stream(ctx, provider, request)

    response = await provider.chat(request)
    if response.is_error:
        return _print_failure(ctx, response)
    ctx.out(response.content)
    return 0


async def _run_stream(
    ctx: CommandContext, provider: BaseProvider, request: ProviderRequest
) -> int:
    async for chunk in provider.stream(request):
        if chunk.is_error:
            ctx.out()
            return _print_failure(ctx, chunk)
        ctx.out(chunk.content, end="")
    ctx.out()
    return 0


async def _run_tool_loop(
    ctx: CommandContext,
    provider: BaseProvider,
    request: ProviderRequest,
    args: argparse.Namespace,
) -> int:
    registry, executor = build_tools(args.root, shell=args.shell)
    validation = registry.validate_tools_for_provider(provider.provider_type)
    if not validation.valid:
        for message in validation.messages:
            ctx.err(f"Warning: {message}")

    def on_tool_execution(name: str, tool_args: dict[str, Any]) -> None:
        ctx.err(f"-> {name}({json.dumps(tool_args)[:200]})")

    def on_tool_result(name: str, result: ToolExecutionResult) -> None:
        if not result.success and result.error:
            ctx.err(f"<- {name} failed: {result.error.message}")

    options = ToolLoopOptions(
        max_iterations=args.max_iterations,
        throw_on_max_iterations=not args.no_throw,
        include_trace_info=args.trace,
        verbose=args.verbose > 0,
        on_tool_execution=on_tool_execution,
        on_tool_result=on_tool_result,
    )
    orchestrator = ToolLoopOrchestrator(executor)
    response = await orchestrator.orchestrate(
        provider, request.copy(tools=registry.get_all_tools()), options
    )
    if response.is_error:
        return _print_failure(ctx, response)

    ctx.out(response.content)
    if response.max_iterations_reached:
        ctx.err(f"Warning: stopped after {args.max_iterations} iterations with tool calls pending")
    if response.trace_info is not None:
        ctx.err(json.dumps(response.trace_info, indent=2, default=str))
    return 0


# -------------------- writer ---------------------

def build_writer_prompt(
    task: str,
    *,
    context: Optional[str] = None,
    output: Optional[str] = None,
    tone: Optional[str] = None,
    validation: Optional[str] = None,
) -> str:
    """Build the XML-tagged prompt used by the writer command."""
    parts = [
        "<role>Writer</role>",
        f"<context>{context}</context>" if context else "",
        f"<task>{task}</task>",
        f"<output>{output}</output>" if output else "",
        f"<tone>{tone}</tone>" if tone else "",
        f"<validation>{validation}</validation>" if validation else "",
    ]
    return "\n".join(part for part in parts if part)


async def writer_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    task = " ".join(args.prompt).strip()
    if not task:
        ctx.err("Error: a prompt is required")
        return 2
    prompt = build_writer_prompt(
        task,
        context=args.context,
        output=args.output,
        tone=args.tone,
        validation=args.validation,
    )
    provider = await resolve_provider(ctx, args.provider, model=args.model)
    response = await provider.chat(build_request([{"role": "user", "content": prompt}]))
    if response.is_error:
        return _print_failure(ctx, response)
    ctx.out(response.content)
    return 0


# -------------------- tools ---------------------

async def tools_list_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    registry, _ = build_tools(args.root, shell=args.shell)
    for tool in registry.get_all_tools():
        marker = " (read-only)" if tool.side_effect_free else ""
        ctx.out(f"{tool.name}{marker}: {tool.description}")

    if not args.provider:
        return 0
    result = registry.validate_tools_for_provider(args.provider)
    if result.valid:
        ctx.out(f"\nAll {len(registry)} tools are valid for {args.provider}")
        return 0
    ctx.out(f"\n{len(result.invalid_tools)} tool(s) invalid for {args.provider}:")
    for message in result.messages:
        ctx.out(f"  {message}")
    return 1


# -------------------- credentials ---------------------

def _provider_name(value: str) -> str:
    try:
        return ProviderType(value.lower()).value
    except ValueError:
        raise UnsupportedProviderError(value) from None


async def credentials_set_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    provider = _provider_name(args.provider)
    secret = ctx.prompt_secret(f"API key for {provider} ({args.account}): ").strip()
    if not secret:
        raise ConfigurationError("No API key entered")
    ctx.credentials.set_secret(provider, secret, args.account)
    ctx.out(f"Stored API key for {provider} ({args.account})")
    return 0


async def credentials_delete_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    provider = _provider_name(args.provider)
    if ctx.credentials.delete_secret(provider, args.account):
        ctx.out(f"Deleted API key for {provider} ({args.account})")
        return 0
    ctx.err(f"No stored API key for {provider} ({args.account})")
    return 1


# -------------------- config ---------------------

async def config_show_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    config = ctx.config.load()
    ctx.out(f"# {ctx.config.path}")
    ctx.out(json.dumps(config.to_dict(), indent=2))
    return 0


async def config_set_default_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    alias = args.provider
    if alias not in ctx.config.load().providers:
        _provider_name(alias)
    ctx.config.set("default_provider", alias)
    ctx.out(f"Default provider set to {alias}")
    return 0


# -------------------- mcp ---------------------

def build_mcp_server(ctx: CommandContext, args: argparse.Namespace) -> AgenticMCPServer:
    """Assemble the MCP server from the command line and the ``mcp`` config section."""
    app_config = ctx.config.load()
    defaults = app_config.mcp
    registry, executor = build_tools(args.root, shell=args.shell)

    roles = None
    if not args.no_roles:

        async def provider_for(role: Role, settings: RoleSettings) -> BaseProvider:
            return await resolve_provider(
                ctx,
                settings.provider or args.provider,
                model=settings.model,
                instance_name=f"role-{role.value}",
            )

        roles = RoleToolHandler(
            provider_for,
            root=args.root,
            role_overrides=app_config.roles,
            shell=args.shell,
            max_iterations=args.max_iterations,
        )

    prefix = args.tool_prefix if args.tool_prefix is not None else defaults.get("tool_prefix", "")
    options: dict[str, Any] = {
        "roles": roles,
        "name": args.name or defaults.get("name") or DEFAULT_SERVER_NAME,
        "instructions": args.instructions or defaults.get("instructions"),
        "tool_prefix": prefix,
    }
    version = args.server_version or defaults.get("version")
    if version:
        options["version"] = version
    return AgenticMCPServer(registry, executor, **options)


async def mcp_serve_command(ctx: CommandContext, args: argparse.Namespace) -> int:
    # stdout carries the protocol; nothing else may be printed there
    server = build_mcp_server(ctx, args)
    logger.info(f"Starting MCP server '{server.name}' for {Path(args.root).resolve()}")
    await server.serve_stdio()
    return 0
