"""
Role-based tools: each role is a tool whose call runs a full tool loop.

A role call builds an XML-tagged system prompt for the role, lets the model
work with the file tools confined to ``base_path``, and then carries out any
``<file_operation>`` blocks left in the final answer.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, replace
from enum import StrEnum
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from agentic_cli.errors import AgenticCLIError
from agentic_cli.orchestrator import ChatProvider, ToolLoopOptions, ToolLoopOrchestrator
from agentic_cli.params import build_request
from agentic_cli.tools import FileSystemTool, ShellTool, ToolExecutor, ToolRegistry
from agentic_cli.types.tool import Tool

__all__ = [
    "Role",
    "RoleSettings",
    "RoleToolError",
    "RoleToolHandler",
    "role_settings",
    "role_tool_definitions",
    "build_role_prompt",
    "process_file_operations",
]


class Role(StrEnum):
    CODER = "coder"
    QA = "qa"
    PROJECT_MANAGER = "project_manager"
    CPO = "cpo"
    UI_UX = "ui_ux"
    SUMMARIZER = "summarizer"
    REWRITER = "rewriter"
    ANALYST = "analyst"
    CUSTOM = "custom"


class RoleToolError(AgenticCLIError):
    """A role call could not produce an answer."""


@dataclass(frozen=True, slots=True)
class RoleSettings:
    """Which model a role talks to. ``provider=None`` means the server default."""
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 4000


_DEFAULT_SETTINGS: dict[Role, RoleSettings] = {
    Role.CODER: RoleSettings(temperature=0.1),
    Role.UI_UX: RoleSettings(temperature=0.4),
    Role.ANALYST: RoleSettings(temperature=0.3, max_tokens=6000),
    Role.REWRITER: RoleSettings(temperature=0.7, max_tokens=8000),
}


def role_settings(
    role: Role, overrides: Optional[Mapping[str, Mapping[str, Any]]] = None
) -> RoleSettings:
    """Defaults for *role*, updated from the ``roles`` section of the config."""
    settings = _DEFAULT_SETTINGS.get(role, RoleSettings())
    override = (overrides or {}).get(role.value) or {}
    known = {k: v for k, v in override.items() if k in RoleSettings.__slots__}
    return replace(settings, **known) if known else settings


# -------------------- tool definitions ---------------------

def _enum(values: Sequence[str], description: str) -> dict[str, Any]:
    return {"type": "string", "enum": list(values), "description": description}


def _text(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def _flag(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


_BASE_PROPERTIES: dict[str, Any] = {
    "prompt": _text("The task or question"),
    "base_path": _text("Directory for all file operations; defaults to the server root"),
    "context": _text("Additional background information"),
    "related_files": {
        "type": "array",
        "items": {"type": "string"},
        "description": "Files to include in the prompt, relative to base_path",
    },
    "allow_file_overwrite": _flag("Let the role overwrite existing files"),
}

_ROLE_TOOLS: dict[Role, tuple[str, dict[str, Any]]] = {
    Role.CODER: (
        "Expert software developer that can generate, analyze, or refactor code",
        {
            "language": _text("Programming language to use"),
            "architecture": _text("Preferred architecture or design pattern"),
            "tests": _flag("Whether to include tests"),
        },
    ),
    Role.QA: (
        "Quality assurance expert that can create tests and validation procedures",
        {
            "test_type": _enum(["unit", "integration", "e2e", "manual", "all"], "Type of tests"),
            "framework": _text("Testing framework to use"),
        },
    ),
    Role.PROJECT_MANAGER: (
        "Project management expert that can create plans, timelines, and task breakdowns",
        {
            "timeline": _text("Timeline constraints"),
            "resources": _text("Available people or budget"),
            "methodology": _enum(
                ["agile", "waterfall", "kanban", "scrum", "other"], "Project methodology"
            ),
        },
    ),
    Role.CPO: (
        "Chief Product Officer that can create product strategies, roadmaps, and feature prioritization",
        {
            "market": _text("Target market or users"),
            "competitors": _text("Key competitors"),
            "metrics": _text("Success metrics or KPIs"),
        },
    ),
    Role.UI_UX: (
        "User interface and experience designer that can create wireframes, flows, and design recommendations",
        {
            "platform": _text("Target platform such as web or mobile"),
            "brand_guidelines": _text("Brand guidelines or design system"),
            "accessibility": _enum(["AA", "AAA", "none"], "Accessibility level"),
        },
    ),
    Role.SUMMARIZER: (
        "Content summarizer that can create concise, accurate summaries of documents or information",
        {
            "length": _enum(["short", "medium", "long"], "Desired summary length"),
            "focus": _text("Aspects to focus on"),
            "format": _enum(["bullets", "paragraphs", "outline"], "Output format"),
        },
    ),
    Role.REWRITER: (
        "Content rewriter that can improve or adapt text for different purposes, audiences, or styles",
        {
            "style": _text("Target writing style"),
            "tone": _text("Desired tone"),
            "audience": _text("Target audience"),
        },
    ),
    Role.ANALYST: (
        "Data analyst that can analyze information, identify patterns, and generate insights",
        {
            "data_type": _text("Kind of data being analyzed"),
            "analysis_focus": _text("Aspects to analyze"),
            "visualization": _flag("Whether to suggest visualizations"),
        },
    ),
    Role.CUSTOM: (
        "Custom role based on the provided description",
        {
            "role": _text("The role to assume, described in a sentence"),
            "parameters": {"type": "object", "description": "Additional role-specific parameters"},
        },
    ),
}


def role_tool_definitions() -> list[Tool]:
    tools = []
    for role, (description, extra) in _ROLE_TOOLS.items():
        required = ["prompt", "role"] if role is Role.CUSTOM else ["prompt"]
        tools.append(
            Tool(
                role.value,
                description,
                {"type": "object", "properties": {**_BASE_PROPERTIES, **extra}, "required": required},
            )
        )
    return tools


# -------------------- prompt ---------------------

_DESCRIPTIONS: dict[Role, str] = {
    Role.CODER: (
        "You are an expert software developer who writes clean, maintainable code "
        "and knows design patterns and software architecture well."
    ),
    Role.QA: (
        "You are a quality assurance specialist who designs test plans and test "
        "cases and is good at finding defects."
    ),
    Role.PROJECT_MANAGER: (
        "You are a project manager who breaks large initiatives into actionable "
        "tasks, allocates resources and keeps timelines realistic."
    ),
    Role.CPO: (
        "You are a Chief Product Officer who aligns product strategy with business "
        "goals and user needs and prioritizes features."
    ),
    Role.UI_UX: (
        "You are a UI/UX designer who creates intuitive, accessible interfaces "
        "focused on user needs."
    ),
    Role.SUMMARIZER: (
        "You write concise, accurate summaries that keep the key points of "
        "complex material."
    ),
    Role.REWRITER: (
        "You are an editor who adapts text to a tone, style and audience while "
        "keeping its core message."
    ),
    Role.ANALYST: (
        "You are a data analyst who finds patterns and trends and turns them into "
        "clear, actionable conclusions."
    ),
}

_STEPS: dict[Role, list[str]] = {
    Role.CODER: [
        "Analyze the problem in <thinking> tags",
        "Write your solution in <solution> tags",
        "Keep the code efficient, clean and documented",
    ],
    Role.QA: [
        "Analyze the testing requirements in <thinking> tags",
        "Write a test plan in <test_plan> tags",
        "List detailed test cases in <test_cases> tags, most important first",
    ],
    Role.PROJECT_MANAGER: [
        "Analyze the requirements in <thinking> tags",
        "Break the work into phases and tasks in <breakdown> tags",
        "Give a timeline with milestones in <timeline> tags",
        "List risks and mitigations in <risks> tags",
    ],
    Role.CPO: [
        "Analyze the product requirements in <thinking> tags",
        "Outline the strategy in <strategy> tags",
        "Give a prioritized roadmap in <roadmap> tags",
        "Propose success metrics in <metrics> tags",
    ],
    Role.UI_UX: [
        "Analyze the design requirements in <thinking> tags",
        "Describe components and interactions in <design> tags",
        "Explain the user flows in <flows> tags",
    ],
    Role.SUMMARIZER: [
        "Identify the key points in <thinking> tags",
        "Write the summary in <summary> tags",
    ],
    Role.REWRITER: [
        "Analyze the original content in <thinking> tags",
        "Write the new version in <rewritten> tags",
        "Keep the facts unchanged",
    ],
    Role.ANALYST: [
        "Examine the information in <thinking> tags",
        "Present the analysis in <analysis> tags",
        "Draw conclusions in <conclusions> tags",
        "Give recommendations in <recommendations> tags",
    ],
    Role.CUSTOM: [
        "Analyze the task from the perspective of your role in <thinking> tags",
        "Give your response in <response> tags",
        "Add actionable recommendations in <recommendations> tags",
    ],
}

_FILE_OPERATION_HELP = """\
Use the provided tools to read and change files. If you cannot call tools, \
write a block like this instead and it will be carried out after your answer:
<file_operation>
command: write_file
path: notes/plan.md
content:
The file content.
</file_operation>
Commands: read_file, write_file, create_directory, delete_file, \
list_directory, search_codebase, find_files."""

_BASE_KEYS = set(_BASE_PROPERTIES)


def role_description(role: Role, args: Mapping[str, Any]) -> str:
    if role is Role.CUSTOM:
        return str(args.get("role") or "You are an experienced professional in your field.")
    return _DESCRIPTIONS[role]


def role_instructions(role: Role, args: Mapping[str, Any]) -> str:
    steps = list(_STEPS[role])
    if role is Role.CODER:
        steps.append(f"Follow the conventions of {args.get('language') or 'the language in use'}")
        steps.append("Include tests" if args.get("tests") else "Keep the design testable")
    elif role is Role.SUMMARIZER and args.get("format"):
        steps.append(f"Use {args['format']} for the summary")
    elif role is Role.REWRITER:
        if args.get("style"):
            steps.append(f"Match this style: {args['style']}")
        if args.get("audience"):
            steps.append(f"Write for this audience: {args['audience']}")
    numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, 1))
    return f"{numbered}\n\n{_FILE_OPERATION_HELP}"


def build_role_prompt(
    role: Role,
    args: Mapping[str, Any],
    related_files: Sequence[tuple[str, str]] = (),
    tools: Sequence[Tool] = (),
) -> str:
    """Build the XML-tagged system prompt for a role call."""
    sections = [
        f"<role>{role_description(role, args)}</role>",
        f"<task>{args.get('prompt', '')}</task>",
    ]
    if args.get("context"):
        sections.append(f"<context>{args['context']}</context>")
    if related_files:
        files = "".join(f'<file path="{path}">\n{content}\n</file>\n' for path, content in related_files)
        sections.append(f"<related_files>\n{files}</related_files>")

    extras = [
        f"<{key}>{value if isinstance(value, str) else json.dumps(value)}</{key}>"
        for key, value in args.items()
        if key not in _BASE_KEYS and key != "role" and value not in (None, "")
    ]
    if extras:
        sections.append("\n".join(extras))
    if tools:
        listing = "\n".join(
            f"- {tool.name}: {tool.description.split('. ')[0].rstrip('.')}"
            for tool in sorted(tools, key=lambda t: t.name)
        )
        sections.append(f"<available_tools>\n{listing}\n</available_tools>")
    sections.append(f"<instructions>\n{role_instructions(role, args)}\n</instructions>")
    return "\n\n".join(sections)


# -------------------- file operations ---------------------

_FILE_OPERATION = re.compile(r"<file_operation>(.*?)</file_operation>", re.DOTALL)
_COMMAND = re.compile(r"command:\s*(\w+)", re.IGNORECASE)
_PATH = re.compile(r"path:\s*([^\n]+)", re.IGNORECASE)
_CONTENT = re.compile(r"content:[ \t]*\n?(.*)\Z", re.IGNORECASE | re.DOTALL)
_OVERWRITE = re.compile(r"allow_?overwrite:\s*(true|false)", re.IGNORECASE)


def _operation_args(command: str, path: str, body: str) -> dict[str, Any]:
    content_match = _CONTENT.search(body)
    content = content_match.group(1).strip() if content_match else None
    if command == "write_file":
        overwrite = _OVERWRITE.search(body)
        return {
            "path": path,
            "content": content or "",
            "allow_overwrite": bool(overwrite and overwrite.group(1).lower() == "true"),
        }
    if command == "search_codebase":
        return {"query": content or path}
    if command == "find_files":
        return {"pattern": path}
    if command in ("read_file", "create_directory", "delete_file", "list_directory"):
        return {"path": path}
    raise ValueError(f"Unknown file operation command: {command}")


async def process_file_operations(
    text: str, executor: ToolExecutor, logger: Optional[logging.Logger] = None
) -> str:
    """Run each ``<file_operation>`` block in *text* and replace it with its result."""
    logger = logger or logging.getLogger(__name__)
    pieces: list[str] = []
    last = 0
    for match in _FILE_OPERATION.finditer(text):
        pieces.append(text[last : match.start()])
        last = match.end()
        body = match.group(1)
        command = _COMMAND.search(body)
        path = _PATH.search(body)
        if command is None or path is None:
            pieces.append(
                "<file_operation_error>\nError: a file operation needs a command and a path\n"
                "</file_operation_error>"
            )
            continue

        name, target = command.group(1), path.group(1).strip()
        try:
            args = _operation_args(name, target, body)
        except ValueError as exc:
            logger.warning(f"file_operation: {exc}")
            pieces.append(f"<file_operation_error>\nError: {exc}\n</file_operation_error>")
            continue

        result = await executor.execute_tool(name, args)
        attrs = f'command="{name}" path="{target}"'
        if result.success:
            pieces.append(f"<file_operation_result {attrs}>\n{result.output}\n</file_operation_result>")
        else:
            message = result.error.message if result.error else "failed"
            pieces.append(f"<file_operation_error {attrs}>\nError: {message}\n</file_operation_error>")
    pieces.append(text[last:])
    return "".join(pieces)


# -------------------- handler ---------------------

ProviderResolver = Callable[[Role, RoleSettings], Awaitable[ChatProvider]]


class RoleToolHandler:
    """
    Runs role tool calls.

    Args:
        resolve_provider: Coroutine returning a configured provider for a role.
        root: Directory every ``base_path`` must stay inside.
        role_overrides: The ``roles`` config section.
        shell: Also give roles the allow-listed shell tool.
        max_iterations: Tool loop cap per role call.
    """

    def __init__(
        self,
        resolve_provider: ProviderResolver,
        *,
        root: str | Path = ".",
        role_overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
        shell: bool = False,
        max_iterations: int = 10,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.resolve_provider = resolve_provider
        self.root = Path(root).resolve()
        self.role_overrides = dict(role_overrides or {})
        self.shell = shell
        self.max_iterations = max_iterations
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        # One call at a time per role; a role's provider instance is shared
        self._role_locks: dict[Role, asyncio.Lock] = {}

    def tool_definitions(self) -> list[Tool]:
        return role_tool_definitions()

    def _base_dir(self, base_path: Optional[str]) -> Path:
        base = (self.root / base_path).resolve() if base_path else self.root
        if base != self.root and self.root not in base.parents:
            raise PermissionError(f"base_path '{base_path}' is outside {self.root}")
        if not base.is_dir():
            raise NotADirectoryError(f"base_path is not a directory: {base_path}")
        return base

    async def handle(self, role: Role, args: Mapping[str, Any]) -> str:
        """Run one role call and return the processed answer."""
        prompt = str(args.get("prompt") or "").strip()
        if not prompt:
            raise RoleToolError(f"The {role} tool needs a prompt")

        base = self._base_dir(args.get("base_path"))
        files = FileSystemTool(
            base, allow_file_overwrite=bool(args.get("allow_file_overwrite")), logger=self.logger
        )
        registry = ToolRegistry(logger=self.logger)
        executor = ToolExecutor(registry, logger=self.logger)
        files.register(registry, executor)
        if self.shell:
            ShellTool(base, logger=self.logger).register(registry, executor)

        related: list[tuple[str, str]] = []
        for path in args.get("related_files") or []:
            try:
                related.append((path, files.read_file(path)))
            except OSError as exc:
                self._log(f"Skipping related file {path}: {exc}", logging.WARNING)

        tools = registry.get_all_tools()
        settings = role_settings(role, self.role_overrides)
        request = build_request(
            [
                {"role": "system", "content": build_role_prompt(role, args, related, tools)},
                {"role": "user", "content": prompt},
            ],
            {"temperature": settings.temperature, "max_tokens": settings.max_tokens, "tools": tools},
        )

        lock = self._role_locks.setdefault(role, asyncio.Lock())
        async with lock:
            provider = await self.resolve_provider(role, settings)
            self._log(f"Running {role} role in {base}")
            response = await ToolLoopOrchestrator(executor, logger=self.logger).orchestrate(
                provider,
                request,
                ToolLoopOptions(max_iterations=self.max_iterations, throw_on_max_iterations=False),
            )
        if response.is_error:
            message = response.error.message if response.error else "unknown provider error"
            raise RoleToolError(f"The {role} role failed: {message}")
        if response.max_iterations_reached:
            self._log(f"{role} stopped at the iteration cap", logging.WARNING)
        return await process_file_operations(response.content or "", executor, self.logger)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
