"""Shaping of tool execution results into outputs the model can read."""

from __future__ import annotations

import json
import logging
from typing import Optional, Protocol, Sequence

from agentic_cli.provider import ProviderType
from agentic_cli.types.tool import ToolCallOutput, ToolExecutionResult

__all__ = ["ProviderFormatter", "DefaultFormatter", "ToolResultFormatter"]


class ProviderFormatter(Protocol):
    def format_result(
        self, result: ToolExecutionResult, call_id: str
    ) -> ToolCallOutput: ...


class DefaultFormatter:
    """Raw output on success, a JSON ``{"error": {...}}`` envelope on failure."""

    def format_result(self, result: ToolExecutionResult, call_id: str) -> ToolCallOutput:
        if result.success:
            return ToolCallOutput(call_id=call_id, output=result.output or "")
        error = result.error.to_dict() if result.error else {"message": "Unknown tool error"}
        return ToolCallOutput(
            call_id=call_id, output=json.dumps({"error": error}, default=str)
        )


class ToolResultFormatter:
    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._default = DefaultFormatter()
        self._formatters: dict[str, ProviderFormatter] = {
            ptype.value: self._default for ptype in ProviderType
        }

    def register_formatter(
        self, provider_type: ProviderType | str, formatter: ProviderFormatter
    ) -> None:
        self._formatters[str(provider_type)] = formatter

    def _formatter_for(self, provider_type: ProviderType | str | None) -> ProviderFormatter:
        if provider_type is None:
            return self._default
        formatter = self._formatters.get(str(provider_type))
        if formatter is None:
            self.logger.warning(
                f"No formatter registered for provider '{provider_type}', using default"
            )
            return self._default
        return formatter

    def format_result(
        self,
        result: ToolExecutionResult,
        call_id: str,
        provider_type: ProviderType | str | None = None,
    ) -> ToolCallOutput:
        return self._formatter_for(provider_type).format_result(result, call_id)

    def format_results(
        self,
        results: Sequence[ToolExecutionResult],
        call_ids: Sequence[str],
        provider_type: ProviderType | str | None = None,
    ) -> list[ToolCallOutput]:
        """Format *results* pairwise with *call_ids*, preserving order."""
        if len(results) != len(call_ids):
            raise ValueError(
                f"Got {len(results)} results for {len(call_ids)} call ids"
            )
        formatter = self._formatter_for(provider_type)
        return [
            formatter.format_result(result, call_id)
            for result, call_id in zip(results, call_ids)
        ]
