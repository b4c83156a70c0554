"""Base class shared by every provider client."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, AsyncIterator, ClassVar, Optional, Self

from agentic_cli.config import ProviderConfig
from agentic_cli.credentials import SecretSource, resolve_api_key
from agentic_cli.errors import ConfigurationError, classify_error
from agentic_cli.provider import ProviderType, env_var_names
from agentic_cli.types.chat import (
    ChatMessage,
    ProviderRequest,
    ProviderResponse,
    ToolResultsRequest,
    coerce_tool_call,
    tool_message,
)
from agentic_cli.types.tool import ErrorInfo

__all__ = ["BaseProvider"]


class BaseProvider(ABC):
    """
    Base class for all provider clients. All implementations are async-first.

    A provider performs exactly one request/response round trip per call and
    hands tool calls back verbatim. Iterating over tool calls is the job of
    the orchestrator.
    """

    provider_type: ClassVar[ProviderType]
    default_model: ClassVar[str]
    client_class: ClassVar[type]
    # Extra sampling knobs the vendor accepts
    supports_top_k: ClassVar[bool] = False

    def __init__(
        self,
        *,
        credentials: Optional[SecretSource] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Args:
            credentials: Keychain lookup used when neither the config nor the
                environment supplies an API key.
            logger: Optional logger instance. If None, a logger named after
                this module will be used.
            name: Optional name for this component, used in logging.
                If None, defaults to the concrete class's name.
        """
        self.credentials = credentials
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self.config: Optional[ProviderConfig] = None
        self.model: str = self.default_model
        self._client: Any = None

    # -------------------- configuration ---------------------

    @property
    @abstractmethod
    def adapter(self) -> Any:
        """Pure request/response adapter for this vendor."""
        ...

    @abstractmethod
    def _build_client(self, config: ProviderConfig, api_key: Optional[str]) -> Any:
        ...

    def _requires_api_key(self, config: ProviderConfig) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def configure(self, config: ProviderConfig) -> None:
        """Resolve credentials and build the vendor client."""
        api_key = resolve_api_key(config, self.credentials)
        if not api_key and self._requires_api_key(config):
            env_hint = " or ".join(env_var_names(self.provider_type)) or "an API key"
            raise ConfigurationError(
                f"No API key found for {self.provider_type}. Set {env_hint}, "
                f"add it to the config, or store it with "
                f"'agentic-cli credentials set {self.provider_type}'"
            )
        # Reconfiguring releases the previous client's connections
        await self.aclose()
        self.config = config
        self.model = config.model or self.default_model
        self._client = self._build_client(config, api_key)
        self._log(f"Configured with model {self.model}", logging.DEBUG)

    @classmethod
    def from_client(
        cls,
        client: Any,
        config: Optional[ProviderConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """Wrap an already-configured vendor SDK client."""
        if not isinstance(client, cls.client_class):
            raise TypeError(
                f"{cls.__name__}.from_client expects {cls.client_class.__name__}; "
                f"got {type(client).__name__}"
            )
        self = cls(logger=logger, name=name)
        self.config = config or ProviderConfig(provider_type=cls.provider_type)
        self.model = self.config.model or cls.default_model
        self._client = client
        return self

    def _require_client(self) -> Any:
        if self._client is None:
            raise ConfigurationError(
                f"{self.name} is not configured; call configure() first"
            )
        return self._client

    def _prepare(self, request: ProviderRequest) -> tuple[ProviderRequest, str]:
        """Fill unset generation settings from the provider config."""
        config = self.config
        model = request.model or self.model
        if config is None:
            return request, model
        extra = dict(request.extra)
        if config.top_p is not None:
            extra.setdefault("top_p", config.top_p)
        if config.top_k is not None and self.supports_top_k:
            extra.setdefault("top_k", config.top_k)
        prepared = request.copy(
            temperature=request.temperature if request.temperature is not None else config.temperature,
            max_tokens=request.max_tokens if request.max_tokens is not None else config.max_tokens,
            extra=extra,
        )
        return prepared, model

    # -------------------- vendor calls ---------------------

    @abstractmethod
    async def _chat_impl(self, request: ProviderRequest, model: str) -> Any:
        """Send one non-streaming request and return the raw vendor response."""
        ...

    @abstractmethod
    def _stream_impl(self, request: ProviderRequest, model: str) -> AsyncIterator[Any]:
        """Return an async iterator over raw vendor stream events."""
        ...

    async def _close_client(self) -> None:
        await self._client.close()

    # -------------------- public API ---------------------

    async def chat(self, request: ProviderRequest) -> ProviderResponse:
        """
        Send *request* once and return the parsed response.

        Vendor errors and malformed responses come back as a failed
        ``ProviderResponse``; only a missing configuration raises.
        """
        self._require_client()
        prepared, model = self._prepare(request)
        self._log(
            f"Sending request to {self.provider_type} model {model} "
            f"({len(prepared.messages)} messages, {len(prepared.tools or [])} tools)"
        )
        try:
            raw = await self._chat_impl(prepared, model)
            response = self.adapter.from_provider(raw)
        except Exception as exc:
            return self._wrap_error(exc)
        self._log(
            f"Received response (finish_reason={response.finish_reason}, "
            f"tool_calls={len(response.tool_calls or [])})",
            logging.DEBUG,
        )
        return response

    async def generate_text_with_tool_results(
        self, request: ToolResultsRequest
    ) -> ProviderResponse:
        """
        Continue a conversation after tools ran.

        Tool outputs not yet present in the conversation are spliced in right
        after the most recent assistant message carrying tool calls (after any
        tool messages already following it). The request is refused without a
        network call when that assistant message is missing or when its tool
        calls are not each answered exactly once.
        """
        self._require_client()
        messages: list[ChatMessage] = list(request.messages)

        anchor = next(
            (
                i
                for i in range(len(messages) - 1, -1, -1)
                if messages[i].get("role") == "assistant" and messages[i].get("tool_calls")
            ),
            None,
        )
        if anchor is None:
            return ProviderResponse.failure(
                ErrorInfo(
                    "No assistant message with tool calls found in the conversation",
                    "missing_tool_call_message",
                )
            )

        calls = [coerce_tool_call(tc) for tc in messages[anchor]["tool_calls"]]
        names = {call.id: call.name for call in calls}

        end = anchor + 1
        while end < len(messages) and messages[end].get("role") == "tool":
            end += 1
        present = {m.get("tool_call_id") for m in messages[anchor + 1 : end]}

        spliced: list[ChatMessage] = []
        for output in request.tool_outputs:
            if output.call_id in present:
                continue
            present.add(output.call_id)
            spliced.append(tool_message(output, names.get(output.call_id)))
        messages[end:end] = spliced

        answers = Counter(m.get("tool_call_id") for m in messages[anchor + 1 : end + len(spliced)])
        missing = [call.id for call in calls if answers[call.id] == 0]
        if missing:
            return ProviderResponse.failure(
                ErrorInfo(
                    f"Tool calls without a result: {', '.join(missing)}",
                    "unanswered_tool_call",
                    {"missing": missing},
                )
            )
        unexpected = [cid for cid, n in answers.items() if cid not in names or n > 1]
        if unexpected:
            return ProviderResponse.failure(
                ErrorInfo(
                    f"Tool results that do not answer exactly one call: {', '.join(map(str, unexpected))}",
                    "unexpected_tool_result",
                    {"unexpected": unexpected},
                )
            )

        return await self.chat(request.copy(messages=messages))

    async def stream(self, request: ProviderRequest) -> AsyncIterator[ProviderResponse]:
        """Yield text chunks as they arrive. Errors end the stream with a failure."""
        self._require_client()
        prepared, model = self._prepare(request)
        self._log(f"Streaming from {self.provider_type} model {model}")
        try:
            async for chunk in self._stream_impl(prepared, model):
                yield self.adapter.stream_text(chunk)
        except Exception as exc:
            yield self._wrap_error(exc)

    def _wrap_error(self, exc: Exception) -> ProviderResponse:
        """Wrap exception into a failed response."""
        return ProviderResponse.failure(classify_error(exc, self.logger))

    # -------------------- lifecycle ---------------------

    async def aclose(self) -> None:
        if self._client is not None:
            await self._close_client()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
