"""
agentic-cli - tool-calling agent loop over OpenAI, Anthropic, Gemini and Grok.
"""

__version__ = "0.1.0"

from .types import (
    ChatMessage,
    ErrorInfo,
    ProviderRequest,
    ProviderResponse,
    Tool,
    ToolCall,
    ToolCallOutput,
    ToolExecutionResult,
    ToolResultsRequest,
    Usage,
)
from .provider import ProviderType, get_env_api_key
from .errors import (
    AgenticCLIError,
    ConfigurationError,
    MaxIterationsExceededError,
    UnsupportedProviderError,
)
from .config import AppConfig, ConfigManager, ProviderConfig
from .tools import ToolExecutor, ToolRegistry, ToolResultFormatter, FileSystemTool
from .providers import (
    AnthropicProvider,
    BaseProvider,
    GoogleProvider,
    GrokProvider,
    OpenAIProvider,
    ProviderFactory,
    create_provider_factory,
)
from .orchestrator import ToolLoopOptions, ToolLoopOrchestrator
from .adapters.anthropic import ephemeral

__all__ = [
    "ChatMessage",
    "ErrorInfo",
    "ProviderRequest",
    "ProviderResponse",
    "Tool",
    "ToolCall",
    "ToolCallOutput",
    "ToolExecutionResult",
    "ToolResultsRequest",
    "Usage",
    "ProviderType",
    "get_env_api_key",
    "AgenticCLIError",
    "ConfigurationError",
    "MaxIterationsExceededError",
    "UnsupportedProviderError",
    "AppConfig",
    "ConfigManager",
    "ProviderConfig",
    "ToolExecutor",
    "ToolRegistry",
    "ToolResultFormatter",
    "FileSystemTool",
    "BaseProvider",
    "OpenAIProvider",
    "GrokProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "ProviderFactory",
    "create_provider_factory",
    "ToolLoopOptions",
    "ToolLoopOrchestrator",
    "ephemeral",
]
