from __future__ import annotations

import argparse
import asyncio
import logging

from agentic_cli import (
    ProviderConfig,
    ProviderRequest,
    ProviderResponse,
    ProviderType,
    Tool,
    ToolExecutor,
    ToolLoopOptions,
    ToolLoopOrchestrator,
    ToolRegistry,
    create_provider_factory,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

WEATHER_TOOL = Tool(
    name="get_weather",
    description="Get the current weather in a given location",
    parameters={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City and state, e.g. San Francisco, CA",
            },
            "unit": {
                "type": ["string", "null"],
                "enum": ["celsius", "fahrenheit"],
                "description": "Units (celsius or fahrenheit); pass null for default.",
            },
        },
        "required": ["location", "unit"],
        "additionalProperties": False,
    },
    strict=True,
    side_effect_free=True,
)


def get_weather(location: str, unit: str | None = None) -> str:
    """Stub implementation of get_weather."""
    # imagine we call a real weather API here
    return f"15 °C, mostly cloudy in {location}"


def on_progress(iteration: int, response: ProviderResponse) -> None:
    logger.info("iteration %d: %d tool call(s)", iteration, len(response.tool_calls or []))


async def weather_loop(provider_type: ProviderType, model: str) -> None:
    """
    Let the model call get_weather until it can answer.

    The orchestrator sends the prompt, runs each requested tool, feeds the
    results back and stops once the model answers in plain text.
    """
    registry = ToolRegistry()
    registry.register_tool(WEATHER_TOOL)
    executor = ToolExecutor(registry, {"get_weather": get_weather})

    validation = registry.validate_tools_for_provider(provider_type)
    if not validation.valid:
        logger.warning("Tool problems: %s", validation.messages)

    factory = create_provider_factory()
    provider = await factory.configure_provider(
        provider_type, ProviderConfig(provider_type, model=model)
    )
    request = ProviderRequest(
        messages=[{"role": "user", "content": "What's the weather in San Francisco and Paris?"}],
        tools=registry.get_all_tools(),
    )

    orchestrator = ToolLoopOrchestrator(executor)
    response = await orchestrator.orchestrate(
        provider,
        request,
        ToolLoopOptions(max_iterations=4, include_trace_info=True, on_progress=on_progress),
    )
    logger.info("%s says: %s", provider_type.value.capitalize(), response.content)
    logger.info("trace: %s", response.trace_info)
    await factory.aclose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in ProviderType],
        default=ProviderType.ANTHROPIC.value,
    )
    parser.add_argument(
        "--model",
        default="claude-3-5-haiku-20241022",  # "gpt-4.1-nano", "gemini-2.5-flash", "grok-3-mini"
    )
    args = parser.parse_args()

    asyncio.run(weather_loop(ProviderType(args.provider), args.model))
