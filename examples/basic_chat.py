import asyncio

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from agentic_cli import (
    AnthropicProvider,
    OpenAIProvider,
    ProviderConfig,
    ProviderRequest,
    ProviderType,
    create_provider_factory,
)


async def chat_example_default_client():
    factory = create_provider_factory()
    openai_llm = await factory.configure_provider(
        ProviderType.OPENAI, ProviderConfig(ProviderType.OPENAI, model="gpt-5-nano")
    )
    anthropic_llm = await factory.configure_provider(
        ProviderType.ANTHROPIC,
        ProviderConfig(ProviderType.ANTHROPIC, model="claude-3-5-haiku-20241022"),
    )
    gemini_llm = await factory.configure_provider(
        ProviderType.GOOGLE, ProviderConfig(ProviderType.GOOGLE, model="gemini-2.5-flash")
    )

    request = ProviderRequest(
        messages=[
            {"role": "system", "content": "You are a helpful assistant."},
            {"role": "user", "content": "What's your name?"},
        ],
        max_tokens=1000,
        temperature=0.7,
    )

    for name, llm in (("OpenAI", openai_llm), ("Anthropic", anthropic_llm), ("Gemini", gemini_llm)):
        response = await llm.chat(request)
        print(f"{name}: ", response.content if response else response.error)
        print(f"{name} usage: ", response.usage)

    await factory.aclose()


async def chat_example_pass_client():
    async with OpenAIProvider.from_client(
        AsyncOpenAI(max_retries=3, timeout=10),
        ProviderConfig(ProviderType.OPENAI, model="gpt-5-nano"),
    ) as openai_llm, AnthropicProvider.from_client(
        AsyncAnthropic(),
        ProviderConfig(ProviderType.ANTHROPIC, model="claude-3-5-haiku-20241022"),
    ) as anthropic_llm:
        request = ProviderRequest(messages=[{"role": "user", "content": "Say hi in one word."}])
        print("OpenAI: ", (await openai_llm.chat(request)).content)
        print("Anthropic: ", (await anthropic_llm.chat(request)).content)

        print("Streaming: ", end="")
        async for chunk in anthropic_llm.stream(request):
            print(chunk.content, end="", flush=True)
        print()


if __name__ == "__main__":
    asyncio.run(chat_example_default_client())
    asyncio.run(chat_example_pass_client())
