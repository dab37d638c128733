"""
llm/client.py — The ONLY file that imports the OpenAI SDK.

One capability, many backends:
  Every provider we talk to exposes the same chat-completions surface.
  OpenRouter, DeepSeek and OpenAI differ only by base URL and API key;
  Azure OpenAI differs by client class and auth. So there is exactly one
  adapter type, ProviderClient, with one method:

      await provider.complete(messages, model, temperature=0.1) -> str | None

  The fallback chain (llm/completion.py) is an ordered list of
  (ProviderClient, model) pairs — not a class per provider.

TWO AUTH PATHS FOR AZURE:
  Path A: API key         → AsyncAzureOpenAI(api_key=...)
  Path B: managed identity / az login
                          → AsyncAzureOpenAI(azure_ad_token_provider=...)
                            backed by DefaultAzureCredential

USAGE:
  from llm.client import ProviderClient, build_providers
  from config import settings

  providers = build_providers(settings)      # {"openrouter": ..., "deepseek": ...}
  text = await providers["deepseek"].complete(
      [{"role": "user", "content": "Say hi"}], "deepseek-chat"
  )
"""

import logging

from openai import AsyncAzureOpenAI, AsyncOpenAI
from azure.identity import DefaultAzureCredential, get_bearer_token_provider

logger = logging.getLogger(__name__)

AZURE_SCOPE = "https://cognitiveservices.azure.com/.default"


class ProviderClient:
    """
    Thin async wrapper around one chat-completions endpoint.

    complete() returns the first choice's message content, or None when the
    provider answered without a body. Transport and auth errors are raised
    as-is — the CompletionService decides what a failure means.
    """

    def __init__(self, name: str, client: AsyncOpenAI) -> None:
        self.name = name
        self._client = client

    @classmethod
    def openai_compatible(
        cls,
        name: str,
        api_key: str,
        base_url: str | None = None,
    ) -> "ProviderClient":
        return cls(name, AsyncOpenAI(api_key=api_key, base_url=base_url))

    @classmethod
    def azure(
        cls,
        endpoint: str,
        api_version: str,
        api_key: str = "",
    ) -> "ProviderClient":
        if api_key:
            client = AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=endpoint,
                api_version=api_version,
            )
        else:
            token_provider = get_bearer_token_provider(
                DefaultAzureCredential(), AZURE_SCOPE
            )
            client = AsyncAzureOpenAI(
                azure_endpoint=endpoint,
                api_version=api_version,
                azure_ad_token_provider=token_provider,
            )
        return cls("azure", client)

    async def complete(
        self,
        messages: list[dict],
        model: str,
        *,
        temperature: float = 0.1,
    ) -> str | None:
        """
        Issue one chat completion. No max_tokens override — provider default.
        """
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            frequency_penalty=0,
            presence_penalty=0,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    async def close(self) -> None:
        await self._client.close()

    def __repr__(self) -> str:
        return f"ProviderClient({self.name!r})"


def build_providers(settings) -> dict[str, ProviderClient]:
    """
    Build one ProviderClient per provider that has credentials configured.

    Providers without a key (or endpoint, for Azure) are left out; the
    fallback chain skips entries that name a missing provider.
    """
    providers: dict[str, ProviderClient] = {}

    if settings.openrouter_api_key:
        providers["openrouter"] = ProviderClient.openai_compatible(
            "openrouter", settings.openrouter_api_key, settings.openrouter_base_url
        )
    if settings.deepseek_api_key:
        providers["deepseek"] = ProviderClient.openai_compatible(
            "deepseek", settings.deepseek_api_key, settings.deepseek_base_url
        )
    if settings.openai_api_key:
        providers["openai"] = ProviderClient.openai_compatible(
            "openai", settings.openai_api_key
        )
    if settings.azure_openai_endpoint:
        providers["azure"] = ProviderClient.azure(
            endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_api_version,
            api_key=settings.azure_openai_api_key,
        )

    logger.debug("Configured LLM providers: %s", sorted(providers))
    return providers
