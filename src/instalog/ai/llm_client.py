"""LiteLLM client wrapper used by the changelog rewriter.

All LLM calls route through this module. Model strings use LiteLLM's
'provider/model' format; the provider prefix decides which credential applies.
"""

from __future__ import annotations

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for credential lookup
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of *model* ('openai' when none is given)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def provider_env_var(model: str) -> str | None:
    """Return the env var holding the API key for *model*, or None if no key is needed.

    Unknown providers fall back to ``<PROVIDER>_API_KEY``.
    """
    provider = provider_of(model)
    if provider in _PROVIDER_ENV:
        return _PROVIDER_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def is_rate_limited(exc: BaseException) -> bool:
    """True if *exc* is a quota / rate-limit (HTTP 429) failure."""
    if isinstance(exc, litellm.exceptions.RateLimitError):
        return True
    return getattr(exc, "status_code", None) == 429


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 4000,
    temperature: float = 0.2,
    num_retries: int = 0,
    api_key: str | None = None,
) -> str:
    """Call litellm.completion() and return the first choice's content.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list; a leading 'system' message is
            forwarded as the provider's system prompt.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature.
        num_retries: Number of LiteLLM retries on transient errors.
        api_key: Explicit key; when None LiteLLM reads the provider env var.

    Returns:
        The text content of the first choice ("" if the model returned none).

    Raises:
        litellm.exceptions.APIError: On API failure (RateLimitError for 429).
    """
    kwargs: dict = {}
    if api_key:
        kwargs["api_key"] = api_key

    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        **kwargs,
    )
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""
