"""
providers.py - Text-generation providers

Wraps DeepSeek, Ollama and OpenAI-compatible chat models behind one small
interface and translates their exceptions into typed provider errors.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from langchain_core.messages import AIMessage, HumanMessage
from langchain_deepseek import ChatDeepSeek
from langchain_deepseek.chat_models import DEFAULT_API_BASE as DEEPSEEK_DEFAULT_API_BASE
from langchain_ollama import OllamaLLM
from langchain_openai import ChatOpenAI

from ..errors import (
    FailureKind,
    InvalidRequest,
    ProviderError,
    UpstreamFatal,
    UpstreamRetryable,
    to_provider_error,
)

_LOG = logging.getLogger("providers")

DEFAULT_LLM_PROVIDER = "deepseek"  # "deepseek", "ollama", or "openai"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "qwen3:8b"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_DEEPSEEK_MODEL = "deepseek-chat"
DEFAULT_TIMEOUT = 30

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


@dataclass
class ProviderResult:
    text: str
    tokens_used: int = 0


class TextProvider(Protocol):
    """A backend accepting (prompt, temperature, max_tokens) and returning text.

    Implementations raise UpstreamRetryable, UpstreamFatal or a ProviderError
    of kind INVALID_REQUEST on failure.
    """

    name: str
    model: str

    def generate(self, prompt: str, temperature: float, max_tokens: int) -> ProviderResult:
        ...


def _token_usage(message) -> int:
    usage = getattr(message, "usage_metadata", None) or {}
    if usage.get("total_tokens"):
        return int(usage["total_tokens"])
    metadata = getattr(message, "response_metadata", None) or {}
    token_usage = metadata.get("token_usage") or {}
    return int(token_usage.get("total_tokens") or 0)


class LangChainTextProvider:
    """LLM provider configuration and invocation."""

    def __init__(
        self,
        provider: str = DEFAULT_LLM_PROVIDER,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.name = provider.lower()
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

        # Set defaults based on provider
        self._configure_provider()

    def _configure_provider(self):
        """Configure provider-specific settings."""
        if self.name == "ollama":
            if not self.base_url:
                self.base_url = os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_BASE_URL)
            if not self.model:
                self.model = os.getenv("OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL)
        elif self.name == "openai":
            if not self.api_key:
                self.api_key = os.getenv("OPENAI_API_KEY")
            if not self.base_url:
                self.base_url = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
            if not self.model:
                self.model = os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
        elif self.name == "deepseek":
            if not self.api_key:
                self.api_key = os.getenv("DEEPSEEK_API_KEY")
            if not self.model:
                self.model = DEFAULT_DEEPSEEK_MODEL
        else:
            raise ValueError(f"Unknown LLM provider: {self.name}")

    def get_llm(self, temperature: float, max_tokens: int):
        """Build the LangChain model for one call.

        Provider-side retries are disabled; falling back to another provider
        is the caller's job.
        """
        if self.name == "ollama":
            _LOG.debug("Using Ollama provider: %s at %s", self.model, self.base_url)
            return OllamaLLM(
                model=self.model,
                base_url=self.base_url,
                temperature=temperature,
                num_predict=max_tokens,
                timeout=self.timeout,
            )
        if not self.api_key:
            raise ProviderError(
                FailureKind.SERVICE_UNAVAILABLE,
                self.name,
                f"{self.name} API key not configured",
            )
        if self.name == "openai":
            _LOG.debug("Using OpenAI-compatible provider: %s at %s", self.model, self.base_url)
            return ChatOpenAI(
                model=self.model,
                api_key=self.api_key,
                base_url=self.base_url,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout,
                max_retries=0,
            )
        _LOG.debug("Using DeepSeek provider: %s", self.model)
        return ChatDeepSeek(
            model=self.model,
            api_key=self.api_key,
            api_base=self.base_url or DEEPSEEK_DEFAULT_API_BASE,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout,
            max_retries=0,
        )

    def generate(self, prompt: str, temperature: float, max_tokens: int) -> ProviderResult:
        try:
            llm = self.get_llm(temperature, max_tokens)
            if self.name == "ollama":
                response = llm.invoke(prompt)
                message = AIMessage(content=response if isinstance(response, str) else "")
            else:
                message = llm.invoke([HumanMessage(content=prompt)])
        except ProviderError as e:
            raise _typed(e)
        except Exception as e:
            raise _typed(to_provider_error(e, self.name)) from e

        content = message.content
        if not isinstance(content, str) or not _THINK_RE.sub("", content).strip():
            raise UpstreamFatal(FailureKind.MALFORMED_RESPONSE, self.name, "Empty or non-text completion")
        return ProviderResult(text=_THINK_RE.sub("", content).strip(), tokens_used=_token_usage(message))


def _typed(error: ProviderError) -> ProviderError:
    """Re-raise a classified error as the matching subclass."""
    if isinstance(error, (UpstreamRetryable, UpstreamFatal)):
        return error
    if error.retryable:
        return UpstreamRetryable(error.kind, error.provider, str(error))
    if error.kind == FailureKind.MALFORMED_RESPONSE:
        return UpstreamFatal(error.kind, error.provider, str(error))
    return error


def build_provider(
    provider: str,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Optional[LangChainTextProvider]:
    """Create a provider, or None when ``provider`` is empty."""
    if not provider:
        return None
    try:
        return LangChainTextProvider(provider, model=model, api_key=api_key, base_url=base_url, timeout=timeout)
    except ValueError as e:
        raise InvalidRequest(str(e)) from e
