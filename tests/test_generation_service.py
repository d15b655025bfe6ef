"""
Tests for the generation provider chain.

Providers are in-process fakes; nothing here touches the network.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from personalization_service.errors import FailureKind, InvalidRequest, ProviderError, UpstreamFatal, UpstreamRetryable
from personalization_service.generation import (
    EXTRACTIVE_MODEL,
    UNABLE_TO_GENERATE,
    GenerationService,
    LangChainTextProvider,
    article_excerpts,
    build_provider,
    extractive_text,
    render_prompt,
)
from personalization_service.models import Confidence, GenerationRequest, SourceExcerpt, UserProfile
from personalization_service.storage import REQUESTS, InMemoryStore

SOURCES = [
    SourceExcerpt(source="Wire", excerpt="The council approved the budget. Spending rises by 4%. Critics object!"),
    SourceExcerpt(source="Wire", excerpt="A vote is expected next week."),
]


def request(prompt="Summarize the budget story.", sources=SOURCES):
    return GenerationRequest(prompt=prompt, sources=list(sources))


class TestProviderChain:
    """PRIMARY -> FALLBACK -> EXTRACTIVE."""

    def test_primary_success(self, provider_factory):
        primary = provider_factory(name="deepseek", model="deepseek-chat", text="Budget approved.")
        fallback = provider_factory(name="openai", model="gpt-4o-mini")
        response = GenerationService(primary, fallback).generate(request())

        assert response.text == "Budget approved."
        assert response.model_used == "deepseek-chat"
        assert response.tokens_used == 42
        assert response.confidence == Confidence.HIGH
        assert response.provider_fallback_used is False
        assert response.request_id.startswith("req_")
        assert fallback.calls == 0

    def test_retryable_primary_uses_fallback(self, provider_factory, errors):
        """A retryable primary failure is answered by the fallback model."""
        primary = provider_factory(name="deepseek", error=errors["retryable"]("deepseek"))
        fallback = provider_factory(name="openai", model="gpt-4o-mini", text="From fallback.")
        response = GenerationService(primary, fallback).generate(request())

        assert response.provider_fallback_used is True
        assert response.model_used == "gpt-4o-mini"
        assert response.text == "From fallback."
        assert response.confidence == Confidence.HIGH

    def test_both_fail_gives_extractive(self, provider_factory, errors):
        """With both providers down the answer is built from the excerpts."""
        primary = provider_factory(error=errors["retryable"]())
        fallback = provider_factory(error=UpstreamRetryable(FailureKind.TIMEOUT, "openai", "timed out"))
        response = GenerationService(primary, fallback).generate(request())

        assert response.text
        assert response.text.startswith("The council approved the budget.")
        assert response.confidence == Confidence.LOW
        assert response.model_used == EXTRACTIVE_MODEL
        assert response.tokens_used == 0
        assert response.provider_fallback_used is True

    def test_extractive_without_sources(self, provider_factory, errors):
        failing = provider_factory(error=errors["retryable"]())
        response = GenerationService(failing, failing).generate(request(sources=[]))
        assert response.text == UNABLE_TO_GENERATE
        assert response.confidence == Confidence.LOW

    def test_non_retryable_raises_without_fallback(self, provider_factory, errors):
        """A rejected request stops immediately; the fallback is never called."""
        primary = provider_factory(error=errors["rejected"]())
        fallback = provider_factory()
        with pytest.raises(InvalidRequest):
            GenerationService(primary, fallback).generate(request())
        assert fallback.calls == 0

    def test_malformed_primary_goes_extractive(self, provider_factory, errors):
        primary = provider_factory(error=errors["malformed"]())
        fallback = provider_factory()
        response = GenerationService(primary, fallback).generate(request())
        assert response.confidence == Confidence.LOW
        assert fallback.calls == 0

    def test_empty_completion_is_malformed(self, provider_factory):
        primary = provider_factory(text="   ")
        response = GenerationService(primary, None).generate(request())
        assert response.model_used == EXTRACTIVE_MODEL

    def test_missing_primary_uses_fallback(self, provider_factory):
        fallback = provider_factory(model="backup")
        response = GenerationService(None, fallback).generate(request())
        assert response.model_used == "backup"
        assert response.provider_fallback_used is True


class TestMemo:
    """Repeat prompts are served without calling the provider again."""

    def test_identical_prompt_memoized(self, provider_factory):
        primary = provider_factory()
        service = GenerationService(primary)
        service.generate(request())
        service.generate(request())
        assert primary.calls == 1

    def test_whitespace_and_case_variants_share_entry(self, provider_factory):
        primary = provider_factory()
        service = GenerationService(primary)
        service.generate(request("Summarize the budget story."))
        service.generate(request("Summarize the budget story. "))
        assert primary.calls == 1

    def test_shared_prefix_different_prompt(self, provider_factory):
        """Prompts that differ only after the prefix are not confused."""
        primary = provider_factory()
        service = GenerationService(primary, memo_prefix_chars=10)
        service.generate(request("Summarize article one about budgets"))
        service.generate(request("Summarize article two about elections"))
        assert primary.calls == 2

    def test_failures_are_not_memoized(self, provider_factory, errors):
        primary = provider_factory(error=errors["retryable"]())
        service = GenerationService(primary)
        service.generate(request())
        service.generate(request())
        assert primary.calls == 2

    def test_memo_is_bounded(self, provider_factory):
        primary = provider_factory()
        service = GenerationService(primary, memo_size=2)
        for prompt in ("first prompt", "second prompt", "third prompt", "first prompt"):
            service.generate(request(prompt))
        assert primary.calls == 4

    def test_clear_memo(self, provider_factory):
        primary = provider_factory()
        service = GenerationService(primary)
        service.generate(request())
        service.clear_memo()
        service.generate(request())
        assert primary.calls == 2


class TestStatus:
    """Request status polling."""

    def test_completed_status_recorded(self, provider_factory):
        service = GenerationService(provider_factory(), store=InMemoryStore())
        response = service.generate(request())
        status = service.status(response.request_id)
        assert status["status"] == "completed"
        assert status["result"]["requestId"] == response.request_id

    def test_failed_status_recorded(self, provider_factory, errors):
        service = GenerationService(provider_factory(error=errors["rejected"]()), store=InMemoryStore())
        with pytest.raises(InvalidRequest):
            service.generate(GenerationRequest(prompt="x", request_id="req_fixed"))
        assert service.status("req_fixed")["status"] == "failed"

    def test_unknown_request(self):
        assert GenerationService(store=InMemoryStore()).status("req_missing") is None
        assert GenerationService().status("req_missing") is None

    def test_expired_status_is_unknown(self, provider_factory):
        service = GenerationService(provider_factory(), store=InMemoryStore(), status_ttl_seconds=0)
        response = service.generate(request())
        assert service.status(response.request_id) is None

    def test_expire_statuses_removes_old_records(self, provider_factory):
        store = InMemoryStore()
        service = GenerationService(provider_factory(), store=store, status_ttl_seconds=60)
        for _ in range(3):
            service.generate(request())

        assert service.expire_statuses() == 0
        later = datetime.now(timezone.utc) + timedelta(minutes=5)
        assert service.expire_statuses(now=later) == 3
        assert store.keys(REQUESTS) == []


class TestExtractiveText:
    """Sentence selection for the degraded path."""

    def test_first_three_sentences(self):
        assert extractive_text(SOURCES) == (
            "The council approved the budget. Spending rises by 4%. Critics object!"
        )

    def test_text_without_terminator(self):
        text = extractive_text([SourceExcerpt(excerpt="no punctuation here")])
        assert text.startswith("no punctuation here")


class TestConvenience:
    """Prompt building for summarize, qa and reason."""

    def test_summary_length_in_prompt(self, provider_factory, article_factory):
        primary = provider_factory()
        GenerationService(primary).summarize(article_factory("a1"), "short")
        assert "2-3" in primary.prompts[0]

    def test_unknown_length_rejected(self, provider_factory, article_factory):
        with pytest.raises(InvalidRequest):
            GenerationService(provider_factory()).summarize(article_factory("a1"), "epic")

    def test_short_question_rejected(self, provider_factory, article_factory):
        with pytest.raises(InvalidRequest):
            GenerationService(provider_factory()).answer(article_factory("a1"), "why")

    def test_question_in_prompt(self, provider_factory, article_factory):
        primary = provider_factory()
        GenerationService(primary).answer(article_factory("a1"), "Who approved the budget?")
        assert "Who approved the budget?" in primary.prompts[0]

    def test_reason_mentions_preferences(self, provider_factory, article_factory):
        primary = provider_factory()
        profile = UserProfile(user_id="u1", preferred_categories=["technology"])
        GenerationService(primary).explain(article_factory("a1"), profile)
        assert "technology" in primary.prompts[0]

    def test_excerpts_from_paragraphs(self, article_factory):
        article = article_factory("a1", content="First paragraph.\n\nSecond paragraph.", description="Lead.")
        excerpts = article_excerpts(article)
        assert [e.excerpt for e in excerpts] == ["Lead.", "First paragraph.", "Second paragraph."]

    def test_render_unknown_template(self):
        with pytest.raises(ValueError):
            render_prompt("does_not_exist")


class TestLangChainTextProvider:
    """Provider wrapper with the chat model mocked out."""

    def test_unknown_provider(self):
        with pytest.raises(InvalidRequest):
            build_provider("nonexistent")

    def test_empty_provider_name(self):
        assert build_provider("") is None

    def test_missing_api_key_is_retryable(self, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        provider = LangChainTextProvider("deepseek")
        with pytest.raises(UpstreamRetryable) as exc:
            provider.generate("hi", 0.3, 100)
        assert exc.value.kind == FailureKind.SERVICE_UNAVAILABLE

    def test_think_tags_stripped(self):
        provider = LangChainTextProvider("openai", api_key="sk-test")
        message = MagicMock(content="<think>hmm</think> Final answer.", usage_metadata={"total_tokens": 7})
        with patch.object(provider, "get_llm") as get_llm:
            get_llm.return_value.invoke.return_value = message
            result = provider.generate("hi", 0.3, 100)
        assert result.text == "Final answer."
        assert result.tokens_used == 7

    def test_rate_limit_is_classified(self):
        provider = LangChainTextProvider("openai", api_key="sk-test")
        error = Exception("Too Many Requests")
        error.status_code = 429
        with patch.object(provider, "get_llm") as get_llm:
            get_llm.return_value.invoke.side_effect = error
            with pytest.raises(UpstreamRetryable) as exc:
                provider.generate("hi", 0.3, 100)
        assert exc.value.kind == FailureKind.RATE_LIMIT

    def test_empty_content_is_fatal(self):
        provider = LangChainTextProvider("openai", api_key="sk-test")
        with patch.object(provider, "get_llm") as get_llm:
            get_llm.return_value.invoke.return_value = MagicMock(content="")
            with pytest.raises(UpstreamFatal):
                provider.generate("hi", 0.3, 100)

    def test_bad_request_is_not_retryable(self):
        provider = LangChainTextProvider("openai", api_key="sk-test")
        error = Exception("invalid parameter")
        error.status_code = 400
        with patch.object(provider, "get_llm") as get_llm:
            get_llm.return_value.invoke.side_effect = error
            with pytest.raises(ProviderError) as exc:
                provider.generate("hi", 0.3, 100)
        assert not exc.value.retryable
