"""
Generation service: primary provider, one fallback provider, then extractive text.

Each request walks an explicit state machine:

    PRIMARY_ATTEMPT --success--> DONE
    PRIMARY_ATTEMPT --retryable failure--> FALLBACK_ATTEMPT
    PRIMARY_ATTEMPT --malformed response--> EXTRACTIVE_FALLBACK
    PRIMARY_ATTEMPT --invalid request--> raise InvalidRequest
    FALLBACK_ATTEMPT --success--> DONE
    FALLBACK_ATTEMPT --any failure--> EXTRACTIVE_FALLBACK
    EXTRACTIVE_FALLBACK --> DONE

Upstream failures never escape as exceptions; the degradation shows up in
``confidence`` and ``provider_fallback_used`` instead.
"""

import hashlib
import logging
import re
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..errors import FailureKind, InvalidRequest, ProviderError, UpstreamFatal
from ..models import (
    ArticleRecord,
    Confidence,
    GenerationRequest,
    GenerationResponse,
    SourceExcerpt,
    UserProfile,
    utc_now,
)
from ..models.utils import format_timestamp, parse_timestamp
from ..storage import REQUESTS, Store
from .prompts import SUMMARY_SENTENCES, format_sources, render_prompt
from .providers import ProviderResult, TextProvider

_LOG = logging.getLogger("generation")

EXTRACTIVE_MODEL = "extractive/first-sentences"
UNABLE_TO_GENERATE = "Unable to generate a response at this time. Please try again later."
EXTRACTIVE_SENTENCES = 3
EXTRACTIVE_CHAR_FALLBACK = 200
MAX_EXCERPTS = 5
MIN_QUESTION_CHARS = 5
STATUS_TTL_SECONDS = 3600

_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+")


class GenerationState(Enum):
    PRIMARY_ATTEMPT = "primary_attempt"
    FALLBACK_ATTEMPT = "fallback_attempt"
    EXTRACTIVE_FALLBACK = "extractive_fallback"
    DONE = "done"


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def extractive_text(sources: List[SourceExcerpt]) -> str:
    """First sentences of the concatenated excerpts, or the fixed apology."""
    text = " ".join(s.excerpt.strip() for s in sources if s.excerpt and s.excerpt.strip())
    if not text:
        return UNABLE_TO_GENERATE
    sentences = [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip(" .!?")]
    if not sentences:
        return text[:EXTRACTIVE_CHAR_FALLBACK] + "..."
    return " ".join(sentences[:EXTRACTIVE_SENTENCES])


def article_excerpts(article: ArticleRecord, limit: int = MAX_EXCERPTS, max_chars: int = 600) -> List[SourceExcerpt]:
    """Split an article into paragraph-sized excerpts for citation and fallback."""
    body = article.content or article.description or ""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", body) if p.strip()]
    if article.description and article.content and article.description.strip() not in paragraphs:
        paragraphs.insert(0, article.description.strip())
    source = article.source or article.title or article.id
    return [SourceExcerpt(source=source, url=article.url, excerpt=p[:max_chars]) for p in paragraphs[:limit]]


class GenerationService:
    """Runs prompts through the provider chain with memoization and status tracking."""

    def __init__(
        self,
        primary: Optional[TextProvider] = None,
        fallback: Optional[TextProvider] = None,
        store: Optional[Store] = None,
        memo_prefix_chars: int = 100,
        memo_size: int = 512,
        max_input_chars: int = 8000,
        status_ttl_seconds: float = STATUS_TTL_SECONDS,
    ):
        self.primary = primary
        self.fallback = fallback
        self.store = store
        self.memo_prefix_chars = memo_prefix_chars
        self.memo_size = memo_size
        self.max_input_chars = max_input_chars
        self.status_ttl = timedelta(seconds=status_ttl_seconds)
        self._memo: "OrderedDict[Tuple[str, str, str, str], ProviderResult]" = OrderedDict()
        self._memo_lock = threading.Lock()

    # Memo -------------------------------------------------------------------

    def _memo_key(self, provider: TextProvider, prompt: str) -> Tuple[str, str, str, str]:
        normalized = " ".join(prompt.lower().split())
        digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
        return (provider.name, provider.model, normalized[: self.memo_prefix_chars], digest)

    def _memo_get(self, key) -> Optional[ProviderResult]:
        with self._memo_lock:
            result = self._memo.get(key)
            if result is not None:
                self._memo.move_to_end(key)
            return result

    def _memo_put(self, key, result: ProviderResult) -> None:
        with self._memo_lock:
            self._memo[key] = result
            self._memo.move_to_end(key)
            while len(self._memo) > self.memo_size:
                self._memo.popitem(last=False)

    def clear_memo(self) -> None:
        with self._memo_lock:
            self._memo.clear()

    def _call(self, provider: TextProvider, request: GenerationRequest, request_id: str) -> ProviderResult:
        key = self._memo_key(provider, request.prompt)
        cached = self._memo_get(key)
        if cached is not None:
            _LOG.debug("Memo hit for %s/%s (%s)", provider.name, provider.model, request_id)
            return cached
        _LOG.info("Calling %s/%s for %s", provider.name, provider.model, request_id)
        result = provider.generate(request.prompt, request.temperature, request.max_tokens)
        if not isinstance(result.text, str) or not result.text.strip():
            raise UpstreamFatal(FailureKind.MALFORMED_RESPONSE, provider.name, "Empty completion")
        self._memo_put(key, result)
        return result

    # Status -------------------------------------------------------------------

    def _set_status(self, request_id: str, value: Dict[str, Any]) -> None:
        if self.store is None:
            return
        try:
            self.store.put(REQUESTS, request_id, {**value, "updated_at": format_timestamp(utc_now())})
        except Exception as e:
            _LOG.warning("Could not record status for %s: %s", request_id, e)

    def _status_expired(self, record: Dict[str, Any], now: datetime) -> bool:
        updated = parse_timestamp(record.get("updated_at"))
        return updated is None or now - updated >= self.status_ttl

    def status(self, request_id: str) -> Optional[Dict[str, Any]]:
        """Return the recorded status of a request, or None when unknown or expired."""
        if self.store is None:
            return None
        try:
            record = self.store.get(REQUESTS, request_id)
        except Exception as e:
            _LOG.warning("Could not read status for %s: %s", request_id, e)
            return None
        if record is None or self._status_expired(record, utc_now()):
            return None
        return record

    def expire_statuses(self, now: Optional[datetime] = None) -> int:
        """Delete status records older than the status TTL. Returns the number removed."""
        if self.store is None:
            return 0
        now = now or utc_now()
        try:
            expired = self.store.query(REQUESTS, lambda record: self._status_expired(record, now))
        except Exception as e:
            _LOG.warning("Could not scan status records: %s", e)
            return 0
        removed = 0
        for request_id, _ in expired:
            try:
                if self.store.delete(REQUESTS, request_id):
                    removed += 1
            except Exception as e:
                _LOG.warning("Could not delete status for %s: %s", request_id, e)
        if removed:
            _LOG.debug("Expired %d status records", removed)
        return removed

    # State machine ------------------------------------------------------------

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run one request through the provider chain.

        Raises:
            InvalidRequest: the primary provider rejected the request as malformed
        """
        request_id = request.request_id or new_request_id()
        self._set_status(request_id, {"status": "pending"})

        state = GenerationState.PRIMARY_ATTEMPT
        response: Optional[GenerationResponse] = None
        while state != GenerationState.DONE:
            if state == GenerationState.PRIMARY_ATTEMPT:
                if self.primary is None:
                    state = GenerationState.FALLBACK_ATTEMPT
                    continue
                try:
                    result = self._call(self.primary, request, request_id)
                    response = self._provider_response(request, request_id, self.primary, result, False)
                    state = GenerationState.DONE
                except UpstreamFatal as e:
                    _LOG.warning("Primary %s returned malformed output for %s: %s", e.provider, request_id, e)
                    state = GenerationState.EXTRACTIVE_FALLBACK
                except ProviderError as e:
                    if e.kind == FailureKind.MALFORMED_RESPONSE:
                        _LOG.warning("Primary %s returned malformed output for %s: %s", e.provider, request_id, e)
                        state = GenerationState.EXTRACTIVE_FALLBACK
                        continue
                    if not e.retryable:
                        _LOG.error("Primary %s rejected %s (%s): %s", e.provider, request_id, e.kind.value, e)
                        self._set_status(request_id, {"status": "failed", "error": str(e)})
                        raise InvalidRequest(str(e)) from e
                    _LOG.warning("Primary %s failed for %s (%s), trying fallback", e.provider, request_id, e.kind.value)
                    state = GenerationState.FALLBACK_ATTEMPT

            elif state == GenerationState.FALLBACK_ATTEMPT:
                if self.fallback is None:
                    state = GenerationState.EXTRACTIVE_FALLBACK
                    continue
                try:
                    result = self._call(self.fallback, request, request_id)
                    response = self._provider_response(request, request_id, self.fallback, result, True)
                    state = GenerationState.DONE
                except ProviderError as e:
                    _LOG.warning("Fallback %s failed for %s (%s)", e.provider, request_id, e.kind.value)
                    state = GenerationState.EXTRACTIVE_FALLBACK

            elif state == GenerationState.EXTRACTIVE_FALLBACK:
                _LOG.warning("Using extractive fallback for %s", request_id)
                response = GenerationResponse(
                    text=extractive_text(request.sources),
                    model_used=EXTRACTIVE_MODEL,
                    tokens_used=0,
                    sources=request.sources,
                    request_id=request_id,
                    confidence=Confidence.LOW,
                    provider_fallback_used=True,
                )
                state = GenerationState.DONE

        self._set_status(request_id, {"status": "completed", "result": response.to_api()})
        return response

    @staticmethod
    def _provider_response(
        request: GenerationRequest,
        request_id: str,
        provider: TextProvider,
        result: ProviderResult,
        fallback_used: bool,
    ) -> GenerationResponse:
        return GenerationResponse(
            text=result.text,
            model_used=provider.model,
            tokens_used=result.tokens_used,
            sources=request.sources,
            request_id=request_id,
            confidence=Confidence.HIGH,
            provider_fallback_used=fallback_used,
        )

    # Convenience --------------------------------------------------------------

    def _content(self, article: ArticleRecord) -> str:
        return (article.content or article.description or "")[: self.max_input_chars]

    def summarize(
        self,
        article: ArticleRecord,
        length: str = "medium",
        sources: Optional[List[SourceExcerpt]] = None,
        request_id: Optional[str] = None,
    ) -> GenerationResponse:
        if length not in SUMMARY_SENTENCES:
            raise InvalidRequest(f"length must be one of {', '.join(SUMMARY_SENTENCES)}")
        sources = sources if sources is not None else article_excerpts(article)
        prompt = render_prompt(
            "summarize",
            sentences=SUMMARY_SENTENCES[length],
            title=article.title,
            category=article.category,
            content=self._content(article),
            sources=format_sources(sources),
        )
        return self.generate(GenerationRequest(prompt=prompt, sources=sources, request_id=request_id))

    def answer(
        self,
        article: ArticleRecord,
        question: str,
        sources: Optional[List[SourceExcerpt]] = None,
        request_id: Optional[str] = None,
    ) -> GenerationResponse:
        question = (question or "").strip()
        if len(question) < MIN_QUESTION_CHARS:
            raise InvalidRequest(f"question must be at least {MIN_QUESTION_CHARS} characters")
        sources = sources if sources is not None else article_excerpts(article)
        prompt = render_prompt(
            "qa",
            title=article.title,
            content=self._content(article),
            sources=format_sources(sources),
            question=question,
        )
        return self.generate(GenerationRequest(prompt=prompt, sources=sources, request_id=request_id))

    def explain(
        self,
        article: ArticleRecord,
        profile: UserProfile,
        request_id: Optional[str] = None,
    ) -> GenerationResponse:
        recent = [c for c in profile.recent_categories() if c]
        prompt = render_prompt(
            "reason",
            preferred_categories=", ".join(profile.preferred_categories) or "none yet",
            interests=", ".join(profile.stated_interests) or "none stated",
            recent_categories=", ".join(dict.fromkeys(recent)) or "none yet",
            title=article.title,
            category=article.category,
            description=article.description or self._content(article)[:300],
        )
        sources = [SourceExcerpt(source=article.source or article.title, url=article.url, excerpt=article.description)]
        return self.generate(
            GenerationRequest(prompt=prompt, sources=sources, max_tokens=120, request_id=request_id)
        )
