"""
Cache keys and per-kind TTLs.
"""

import hashlib
import json
from typing import Any, Optional

from ..models import GenerationKind

SUMMARIZE = GenerationKind.SUMMARIZE.value
QA = GenerationKind.QA.value
REASON = GenerationKind.REASON.value
RECOMMENDATIONS = "recommendations"

KINDS = (SUMMARIZE, QA, REASON, RECOMMENDATIONS)

DEFAULT_GENERATION_TTL_HOURS = 24
DEFAULT_RECOMMENDATION_TTL_HOURS = 1


def make_key(kind: str, **params: Any) -> str:
    """Deterministic key: the kind plus a sha256 of the canonical JSON params."""
    if kind not in KINDS:
        raise ValueError(f"Unknown cache kind: {kind}")
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return f"{kind}:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"


def ttl_for(kind: str, cache_config: Optional[Any] = None) -> float:
    """TTL in seconds for a result kind."""
    if kind == RECOMMENDATIONS:
        hours = getattr(cache_config, "recommendation_ttl_hours", DEFAULT_RECOMMENDATION_TTL_HOURS)
    elif kind in (SUMMARIZE, QA, REASON):
        hours = getattr(cache_config, "summary_ttl_hours", DEFAULT_GENERATION_TTL_HOURS)
    else:
        raise ValueError(f"Unknown cache kind: {kind}")
    return float(hours) * 3600.0
