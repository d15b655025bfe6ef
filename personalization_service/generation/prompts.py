"""
Prompt templates shipped with the package (``templates/*.md``).
"""

from functools import lru_cache
from pathlib import Path
from typing import Iterable

from langchain_core.prompts import PromptTemplate

from ..models import SourceExcerpt

PROMPTS_DIR = Path(__file__).parent / "templates"

SUMMARY_SENTENCES = {
    "short": "2-3",
    "medium": "3-5",
    "long": "5-8",
}


@lru_cache(maxsize=None)
def load_prompt(name: str) -> PromptTemplate:
    path = PROMPTS_DIR / f"{name}.md"
    if not path.exists():
        raise ValueError(f"Unknown prompt template: {name}")
    return PromptTemplate.from_file(path, encoding="utf-8")


def render_prompt(name: str, **values) -> str:
    return load_prompt(name).format(**values)


def format_sources(sources: Iterable[SourceExcerpt]) -> str:
    lines = []
    for i, source in enumerate(sources, 1):
        label = source.source or f"Source {i}"
        lines.append(f"[{i}] {label}: {source.excerpt}")
    return "\n".join(lines) or "(none)"
