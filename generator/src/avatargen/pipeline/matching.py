from __future__ import annotations

import re

from rich.console import Console

from avatargen.models import TIER_EXACT, TIER_NONE, TIER_WORD, Artifact, MatchResult
from avatargen.pipeline.library import normalize_clean

console = Console()

_WORD_SPLIT = re.compile(r"[\s\-_,&+]+")
MIN_WORD_LENGTH = 2


def split_concept_words(concept: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(concept.lower()) if word]


def find_related(concept: str, artifacts: list[Artifact]) -> MatchResult:
    concept_clean = normalize_clean(concept)
    if concept_clean:
        for artifact in artifacts:
            if normalize_clean(artifact.name) == concept_clean:
                console.print(f"[cyan]Found exact match: {artifact.name}[/cyan]")
                return MatchResult(artifacts=(artifact,), tier=TIER_EXACT)

    found: list[Artifact] = []
    seen: set[str] = set()
    for word in split_concept_words(concept):
        word_clean = normalize_clean(word)
        if len(word_clean) < MIN_WORD_LENGTH or word_clean in seen:
            continue
        for artifact in artifacts:
            if normalize_clean(artifact.name) == word_clean:
                seen.add(word_clean)
                found.append(artifact)
                console.print(f"[cyan]Found base match: {artifact.name}[/cyan]")
                break

    if found:
        return MatchResult(artifacts=tuple(found), tier=TIER_WORD)
    return MatchResult(tier=TIER_NONE)
