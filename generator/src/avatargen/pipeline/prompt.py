from __future__ import annotations

from pathlib import Path

from avatargen.models import MatchResult
from avatargen.utils.prompts import render_prompt

IDENTITY_DIRECTIVE = "MUST maintain the CORE VISUAL IDENTITY"
ORIGINALITY_DIRECTIVE = "must NOT resemble any of the reference robots"


def compose_prompt(
    concept: str,
    style_guide: str,
    research: str,
    matches: MatchResult,
    *,
    prompt_path: str | Path | None = None,
) -> str:
    return render_prompt(
        "generation.jinja",
        prompt_path=prompt_path,
        concept=concept.strip(),
        related=matches.names,
        style_guide=style_guide.strip(),
        research=research.strip(),
    )
