from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

SOURCE_GENERATED = "generated"
SOURCE_REFERENCE = "reference"
SOURCE_SECONDARY_REFERENCE = "secondary_reference"
SOURCE_BACKEND = "backend"

ARTIFACT_SOURCES = (SOURCE_GENERATED, SOURCE_REFERENCE, SOURCE_SECONDARY_REFERENCE)

THINKING_FULL = "full"
THINKING_FAST = "fast"
THINKING_MODES = (THINKING_FULL, THINKING_FAST)

ALL_BACKENDS = "all"

TIER_EXACT = "exact"
TIER_WORD = "word"
TIER_NONE = "none"


@dataclass(frozen=True)
class Artifact:
    name: str
    path: Path
    source: str

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class MatchResult:
    artifacts: tuple[Artifact, ...] = ()
    tier: str = TIER_NONE

    @property
    def is_unique(self) -> bool:
        return not self.artifacts

    @property
    def names(self) -> list[str]:
        return [artifact.name for artifact in self.artifacts]


@dataclass(frozen=True)
class ReferenceImage:
    path: Path
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class BackendImage:
    image_bytes: bytes
    mime_type: str = "image/png"
    usage: dict[str, int] | None = None


@dataclass(frozen=True)
class GenerationRequest:
    concept: str
    backend: str
    thinking: str = THINKING_FULL

    @property
    def fan_out(self) -> bool:
        return self.backend == ALL_BACKENDS


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    image_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    estimated: bool = False


@dataclass
class GenerationResult:
    concept: str
    backend: str
    artifact: Artifact
    image_bytes: bytes
    research: str
    style: str
    token_usage: TokenUsage
    cost: str
    cached: bool
    source: str
    timings: dict[str, float] = field(default_factory=dict)
    matches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "concept": self.concept,
            "backend": self.backend,
            "filename": self.artifact.filename,
            "research": self.research,
            "style": self.style,
            "cached": self.cached,
            "source": self.source,
            "tokenUsage": asdict(self.token_usage),
            "cost": self.cost,
            "timings": dict(self.timings),
            "matches": list(self.matches),
        }


@dataclass
class BackendOutcome:
    backend: str
    result: GenerationResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    def to_dict(self) -> dict[str, Any]:
        if self.result is not None:
            return {"ok": True, **self.result.to_dict()}
        return {"ok": False, "backend": self.backend, "error": self.error}


@dataclass
class FanOutResult:
    concept: str
    outcomes: dict[str, BackendOutcome]

    @property
    def succeeded(self) -> list[str]:
        return [tag for tag, outcome in self.outcomes.items() if outcome.ok]

    @property
    def failed(self) -> list[str]:
        return [tag for tag, outcome in self.outcomes.items() if not outcome.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": bool(self.succeeded),
            "concept": self.concept,
            "results": {tag: outcome.to_dict() for tag, outcome in self.outcomes.items()},
        }


@dataclass
class ProbeResult:
    backend: str
    ok: bool
    message: str
    cost: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
