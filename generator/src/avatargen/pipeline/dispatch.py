from __future__ import annotations

import time
from dataclasses import dataclass, field

from rich.console import Console

from avatargen.backends import Backend
from avatargen.errors import GenerationError
from avatargen.models import SOURCE_BACKEND, GenerationResult, ReferenceImage
from avatargen.pipeline.cache import CacheStore, extension_for
from avatargen.pipeline.costs import CostAccountant, format_cost
from avatargen.utils.parallel import gather_settled

console = Console()


@dataclass
class PreparedGeneration:
    concept: str
    prompt: str
    references: list[ReferenceImage]
    research: str
    style: str
    matches: list[str] = field(default_factory=list)
    thinking_s: float = 0.0


class GenerationDispatcher:
    def __init__(
        self,
        cache: CacheStore,
        accountant: CostAccountant,
        *,
        research_display_chars: int = 200,
        progress: bool = False,
    ):
        self.cache = cache
        self.accountant = accountant
        self.research_display_chars = research_display_chars
        self.progress = progress

    async def generate(
        self,
        backend: Backend,
        prepared: PreparedGeneration,
        *,
        tag_filename: bool = False,
    ) -> GenerationResult:
        references = prepared.references[: backend.max_reference_images]
        console.print(
            f"[cyan]Generating '{prepared.concept}' with {backend.label} "
            f"using {len(references)} reference images[/cyan]"
        )
        started = time.perf_counter()
        image = await backend.generate(prepared.prompt, references)
        generation_s = time.perf_counter() - started
        if not image.image_bytes:
            raise GenerationError(backend.tag, "no image data returned")

        usage = self.accountant.estimate(backend.tag, image.usage)
        artifact = await self.cache.persist(
            prepared.concept,
            image.image_bytes,
            extension_for(image.mime_type),
            backend.tag if tag_filename else None,
        )
        cost = format_cost(usage.estimated_cost)
        console.print(
            f"[green]{backend.label} generation completed[/green] "
            f"({usage.image_tokens} image tokens, cost {cost}{' estimated' if usage.estimated else ''})"
        )
        return GenerationResult(
            concept=prepared.concept,
            backend=backend.tag,
            artifact=artifact,
            image_bytes=image.image_bytes,
            research=self.truncate_research(prepared.research),
            style=prepared.style,
            token_usage=usage,
            cost=cost,
            cached=False,
            source=SOURCE_BACKEND,
            timings={"thinking_s": round(prepared.thinking_s, 3), "generation_s": round(generation_s, 3)},
            matches=list(prepared.matches),
        )

    async def fan_out(
        self,
        backends: list[Backend],
        prepared: PreparedGeneration,
    ) -> dict[str, GenerationResult | BaseException]:
        outcomes = await gather_settled(
            [
                lambda backend=backend: self.generate(backend, prepared, tag_filename=True)
                for backend in backends
            ],
            progress_desc="Backends" if self.progress else None,
        )
        for backend, outcome in zip(backends, outcomes):
            if isinstance(outcome, BaseException):
                console.print(f"[red]{backend.label} generation failed: {outcome}[/red]")
        return {backend.tag: outcome for backend, outcome in zip(backends, outcomes)}

    def truncate_research(self, research: str) -> str:
        limit = self.research_display_chars
        if limit <= 0 or len(research) <= limit:
            return research
        return research[:limit] + "..."
