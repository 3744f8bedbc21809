from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable
from typing import Any

from rich.console import Console

from avatargen.backends import Backend, build_backends
from avatargen.config import library_dirs, resolve_config
from avatargen.errors import InvalidRequestError
from avatargen.models import (
    ALL_BACKENDS,
    SOURCE_GENERATED,
    THINKING_FULL,
    THINKING_MODES,
    BackendOutcome,
    FanOutResult,
    GenerationRequest,
    GenerationResult,
    ProbeResult,
)
from avatargen.pipeline.analysis import (
    DEFAULT_STYLE_GUIDE,
    ConceptResearcher,
    StyleAnalyzer,
    fallback_research,
)
from avatargen.pipeline.cache import CacheHit, CacheStore, now_ms
from avatargen.pipeline.costs import CostAccountant, format_cost
from avatargen.pipeline.dispatch import GenerationDispatcher, PreparedGeneration
from avatargen.pipeline.library import ArtifactLibrary, display_name, timestamp_of
from avatargen.pipeline.matching import find_related
from avatargen.pipeline.prompt import compose_prompt
from avatargen.pipeline.references import load_reference_images, select_references

console = Console()


class AvatarResolver:
    """Cache-or-generate entry point used by the front end."""

    def __init__(
        self,
        config: dict[str, Any],
        backends: dict[str, Backend],
        *,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.backends = backends
        dirs = library_dirs(config)
        self.library = ArtifactLibrary(
            dirs["generated"],
            dirs["reference"],
            dirs["secondary_reference"],
            extensions=config["library"]["extensions"],
        )
        self.cache = CacheStore(self.library, clock=clock)
        self.accountant = CostAccountant(config["pricing"])
        runtime = config["runtime"]
        self.dispatcher = GenerationDispatcher(
            self.cache,
            self.accountant,
            research_display_chars=runtime.get("research_display_chars", 200),
            progress=runtime.get("progress", False),
        )
        self.rng = rng or random.Random(config["selection"].get("seed"))
        analysis = config["analysis"]
        prompt_path = runtime.get("prompt_path")
        self.prompt_path = prompt_path
        self.style_analyzer = StyleAnalyzer(
            self._analysis_chain(analysis.get("vision_backend")),
            max_images=analysis.get("max_images", 8),
            prompt_path=prompt_path,
        )
        self.researcher = ConceptResearcher(
            self._analysis_chain(analysis.get("text_backend")),
            prompt_path=prompt_path,
        )

    async def resolve(
        self,
        concept: str | None,
        backend: str | None = None,
        thinking: str | None = None,
    ) -> GenerationResult | FanOutResult:
        request = self.validate(concept, backend, thinking)
        console.print(f"[cyan]Generating robot for: {request.concept} using {request.backend}[/cyan]")
        if request.fan_out:
            return await self._resolve_all(request)
        return await self._resolve_one(request)

    def validate(self, concept: str | None, backend: str | None, thinking: str | None) -> GenerationRequest:
        if not isinstance(concept, str) or not concept.strip():
            raise InvalidRequestError("Prompt is required")
        runtime = self.config["runtime"]
        backend = backend or runtime.get("default_backend") or next(iter(self.backends), "")
        thinking = thinking or runtime.get("thinking", THINKING_FULL)
        if backend != ALL_BACKENDS and backend not in self.backends:
            known = ", ".join([*self.backends, ALL_BACKENDS])
            raise InvalidRequestError(f"Unknown backend '{backend}'. Expected one of: {known}")
        if backend == ALL_BACKENDS and not self.backends:
            raise InvalidRequestError("No backends are enabled")
        if thinking not in THINKING_MODES:
            modes = ", ".join(THINKING_MODES)
            raise InvalidRequestError(f"Unknown thinking mode '{thinking}'. Expected one of: {modes}")
        return GenerationRequest(concept=concept.strip(), backend=backend, thinking=thinking)

    async def prepare(self, request: GenerationRequest) -> PreparedGeneration:
        started = time.perf_counter()
        artifacts = self.library.list()
        matches = find_related(request.concept, artifacts)
        selection = self.config["selection"]
        paths = select_references(
            matches,
            artifacts,
            cap=selection.get("random_reference_cap", 10),
            rng=self.rng,
        )
        if matches.is_unique:
            console.print("[cyan]No related robots found; treating as a unique concept.[/cyan]")
        else:
            console.print(f"[cyan]Using {len(paths)} related robots as primary references[/cyan]")
        image_cfg = self.config["reference_image"]
        references = await load_reference_images(
            paths,
            max_px=image_cfg.get("max_px", 512),
            jpeg_quality=image_cfg.get("jpeg_quality", 85),
        )
        if request.thinking == THINKING_FULL:
            style, research = await asyncio.gather(
                self.style_analyzer.analyze(references, is_unique=matches.is_unique),
                self.researcher.research(request.concept),
            )
        else:
            style, research = DEFAULT_STYLE_GUIDE, fallback_research(request.concept)
        prompt = compose_prompt(request.concept, style, research, matches, prompt_path=self.prompt_path)
        return PreparedGeneration(
            concept=request.concept,
            prompt=prompt,
            references=references,
            research=research,
            style=style,
            matches=matches.names,
            thinking_s=time.perf_counter() - started,
        )

    async def test_backend(self, backend: str | None = None) -> ProbeResult | dict[str, ProbeResult]:
        tag = backend or self.config["runtime"].get("default_backend") or ""
        if tag == ALL_BACKENDS:
            probes = await asyncio.gather(*(self._probe(item) for item in self.backends.values()))
            return {probe.backend: probe for probe in probes}
        if tag not in self.backends:
            raise InvalidRequestError(f"Unknown backend '{tag}'")
        return await self._probe(self.backends[tag])

    def list_generated(self) -> list[dict[str, str]]:
        artifacts = sorted(
            self.library.scan(SOURCE_GENERATED),
            key=lambda artifact: (timestamp_of(artifact.path.stem) or 0, artifact.filename),
            reverse=True,
        )
        return [{"name": display_name(artifact.filename), "filename": artifact.filename} for artifact in artifacts]

    async def _resolve_one(self, request: GenerationRequest) -> GenerationResult:
        hit = await self.cache.find(request.concept)
        if hit is not None:
            return self._cached_result(request.concept, request.backend, hit)
        console.print("[cyan]No existing robot found, generating new one...[/cyan]")
        prepared = await self.prepare(request)
        return await self.dispatcher.generate(self.backends[request.backend], prepared)

    async def _resolve_all(self, request: GenerationRequest) -> FanOutResult:
        outcomes: dict[str, BackendOutcome] = {}
        pending: list[Backend] = []
        for tag, backend in self.backends.items():
            hit = await self.cache.find(request.concept, tag)
            if hit is not None:
                outcomes[tag] = BackendOutcome(tag, result=self._cached_result(request.concept, tag, hit))
            else:
                pending.append(backend)

        if pending:
            prepared = await self.prepare(request)
            generated = await self.dispatcher.fan_out(pending, prepared)
            for tag, outcome in generated.items():
                if isinstance(outcome, BaseException):
                    outcomes[tag] = BackendOutcome(tag, error=str(outcome) or type(outcome).__name__)
                else:
                    outcomes[tag] = BackendOutcome(tag, result=outcome)

        return FanOutResult(request.concept, {tag: outcomes[tag] for tag in self.backends})

    def _cached_result(self, concept: str, backend: str, hit: CacheHit) -> GenerationResult:
        usage = self.accountant.cached()
        return GenerationResult(
            concept=concept,
            backend=backend,
            artifact=hit.artifact,
            image_bytes=hit.image_bytes,
            research=f"Using existing {hit.source.replace('_', ' ')} robot for {concept}",
            style="",
            token_usage=usage,
            cost=format_cost(usage.estimated_cost),
            cached=True,
            source=hit.source,
            timings={"thinking_s": 0.0, "generation_s": 0.0},
        )

    async def _probe(self, backend: Backend) -> ProbeResult:
        console.print(f"[cyan]Testing {backend.label}...[/cyan]")
        try:
            message = await backend.probe()
        except Exception as exc:  # noqa: BLE001 - reported to the caller
            console.print(f"[red]{backend.label} test failed: {exc}[/red]")
            return ProbeResult(backend.tag, False, f"{backend.label} test failed: {exc}", format_cost(0.0))
        return ProbeResult(backend.tag, True, message, format_cost(self.accountant.probe_cost(backend.tag)))

    def _analysis_chain(self, primary: str | None) -> list[Backend]:
        chain: list[Backend] = []
        for tag in (primary, self.config["analysis"].get("fallback_backend")):
            backend = self.backends.get(tag) if tag else None
            if backend is not None and backend not in chain:
                chain.append(backend)
        if not chain and self.backends:
            chain.append(next(iter(self.backends.values())))
        return chain


def build_resolver(
    config: dict[str, Any] | None = None,
    *,
    backends: dict[str, Backend] | None = None,
    environ: dict[str, str] | None = None,
    rng: random.Random | None = None,
    clock: Callable[[], int] = now_ms,
) -> AvatarResolver:
    resolved = resolve_config(config)
    if backends is None:
        backends = build_backends(resolved, environ=environ)
    return AvatarResolver(resolved, backends, rng=rng, clock=clock)
