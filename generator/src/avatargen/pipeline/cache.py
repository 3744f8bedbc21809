from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from rich.console import Console

from avatargen.models import (
    SOURCE_GENERATED,
    SOURCE_REFERENCE,
    SOURCE_SECONDARY_REFERENCE,
    Artifact,
)
from avatargen.pipeline.library import (
    ArtifactLibrary,
    normalize_clean,
    normalize_underscored,
    strip_timestamp,
    timestamp_of,
)
from avatargen.utils.io import read_bytes_async, write_bytes_exclusive_async

console = Console()

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}


def artifact_stem(concept: str, backend_tag: str | None = None) -> str:
    stem = normalize_underscored(concept.strip())
    return f"{stem}_{backend_tag}" if backend_tag else stem


def now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class CacheHit:
    artifact: Artifact
    image_bytes: bytes
    source: str


class CacheStore:
    def __init__(self, library: ArtifactLibrary, *, clock: Callable[[], int] = now_ms):
        self.library = library
        self.clock = clock

    async def find(self, concept: str, backend_tag: str | None = None) -> CacheHit | None:
        wanted = artifact_stem(concept, backend_tag)
        generated = self._find_generated(wanted)
        if generated is not None:
            console.print(f"[green]Found existing generated robot: {generated.filename}[/green]")
            return CacheHit(generated, await read_bytes_async(generated.path), SOURCE_GENERATED)

        concept_clean = normalize_clean(concept)
        if not concept_clean:
            return None
        for source in (SOURCE_REFERENCE, SOURCE_SECONDARY_REFERENCE):
            for artifact in self.library.scan(source):
                if normalize_clean(artifact.name) != concept_clean:
                    continue
                console.print(f"[green]Found existing {source} robot: {artifact.filename}[/green]")
                data = await read_bytes_async(artifact.path)
                promoted = await self.persist(concept, data, artifact.path.suffix.lower(), backend_tag)
                return CacheHit(promoted, data, source)
        return None

    async def persist(
        self,
        concept: str,
        data: bytes,
        extension: str = ".png",
        backend_tag: str | None = None,
    ) -> Artifact:
        stem = artifact_stem(concept, backend_tag)
        stamp = self.clock()
        while True:
            path = self.library.generated_dir / f"{stem}_{stamp:013d}{extension}"
            try:
                await write_bytes_exclusive_async(path, data)
            except FileExistsError:
                stamp += 1
                continue
            console.print(f"[green]Image saved as: {path.name}[/green]")
            return Artifact(name=stem, path=path, source=SOURCE_GENERATED)

    def _find_generated(self, wanted: str) -> Artifact | None:
        candidates = [
            artifact
            for artifact in self.library.scan(SOURCE_GENERATED)
            if artifact.path.stem.lower() == wanted or strip_timestamp(artifact.path.stem.lower()) == wanted
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda artifact: (timestamp_of(artifact.path.stem) or 0, artifact.filename))


def extension_for(mime_type: str | None) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").lower(), ".png")
