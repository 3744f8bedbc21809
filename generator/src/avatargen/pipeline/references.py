from __future__ import annotations

import asyncio
import io
import random
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rich.console import Console

from avatargen.models import Artifact, MatchResult, ReferenceImage

console = Console()


def select_references(
    matches: MatchResult,
    library: list[Artifact],
    *,
    cap: int = 10,
    rng: random.Random | None = None,
) -> list[Path]:
    if not matches.is_unique:
        return _dedupe(artifact.path for artifact in matches.artifacts)
    pool = _dedupe(artifact.path for artifact in library)
    count = min(max(cap, 0), len(pool))
    selected = (rng or random.Random()).sample(pool, count)
    console.print(f"[cyan]Selected {len(selected)} random reference images from {len(pool)} total[/cyan]")
    return selected


async def load_reference_images(
    paths: list[Path],
    *,
    max_px: int = 512,
    jpeg_quality: int = 85,
) -> list[ReferenceImage]:
    loaded = await asyncio.gather(
        *(asyncio.to_thread(_prepare_reference, path, max_px, jpeg_quality) for path in paths)
    )
    return [image for image in loaded if image is not None]


def _prepare_reference(path: Path, max_px: int, jpeg_quality: int) -> ReferenceImage | None:
    try:
        with Image.open(path) as image:
            image.thumbnail((max_px, max_px))
            buffer = io.BytesIO()
            _flatten(image).save(buffer, format="JPEG", quality=jpeg_quality)
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as exc:
        console.print(f"[yellow]Failed to process reference image {path}: {exc}[/yellow]")
        return None
    return ReferenceImage(path=path, data=buffer.getvalue(), mime_type="image/jpeg")


def _flatten(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def _dedupe(paths) -> list[Path]:
    seen: set[Path] = set()
    deduped: list[Path] = []
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        deduped.append(path)
    return deduped
