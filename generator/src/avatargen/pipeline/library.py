from __future__ import annotations

import re
from pathlib import Path

from rich.console import Console

from avatargen.models import (
    ARTIFACT_SOURCES,
    SOURCE_GENERATED,
    SOURCE_REFERENCE,
    SOURCE_SECONDARY_REFERENCE,
    Artifact,
)

console = Console()

DEFAULT_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_TIMESTAMP_SUFFIX = re.compile(r"_(\d{13})$")


def normalize_clean(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def normalize_underscored(text: str) -> str:
    return _NON_ALNUM.sub("_", text.lower())


def strip_timestamp(stem: str) -> str:
    return _TIMESTAMP_SUFFIX.sub("", stem)


def timestamp_of(stem: str) -> int | None:
    match = _TIMESTAMP_SUFFIX.search(stem)
    return int(match.group(1)) if match else None


def display_name(filename: str) -> str:
    return strip_timestamp(Path(filename).stem).replace("_", " ")


class ArtifactLibrary:
    def __init__(
        self,
        generated_dir: Path,
        reference_dir: Path,
        secondary_reference_dir: Path,
        *,
        extensions: tuple[str, ...] | list[str] = DEFAULT_EXTENSIONS,
    ):
        self.dirs = {
            SOURCE_GENERATED: Path(generated_dir),
            SOURCE_REFERENCE: Path(reference_dir),
            SOURCE_SECONDARY_REFERENCE: Path(secondary_reference_dir),
        }
        self.extensions = {ext.lower() for ext in extensions}

    @property
    def generated_dir(self) -> Path:
        return self.dirs[SOURCE_GENERATED]

    def list(self) -> list[Artifact]:
        artifacts: list[Artifact] = []
        for source in ARTIFACT_SOURCES:
            artifacts.extend(self.scan(source))
        return artifacts

    def scan(self, source: str) -> list[Artifact]:
        directory = self.dirs[source]
        try:
            files = sorted(path for path in directory.iterdir() if self.is_image(path))
        except OSError as exc:
            console.print(f"[yellow]Could not read {source} collection at {directory}: {exc}[/yellow]")
            return []
        artifacts = []
        for path in files:
            name = strip_timestamp(path.stem) if source == SOURCE_GENERATED else path.stem
            artifacts.append(Artifact(name=name, path=path, source=source))
        return artifacts

    def is_image(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions and path.is_file()
