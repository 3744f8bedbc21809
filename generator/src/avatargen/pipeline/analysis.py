from __future__ import annotations

from pathlib import Path

from rich.console import Console

from avatargen.backends import Backend
from avatargen.models import ReferenceImage
from avatargen.utils.prompts import render_prompt

console = Console()

DEFAULT_STYLE_GUIDE = """Create a robot in a retro-futuristic style with:
- Weathered, matte metal surfaces with visible wear and patina
- Rounded, friendly proportions
- Large expressive eyes with subtle glow
- Muted color palette
- Visible mechanical details like joints, panels, and rivets
- Soft studio lighting on white background
- 3/4 view angle facing slightly left"""

STYLE_INSTRUCTIONS = "You are an expert art director analyzing robot designs to extract their visual style."

RESEARCH_INSTRUCTIONS = (
    "You are a helpful assistant that researches programming languages and technical concepts "
    "to understand their visual identity, brand colors, and key characteristics."
)


def fallback_research(concept: str) -> str:
    return f"Creating a robot for {concept}"


class StyleAnalyzer:
    def __init__(
        self,
        backends: list[Backend],
        *,
        max_images: int = 8,
        prompt_path: str | Path | None = None,
    ):
        self.backends = backends
        self.max_images = max_images
        self.prompt_path = prompt_path

    async def analyze(self, references: list[ReferenceImage], *, is_unique: bool) -> str:
        images = references[: self.max_images]
        if not images:
            console.print("[yellow]No reference images could be loaded; using default style.[/yellow]")
            return DEFAULT_STYLE_GUIDE
        template = "style_unique.jinja" if is_unique else "style_known.jinja"
        prompt = render_prompt(template, prompt_path=self.prompt_path)
        console.print(f"[cyan]Analyzing {len(images)} reference images for style...[/cyan]")
        for backend in self.backends:
            try:
                text = await backend.analyze(prompt, images, instructions=STYLE_INSTRUCTIONS)
            except Exception as exc:  # noqa: BLE001 - analysis never blocks generation
                console.print(f"[yellow]Style analysis with {backend.tag} failed: {exc}[/yellow]")
                continue
            if text:
                console.print(f"[green]Style analysis completed with {backend.tag}[/green]")
                return text
            console.print(f"[yellow]Style analysis with {backend.tag} returned no text.[/yellow]")
        return DEFAULT_STYLE_GUIDE


class ConceptResearcher:
    def __init__(self, backends: list[Backend], *, prompt_path: str | Path | None = None):
        self.backends = backends
        self.prompt_path = prompt_path

    async def research(self, concept: str) -> str:
        prompt = render_prompt("research.jinja", prompt_path=self.prompt_path, concept=concept)
        for backend in self.backends:
            console.print(f"[cyan]Researching: {concept} using {backend.tag}[/cyan]")
            try:
                text = await backend.complete(prompt, instructions=RESEARCH_INSTRUCTIONS)
            except Exception as exc:  # noqa: BLE001 - research never blocks generation
                console.print(f"[yellow]Research with {backend.tag} failed: {exc}[/yellow]")
                continue
            if text:
                console.print(f"[green]Research completed with {backend.tag}[/green]")
                return text
            console.print(f"[yellow]Research with {backend.tag} returned no text.[/yellow]")
        return fallback_research(concept)
