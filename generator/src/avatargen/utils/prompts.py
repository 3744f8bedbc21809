from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined


def _default_prompt_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "prompts"


@lru_cache(maxsize=8)
def _environment(prompt_dir: str) -> Environment:
    return Environment(
        loader=FileSystemLoader(prompt_dir),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
        undefined=StrictUndefined,
    )


def render_prompt(template_name: str, prompt_path: str | Path | None = None, **kwargs: Any) -> str:
    prompt_dir = Path(prompt_path).expanduser().resolve() if prompt_path else _default_prompt_dir()
    template = _environment(str(prompt_dir)).get_template(template_name)
    return template.render(**kwargs).strip() + "\n"
