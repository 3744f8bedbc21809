from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from avatargen.schemas import CONFIG_SCHEMA


DEFAULT_CONFIG = {
    "library": {
        "root": ".",
        "generated_dir": "Generated",
        "reference_dir": "Reference Images",
        "secondary_reference_dir": "Reference Images 2",
        "extensions": [".png", ".jpg", ".jpeg", ".webp"],
    },
    "selection": {
        "random_reference_cap": 10,
        "seed": None,
    },
    "reference_image": {
        "max_px": 512,
        "jpeg_quality": 85,
    },
    "analysis": {
        "max_images": 8,
        "vision_backend": "openai",
        "text_backend": "openai",
        "fallback_backend": "google",
    },
    "backends": {
        "openai": {
            "enabled": True,
            "label": "OpenAI GPT-4o",
            "api_key_env": "OPENAI_API_KEY",
            "base_url": "https://api.openai.com/v1",
            "text_model": "gpt-4o",
            "vision_model": "gpt-4o",
            "image_model": "gpt-4o",
            "image_size": "1024x1024",
            "image_quality": "high",
            "input_fidelity": "high",
            "max_reference_images": 10,
            "max_output_tokens": 500,
            "timeout_s": 300,
        },
        "google": {
            "enabled": True,
            "label": "Google Gemini 2.5 Flash Image",
            "api_key_env": "GOOGLE_API_KEY",
            "text_model": "gemini-2.0-flash-exp",
            "vision_model": "gemini-2.0-flash-exp",
            "image_model": "gemini-2.5-flash-image-preview",
            "max_reference_images": 3,
        },
    },
    "pricing": {
        "openai": {
            "input_per_million": 10.0,
            "output_per_million": 40.0,
            "image_per_million": 40.0,
            "image_tokens": 4160,
            "assumed_prompt_tokens": 500,
            "probe_cost": 0.0001,
        },
        "google": {
            "input_per_million": 0.0,
            "output_per_million": 0.0,
            "image_per_million": 30.0,
            "image_tokens": 1290,
            "assumed_prompt_tokens": 0,
            "probe_cost": 0.039,
        },
    },
    "runtime": {
        "default_backend": "openai",
        "thinking": "full",
        "research_display_chars": 200,
        "progress": False,
        "prompt_path": None,
    },
}


@dataclass
class ResolvedConfig:
    data: dict[str, Any]
    source_path: Path


def load_config(path: Path) -> ResolvedConfig:
    path = path.expanduser().resolve()
    with path.open("r", encoding="utf-8") as handle:
        user_cfg = yaml.safe_load(handle) or {}
    merged = _deep_merge(DEFAULT_CONFIG, user_cfg)
    root = Path(merged["library"].get("root") or ".").expanduser()
    if not root.is_absolute():
        merged["library"]["root"] = str(path.parent / root)
    validate_config(merged)
    return ResolvedConfig(data=merged, source_path=path)


def resolve_config(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Resolve a config dict by applying overrides to defaults."""
    base = deepcopy(DEFAULT_CONFIG)
    if overrides:
        base = _deep_merge(base, overrides)
    validate_config(base)
    return base


def validate_config(config: dict[str, Any]) -> None:
    Draft202012Validator(CONFIG_SCHEMA).validate(config)
    pricing = config.get("pricing", {})
    for tag in enabled_backend_tags(config):
        if tag not in pricing:
            raise ValueError(f"No pricing entry configured for backend '{tag}'.")


def enabled_backend_tags(config: dict[str, Any]) -> list[str]:
    return [tag for tag, cfg in config.get("backends", {}).items() if cfg.get("enabled", True)]


def library_dirs(config: dict[str, Any]) -> dict[str, Path]:
    library = config["library"]
    root = Path(library.get("root") or ".").expanduser()
    return {
        "generated": root / library["generated_dir"],
        "reference": root / library["reference_dir"],
        "secondary_reference": root / library["secondary_reference_dir"],
    }


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key in [*base, *(key for key in override if key not in base)]:
        if key in base and key in override:
            if isinstance(base[key], dict) and isinstance(override[key], dict):
                result[key] = _deep_merge(base[key], override[key])
            else:
                result[key] = override[key]
        elif key in base:
            result[key] = deepcopy(base[key])
        else:
            result[key] = override[key]
    return result
