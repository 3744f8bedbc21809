"""Robot avatar resolution: serve a cached robot image or generate a new one."""

from avatargen.backends import Backend, GeminiBackend, OpenAIBackend, build_backends
from avatargen.config import load_config, resolve_config
from avatargen.errors import AvatarGenError, BackendError, GenerationError, InvalidRequestError
from avatargen.models import (
    Artifact,
    BackendImage,
    FanOutResult,
    GenerationResult,
    MatchResult,
    ProbeResult,
    ReferenceImage,
    TokenUsage,
)
from avatargen.pipeline.resolver import AvatarResolver, build_resolver

__all__ = [
    "Artifact",
    "AvatarGenError",
    "AvatarResolver",
    "Backend",
    "BackendError",
    "BackendImage",
    "FanOutResult",
    "GeminiBackend",
    "GenerationError",
    "GenerationResult",
    "InvalidRequestError",
    "MatchResult",
    "OpenAIBackend",
    "ProbeResult",
    "ReferenceImage",
    "TokenUsage",
    "build_backends",
    "build_resolver",
    "load_config",
    "resolve_config",
]
