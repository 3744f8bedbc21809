from __future__ import annotations

import abc
import base64
import os
from typing import Any

from google import genai
from google.genai import types
from rich.console import Console

from avatargen.config import enabled_backend_tags
from avatargen.errors import BackendError, GenerationError
from avatargen.models import BackendImage, ReferenceImage
from avatargen.utils.openai_client import (
    OpenAIClient,
    extract_image_b64,
    extract_output_text,
    extract_usage,
)

console = Console()


class Backend(abc.ABC):
    tag: str
    label: str
    max_reference_images: int

    def __init__(self, tag: str, settings: dict[str, Any]):
        self.tag = tag
        self.settings = settings
        self.label = settings.get("label") or tag
        self.max_reference_images = int(settings["max_reference_images"])

    @abc.abstractmethod
    async def generate(self, prompt: str, references: list[ReferenceImage]) -> BackendImage: ...

    @abc.abstractmethod
    async def complete(self, prompt: str, *, instructions: str | None = None) -> str: ...

    @abc.abstractmethod
    async def analyze(
        self, prompt: str, images: list[ReferenceImage], *, instructions: str | None = None
    ) -> str: ...

    async def probe(self) -> str:
        text = await self.complete(f"Say '{self.label} is working!' and nothing else.")
        if not text.strip():
            raise BackendError(self.tag, "empty response to connectivity probe")
        return f"{self.label} is working!"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag!r})"


class OpenAIBackend(Backend):
    def __init__(self, tag: str, settings: dict[str, Any], client: OpenAIClient):
        super().__init__(tag, settings)
        self.client = client

    async def generate(self, prompt: str, references: list[ReferenceImage]) -> BackendImage:
        content: list[dict[str, Any]] = [{"type": "input_text", "text": prompt}]
        content.extend(
            {"type": "input_image", "image_url": _data_url(reference)} for reference in references
        )
        tool: dict[str, Any] = {"type": "image_generation"}
        for key, setting in (
            ("quality", "image_quality"),
            ("size", "image_size"),
            ("input_fidelity", "input_fidelity"),
        ):
            if self.settings.get(setting):
                tool[key] = self.settings[setting]
        payload = {
            "model": self.settings.get("image_model"),
            "input": [{"role": "user", "content": content}],
            "tools": [tool],
        }
        response = await self._responses(payload)
        image_b64 = extract_image_b64(response)
        if not image_b64:
            raise GenerationError(self.tag, "no image data returned from the Responses API")
        return BackendImage(
            image_bytes=base64.b64decode(image_b64),
            mime_type="image/png",
            usage=extract_usage(response),
        )

    async def complete(self, prompt: str, *, instructions: str | None = None) -> str:
        payload = self._text_payload(self.settings.get("text_model"), prompt, instructions)
        return extract_output_text(await self._responses(payload)).strip()

    async def analyze(
        self, prompt: str, images: list[ReferenceImage], *, instructions: str | None = None
    ) -> str:
        content: list[dict[str, Any]] = [{"type": "input_text", "text": prompt}]
        content.extend(
            {"type": "input_image", "image_url": _data_url(image), "detail": "low"} for image in images
        )
        payload = self._text_payload(
            self.settings.get("vision_model"), [{"role": "user", "content": content}], instructions
        )
        return extract_output_text(await self._responses(payload)).strip()

    def _text_payload(self, model: str | None, prompt: Any, instructions: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "input": prompt}
        if instructions:
            payload["instructions"] = instructions
        if self.settings.get("max_output_tokens") is not None:
            payload["max_output_tokens"] = self.settings["max_output_tokens"]
        return payload

    async def _responses(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.client.responses(payload)
        except Exception as exc:  # noqa: BLE001 - normalized for callers
            raise BackendError(self.tag, str(exc) or type(exc).__name__) from exc


class GeminiBackend(Backend):
    def __init__(self, tag: str, settings: dict[str, Any], api_key: str | None):
        super().__init__(tag, settings)
        self.api_key = api_key or ""
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self.api_key:
            raise BackendError(self.tag, f"{self.settings.get('api_key_env', 'API key')} not set")
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str, references: list[ReferenceImage]) -> BackendImage:
        parts = [types.Part.from_text(text=prompt)]
        parts.extend(types.Part.from_bytes(data=ref.data, mime_type=ref.mime_type) for ref in references)
        response = await self._generate_content(
            self.settings.get("image_model"),
            parts,
            types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        for candidate in response.candidates or []:
            content = candidate.content
            for part in (content.parts if content else None) or []:
                if part.inline_data is not None and part.inline_data.data:
                    data = part.inline_data.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    return BackendImage(
                        image_bytes=data,
                        mime_type=part.inline_data.mime_type or "image/png",
                        usage=_gemini_usage(response),
                    )
        raise GenerationError(self.tag, "no image data returned from Google Gemini")

    async def complete(self, prompt: str, *, instructions: str | None = None) -> str:
        config = types.GenerateContentConfig(system_instruction=instructions) if instructions else None
        response = await self._generate_content(self.settings.get("text_model"), prompt, config)
        return (response.text or "").strip()

    async def analyze(
        self, prompt: str, images: list[ReferenceImage], *, instructions: str | None = None
    ) -> str:
        parts = [types.Part.from_text(text=prompt)]
        parts.extend(types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images)
        config = types.GenerateContentConfig(system_instruction=instructions) if instructions else None
        response = await self._generate_content(self.settings.get("vision_model"), parts, config)
        return (response.text or "").strip()

    async def probe(self) -> str:
        await super().probe()
        # text alone does not prove the image model is reachable
        await self.generate("Create a simple test image of a small robot.", [])
        return f"{self.label} is working! Image generation tested successfully."

    async def _generate_content(
        self, model: str | None, contents: Any, config: types.GenerateContentConfig | None
    ) -> types.GenerateContentResponse:
        client = self._get_client()
        try:
            return await client.aio.models.generate_content(model=model, contents=contents, config=config)
        except Exception as exc:  # noqa: BLE001 - normalized for callers
            raise BackendError(self.tag, str(exc) or type(exc).__name__) from exc


BACKEND_TYPES = {
    "openai": "openai",
    "google": "google",
    "gemini": "google",
}


def build_backends(config: dict[str, Any], *, environ: dict[str, str] | None = None) -> dict[str, Backend]:
    """Instantiate every enabled backend in config order."""
    env = os.environ if environ is None else environ
    backends: dict[str, Backend] = {}
    for tag in enabled_backend_tags(config):
        settings = config["backends"][tag]
        kind = BACKEND_TYPES.get(settings.get("type", tag))
        api_key = env.get(settings.get("api_key_env", ""), "")
        if kind == "openai":
            client = OpenAIClient(
                api_key=api_key,
                base_url=settings.get("base_url", "https://api.openai.com/v1"),
                timeout_s=float(settings.get("timeout_s", 300)),
            )
            backends[tag] = OpenAIBackend(tag, settings, client)
        elif kind == "google":
            backends[tag] = GeminiBackend(tag, settings, api_key)
        else:
            console.print(f"[yellow]Unknown backend type for '{tag}'; skipping.[/yellow]")
    return backends


def _data_url(image: ReferenceImage) -> str:
    data = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.mime_type};base64,{data}"


def _gemini_usage(response: types.GenerateContentResponse) -> dict[str, int] | None:
    metadata = response.usage_metadata
    if metadata is None:
        return None
    prompt_tokens = metadata.prompt_token_count or 0
    completion_tokens = metadata.candidates_token_count or 0
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": metadata.total_token_count or prompt_tokens + completion_tokens,
    }
