from __future__ import annotations

import base64
import json
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

import httpx

from avatargen.backends import GeminiBackend, OpenAIBackend, build_backends
from avatargen.config import resolve_config
from avatargen.errors import BackendError, GenerationError
from avatargen.models import ReferenceImage
from avatargen.pipeline.resolver import build_resolver
from avatargen.utils.openai_client import OpenAIClient, extract_image_b64, extract_output_text

from fakes import png_bytes

SETTINGS = resolve_config()["backends"]["openai"]


def _backend(handler) -> OpenAIBackend:
    client = OpenAIClient(api_key="sk-test", dummy=False, transport=httpx.MockTransport(handler))
    return OpenAIBackend("openai", SETTINGS, client)


class TestOpenAIClient(unittest.IsolatedAsyncioTestCase):
    async def test_dummy_response_without_key(self) -> None:
        client = OpenAIClient(api_key="")
        response = await client.responses({"model": "gpt-4o", "input": "hello"})
        self.assertEqual(extract_output_text(response), "")

        image = await client.responses({"model": "gpt-4o", "input": "x", "tools": [{"type": "image_generation"}]})
        self.assertFalse(extract_image_b64(image))


class TestOpenAIBackend(unittest.IsolatedAsyncioTestCase):
    async def test_generate_sends_prompt_and_references(self) -> None:
        seen: dict = {}
        image_bytes = png_bytes()

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "output": [
                        {"type": "message", "content": []},
                        {"type": "image_generation_call", "result": base64.b64encode(image_bytes).decode()},
                    ],
                    "usage": {"input_tokens": 1200, "output_tokens": 80, "total_tokens": 1280},
                },
            )

        reference = ReferenceImage(path=Path("/refs/python.png"), data=b"jpeg-bytes")
        result = await _backend(handler).generate("Make a robot.", [reference])

        self.assertTrue(seen["url"].endswith("/responses"))
        content = seen["body"]["input"][0]["content"]
        self.assertEqual(content[0], {"type": "input_text", "text": "Make a robot."})
        self.assertTrue(content[1]["image_url"].startswith("data:image/jpeg;base64,"))
        self.assertEqual(seen["body"]["tools"][0]["type"], "image_generation")
        self.assertEqual(seen["body"]["tools"][0]["size"], "1024x1024")
        self.assertEqual(result.image_bytes, image_bytes)
        self.assertEqual(result.usage, {"prompt_tokens": 1200, "completion_tokens": 80, "total_tokens": 1280})

    async def test_generate_without_image_fails(self) -> None:
        backend = _backend(lambda request: httpx.Response(200, json={"output": []}))
        with self.assertRaises(GenerationError):
            await backend.generate("Make a robot.", [])

    async def test_http_errors_become_backend_errors(self) -> None:
        backend = _backend(lambda request: httpx.Response(500, json={"error": {"message": "boom"}}))
        with self.assertRaises(BackendError):
            await backend.complete("Research Python.")

    async def test_complete_reads_output_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            self.assertEqual(body["instructions"], "Be brief.")
            return httpx.Response(
                200,
                json={"output": [{"type": "message", "content": [{"type": "output_text", "text": " Blue. "}]}]},
            )

        self.assertEqual(await _backend(handler).complete("Colors?", instructions="Be brief."), "Blue.")

    async def test_offline_generation_saves_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            root = Path(tmp_dir)
            resolver = build_resolver({"library": {"root": str(root)}}, environ={})
            resolver.backends["openai"].client.use_dummy = True

            with self.assertRaises(GenerationError):
                await resolver.resolve("Rust", "openai")

            generated = root / "Generated"
            self.assertEqual(list(generated.iterdir()) if generated.exists() else [], [])
            self.assertEqual(resolver.list_generated(), [])


class _FakeModels:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def generate_content(self, *, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _gemini(*responses) -> tuple[GeminiBackend, _FakeModels]:
    settings = resolve_config()["backends"]["google"]
    backend = GeminiBackend("google", settings, "test-key")
    models = _FakeModels(*responses)
    backend._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return backend, models


def _image_response(data, mime_type: str | None = "image/png", usage=None) -> SimpleNamespace:
    parts = [
        SimpleNamespace(inline_data=None, text="Here is your robot."),
        SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None),
    ]
    candidate = SimpleNamespace(content=SimpleNamespace(parts=parts))
    return SimpleNamespace(candidates=[candidate], usage_metadata=usage, text=None)


class TestGeminiBackend(unittest.IsolatedAsyncioTestCase):
    async def test_generate_reads_inline_image_and_usage(self) -> None:
        image_bytes = png_bytes()
        usage = SimpleNamespace(prompt_token_count=900, candidates_token_count=1290, total_token_count=None)
        backend, models = _gemini(_image_response(image_bytes, "image/jpeg", usage))
        reference = ReferenceImage(path=Path("/refs/go.png"), data=b"jpeg-bytes")

        result = await backend.generate("Make a robot.", [reference])

        self.assertEqual(result.image_bytes, image_bytes)
        self.assertEqual(result.mime_type, "image/jpeg")
        self.assertEqual(result.usage, {"prompt_tokens": 900, "completion_tokens": 1290, "total_tokens": 2190})
        self.assertEqual(len(models.calls[0]["contents"]), 2)
        self.assertEqual(models.calls[0]["config"].response_modalities, ["IMAGE", "TEXT"])

    async def test_generate_decodes_base64_text(self) -> None:
        image_bytes = png_bytes()
        backend, _ = _gemini(_image_response(base64.b64encode(image_bytes).decode(), None))

        result = await backend.generate("Make a robot.", [])

        self.assertEqual(result.image_bytes, image_bytes)
        self.assertEqual(result.mime_type, "image/png")
        self.assertIsNone(result.usage)

    async def test_generate_without_image_fails(self) -> None:
        text_only = SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(inline_data=None)]))],
            usage_metadata=None,
        )
        backend, _ = _gemini(text_only)
        with self.assertRaises(GenerationError):
            await backend.generate("Make a robot.", [])

    async def test_provider_errors_become_backend_errors(self) -> None:
        backend, _ = _gemini(RuntimeError("quota exceeded"))
        with self.assertRaises(BackendError) as ctx:
            await backend.complete("Research Go.")
        self.assertEqual(ctx.exception.backend, "google")
        self.assertIn("quota exceeded", str(ctx.exception))

    async def test_missing_key_is_a_backend_error(self) -> None:
        backend = GeminiBackend("google", resolve_config()["backends"]["google"], "")
        with self.assertRaises(BackendError) as ctx:
            await backend.complete("Research Go.")
        self.assertIn("GOOGLE_API_KEY", str(ctx.exception))

    async def test_probe_checks_text_then_image(self) -> None:
        backend, models = _gemini(
            SimpleNamespace(text=" Google Gemini is working! "),
            _image_response(png_bytes()),
        )

        message = await backend.probe()

        self.assertIn("Image generation tested successfully", message)
        self.assertEqual(len(models.calls), 2)

    async def test_probe_fails_when_image_missing(self) -> None:
        backend, _ = _gemini(
            SimpleNamespace(text="ok"),
            SimpleNamespace(candidates=[], usage_metadata=None),
        )
        with self.assertRaises(GenerationError):
            await backend.probe()


class TestBuildBackends(unittest.TestCase):
    def test_builds_enabled_backends_with_explicit_keys(self) -> None:
        config = resolve_config({"backends": {"google": {"enabled": False}}})
        backends = build_backends(config, environ={"OPENAI_API_KEY": "sk-test"})
        self.assertEqual(list(backends), ["openai"])
        self.assertEqual(backends["openai"].client.api_key, "sk-test")

        backends = build_backends(resolve_config(), environ={})
        self.assertEqual(sorted(backends), ["google", "openai"])
        self.assertTrue(backends["openai"].client.offline)


if __name__ == "__main__":
    unittest.main()
