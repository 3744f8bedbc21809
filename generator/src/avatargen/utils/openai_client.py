from __future__ import annotations

import os
from typing import Any

import httpx
from rich.console import Console

console = Console()

DUMMY_ENV = "AVATARGEN_DUMMY_OPENAI"


class OpenAIClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        *,
        timeout_s: float = 300,
        dummy: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or ""
        self.base_url = os.environ.get("OPENAI_BASE_URL", base_url).rstrip("/")
        self.organization = (
            os.environ.get("OPENAI_ORG") or os.environ.get("OPENAI_ORGANIZATION") or ""
        ).strip()
        self.project = os.environ.get("OPENAI_PROJECT", "").strip()
        env_dummy = os.environ.get(DUMMY_ENV, "").strip().lower() in {"1", "true", "yes"}
        self.use_dummy = env_dummy if dummy is None else dummy
        self.timeout_s = timeout_s
        self._transport = transport

    @property
    def offline(self) -> bool:
        return self.use_dummy or not self.api_key

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        if self.project:
            headers["OpenAI-Project"] = self.project
        return headers

    async def responses(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self.offline:
            if self.use_dummy:
                console.print(f"[yellow]{DUMMY_ENV} enabled. Returning dummy response.[/yellow]")
            else:
                console.print("[yellow]OpenAI API key not set. Returning dummy response.[/yellow]")
            return _dummy_response(payload)
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            resp = await client.post(f"{self.base_url}/responses", headers=self._headers(), json=payload)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError:
            console.print(
                "[red]OpenAI responses request failed.[/red]"
                f" Status: {resp.status_code}. Body: {resp.text}"
            )
            raise
        return resp.json()


def extract_output_text(response: dict[str, Any]) -> str:
    if isinstance(response.get("output_text"), str):
        return response["output_text"]
    chunks: list[str] = []
    for output in response.get("output", []):
        for item in output.get("content", []) or []:
            if item.get("type") == "output_text" and item.get("text"):
                chunks.append(item["text"])
    return "".join(chunks)


def extract_image_b64(response: dict[str, Any]) -> str | None:
    for output in response.get("output", []):
        if output.get("type") == "image_generation_call" and output.get("result"):
            return output["result"]
    return None


def extract_usage(response: dict[str, Any]) -> dict[str, int] | None:
    usage = response.get("usage")
    if not isinstance(usage, dict):
        return None
    prompt_tokens = usage.get("input_tokens", usage.get("prompt_tokens")) or 0
    completion_tokens = usage.get("output_tokens", usage.get("completion_tokens")) or 0
    return {
        "prompt_tokens": int(prompt_tokens),
        "completion_tokens": int(completion_tokens),
        "total_tokens": int(usage.get("total_tokens") or prompt_tokens + completion_tokens),
    }


def _dummy_response(payload: dict[str, Any]) -> dict[str, Any]:
    tools = payload.get("tools") or []
    if any(tool.get("type") == "image_generation" for tool in tools):
        return {"output": [{"type": "image_generation_call", "result": ""}]}
    return {"output": [{"type": "message", "content": [{"type": "output_text", "text": ""}]}]}
