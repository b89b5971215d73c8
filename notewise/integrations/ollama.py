"""Async client for the Ollama REST API, used for the AI classification fallback."""

import json
import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class OllamaResponse(BaseModel):
    """Raw response from Ollama's /api/chat endpoint (non-streaming)."""

    model: str
    message: dict
    done: bool
    done_reason: str = ""
    total_duration: int = 0
    prompt_eval_count: int = 0
    eval_count: int = 0


class OllamaClient:
    """Async HTTP client for Ollama with schema-constrained output.

    Usage::

        async with OllamaClient(base_url, timeout=20.0) as client:
            result, raw = await client.generate_structured(
                model="qwen2.5",
                schema_class=AIClassification,
                system="You classify meetings.",
                prompt="Title: ...",
            )
    """

    def __init__(self, base_url: str, *, timeout: float = 60.0, keep_alive: str = "5m") -> None:
        self._base_url = base_url.rstrip("/")
        self._keep_alive = keep_alive
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def generate_structured(
        self,
        model: str,
        schema_class: type[T],
        system: str,
        prompt: str,
        *,
        temperature: float = 0.1,
    ) -> tuple[T, OllamaResponse]:
        """Generate a response constrained to ``schema_class``'s JSON schema.

        Raises:
            httpx.HTTPError: On transport errors or a non-2xx response.
            pydantic.ValidationError: If the model output doesn't fit the schema.
            json.JSONDecodeError: If the model output isn't JSON at all.
        """
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "format": schema_class.model_json_schema(),
            "stream": False,
            "keep_alive": self._keep_alive,
            "options": {"temperature": temperature},
        }

        response = await self._client.post("/api/chat", json=payload)
        response.raise_for_status()

        raw = OllamaResponse.model_validate(response.json())
        parsed = schema_class.model_validate(json.loads(raw.message.get("content", "")))

        logger.debug(
            "Ollama %s: %d prompt tokens, %d eval tokens, %.1fs total",
            model,
            raw.prompt_eval_count,
            raw.eval_count,
            raw.total_duration / 1e9,
        )
        return parsed, raw

    async def list_models(self) -> list[dict]:
        """List models available on the Ollama server."""
        response = await self._client.get("/api/tags")
        response.raise_for_status()
        return response.json().get("models", [])

    async def pick_instruct_model(self) -> str | None:
        """Pick an instruct/chat model from the server, or None if it has none."""
        return pick_instruct_model(await self.list_models())


def pick_instruct_model(models: list[dict]) -> str | None:
    """Prefer models named like instruct/chat/qwen/gemma; else the first one."""
    for m in models:
        name = m["name"].lower()
        if any(hint in name for hint in ("instruct", "chat", "qwen", "gemma")):
            return m["name"]
    return models[0]["name"] if models else None
