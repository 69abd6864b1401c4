from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

import httpx
from loguru import logger

DEFAULT_OPTIONS: Dict[str, Any] = {
    "num_predict": 255,
    "temperature": 0.75,
    "num_ctx": 2048,
}


class OllamaGenerator:
    """
    Async generative function backed by an Ollama server.

    ``await generator(prompt)`` streams ``/api/generate`` and returns the
    concatenated response text. Transport errors are retried with exponential
    backoff; HTTP error statuses raise immediately.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        *,
        options: Optional[Dict[str, Any]] = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 600.0,
        retries: int = 2,
        backoff: float = 0.25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.options = {**DEFAULT_OPTIONS, **(options or {})}
        self.retries = retries
        self.backoff = backoff
        self.timeout = httpx.Timeout(connect=connect_timeout, read=read_timeout, write=read_timeout, pool=connect_timeout)
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __call__(self, prompt: str) -> str:
        return await self.generate(prompt)

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {"model": self.model, "prompt": prompt, "stream": True, "options": dict(self.options)}

    async def generate(self, prompt: str) -> str:
        logger.debug(f"Generating response model={self.model} prompt={prompt!r}")
        url = f"{self.base_url}/api/generate"
        payload = self._payload(prompt)

        for attempt in range(self.retries + 1):
            try:
                response = await self._stream(url, payload)
                break
            except httpx.TransportError as e:
                if attempt >= self.retries:
                    raise
                delay = self.backoff * (2 ** attempt)
                logger.warning(f"[LLM] transport error ({e}); retry {attempt + 1}/{self.retries} in {delay:.2f}s")
                await asyncio.sleep(delay)

        logger.info(f"Output from LLM: {response}")
        return response

    async def _stream(self, url: str, payload: Dict[str, Any]) -> str:
        chunks: list[str] = []
        async with self._client.stream("POST", url, json=payload) as resp:
            if resp.status_code >= 400:
                await resp.aread()
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"[LLM] skipping non-JSON line: {line[:200]}")
                    continue
                if obj.get("error"):
                    raise RuntimeError(f"Ollama error: {obj['error']}")
                chunks.append(obj.get("response") or "")
                if obj.get("done") is True:
                    break
        return "".join(chunks)
