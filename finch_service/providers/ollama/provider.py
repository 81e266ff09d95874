"""Local model over the Ollama HTTP API (/api/chat, /api/embeddings)."""
import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from finch_service.core.errors import ModelProviderError
from finch_service.core.interfaces import ModelProvider
from finch_service.core.logging import logger
from finch_service.core.types import Message


class OllamaProvider(ModelProvider):
    def __init__(
        self,
        model: str = "qwen2.5:7b-instruct",
        base_url: str = "http://127.0.0.1:11434",
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        embed_model: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.embed_model = embed_model or model
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def _body(self, messages: List[Message], stream: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens:
            options["num_predict"] = self.max_tokens
        return {
            "model": self.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "stream": stream,
            "options": options,
        }

    async def complete(self, messages: List[Message]) -> str:
        url = f"{self.base_url}/api/chat"
        logger.debug(f"Calling Ollama model={self.model} messages={len(messages)}")
        try:
            response = await self.client.post(url, json=self._body(messages, stream=False))
        except httpx.HTTPError as e:
            raise ModelProviderError(f"Ollama HTTP error: {e}") from e
        if not response.is_success:
            raise ModelProviderError(
                f"Ollama API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ModelProviderError(f"Ollama response decode error: {e}") from e
        content = (data.get("message") or {}).get("content")
        if content is None:
            raise ModelProviderError("Ollama response had no message content")
        return content

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        url = f"{self.base_url}/api/chat"
        try:
            async with self.client.stream("POST", url, json=self._body(messages, stream=True)) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise ModelProviderError(
                        f"Ollama API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug(f"Skipping undecodable stream line: {line[:100]}")
                        continue
                    if chunk.get("error"):
                        raise ModelProviderError(f"Ollama stream error: {chunk['error']}")
                    content = (chunk.get("message") or {}).get("content")
                    if content:
                        yield content
                    if chunk.get("done"):
                        break
        except httpx.HTTPError as e:
            raise ModelProviderError(f"Ollama streaming error: {e}") from e

    async def embed(self, text: str) -> List[float]:
        url = f"{self.base_url}/api/embeddings"
        try:
            response = await self.client.post(url, json={"model": self.embed_model, "prompt": text})
        except httpx.HTTPError as e:
            raise ModelProviderError(f"Ollama HTTP error: {e}") from e
        if not response.is_success:
            raise ModelProviderError(
                f"Ollama API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return list(response.json().get("embedding") or [])

    async def ping(self) -> bool:
        """True when the Ollama server answers its tag listing."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError:
            return False
        return response.is_success

    async def close(self) -> None:
        await self.client.aclose()
