"""
Chat-completions transport.

Thin async client for an OpenRouter-style ``/chat/completions`` endpoint.
Maps every transport problem onto the pipeline error taxonomy:

- timeouts, connection errors, non-2xx status -> NetworkError
- 2xx without choices[0].message.content or usage -> MalformedResponseError
- caller cancellation while in flight -> RequestCancelledError
"""

import asyncio
from typing import Any

import httpx
from loguru import logger

from instantsolve.cancellation import CancellationToken
from instantsolve.config import OpenRouterSettings
from instantsolve.errors import MalformedResponseError, NetworkError, RequestCancelledError
from instantsolve.registry import GenerationParams, ModelDescriptor
from instantsolve.types import RawModelResponse, TokenUsage

# Provider bodies are logged, truncated to this many characters
MAX_LOGGED_BODY = 500


class ChatCompletionsClient:
    """
    Sends chat-completions requests on behalf of every adapter.

    Args:
        settings: Endpoint settings (base URL, referer, title, timeout)
        http_client: Optional shared client; created lazily when omitted
    """

    def __init__(
        self,
        settings: OpenRouterSettings,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.timeout)
            self._owns_client = True
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self, model: ModelDescriptor) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {model.api_key}",
            "HTTP-Referer": self.settings.referer,
            "X-Title": self.settings.app_title,
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        model: ModelDescriptor,
        messages: list[dict[str, Any]],
        params: GenerationParams,
    ) -> dict[str, Any]:
        return {"model": model.model_id, "messages": messages, **params.to_payload()}

    async def complete(
        self,
        model: ModelDescriptor,
        messages: list[dict[str, Any]],
        params: GenerationParams,
        cancel_token: CancellationToken | None = None,
    ) -> RawModelResponse:
        """
        POST one completion request and validate the response.

        Raises:
            NetworkError: Timeout, transport failure or non-2xx status
            MalformedResponseError: Missing content or usage fields
            RequestCancelledError: cancel_token fired before the response arrived
        """
        if cancel_token is not None and cancel_token.cancelled:
            raise RequestCancelledError(cancel_token.reason or "cancelled before request")

        url = f"{self.base_url}/chat/completions"
        payload = self.build_payload(model, messages, params)
        logger.debug(f"POST {url} model={model.model_id} messages={len(messages)}")

        request = self.http_client.post(url, json=payload, headers=self._headers(model))
        if cancel_token is None:
            response = await self._send(request, model)
        else:
            response = await self._send_cancellable(request, model, cancel_token)

        return self._parse(response, model)

    async def _send(self, request, model: ModelDescriptor) -> httpx.Response:
        try:
            return await request
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {model.model_id} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {model.model_id} failed: {e}") from e

    async def _send_cancellable(
        self,
        request,
        model: ModelDescriptor,
        cancel_token: CancellationToken,
    ) -> httpx.Response:
        """Race the request against the token; the loser is cancelled."""
        request_task = asyncio.ensure_future(self._send(request, model))
        cancel_task = asyncio.ensure_future(cancel_token.wait())

        try:
            done, _ = await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request_task, cancel_task):
                if not task.done():
                    task.cancel()

        if request_task in done:
            return request_task.result()

        logger.info(f"Request to {model.model_id} cancelled: {cancel_token.reason}")
        raise RequestCancelledError(cancel_token.reason or "cancelled by caller")

    def _parse(self, response: httpx.Response, model: ModelDescriptor) -> RawModelResponse:
        if not response.is_success:
            body = response.text
            logger.warning(
                f"{model.model_id} returned HTTP {response.status_code}: {body[:MAX_LOGGED_BODY]}"
            )
            raise NetworkError(
                f"HTTP {response.status_code} from {model.model_id}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{model.model_id} returned non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
            usage = data["usage"]
            token_usage = TokenUsage(
                prompt_tokens=int(usage["prompt_tokens"]),
                completion_tokens=int(usage["completion_tokens"]),
                total_tokens=int(usage["total_tokens"]),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"{model.model_id} returned malformed payload: {str(data)[:MAX_LOGGED_BODY]}")
            raise MalformedResponseError(f"{model.model_id} response missing completion fields") from e

        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(f"{model.model_id} returned empty content")

        return RawModelResponse(model_id=model.model_id, content=content, usage=token_usage)
