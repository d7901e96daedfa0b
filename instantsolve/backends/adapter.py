"""
Mode adapters.

One generic ModeAdapter serves every mode from its ModeConfig: it builds the
message list, calls the primary backend, falls back to the backup on any
pipeline error, and formats the winning answer. ImageModeAdapter only adds
image validation and multimodal messages.
"""

import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlparse

from instantsolve.backends.client import ChatCompletionsClient
from instantsolve.cancellation import CancellationToken
from instantsolve.errors import (
    BothTiersFailedError,
    MalformedResponseError,
    PipelineError,
    RequestCancelledError,
    UnsupportedImageFormatError,
)
from instantsolve.modes import Mode
from instantsolve.normalizers.markup import compose
from instantsolve.registry import ModeConfig, ModelDescriptor, ModelRegistry
from instantsolve.types import AdapterResponse, ConversationTurn, Query, RawModelResponse, Role
from instantsolve.utils.logging import mode_logger

SUPPORTED_IMAGE_FORMATS = ("jpg", "jpeg", "png", "gif", "webp")

PRIMARY = "primary"
BACKUP = "backup"


class ModeAdapter:
    """Primary/backup caller for a single mode."""

    def __init__(self, config: ModeConfig, client: ChatCompletionsClient):
        self.config = config
        self.client = client
        self._formatter = compose(config.format_rules)
        self.log = mode_logger(config.mode)

    @property
    def mode(self) -> Mode:
        return self.config.mode

    def format(self, raw_text: str) -> str:
        """Normalize raw backend text with this mode's rules."""
        return self._formatter(raw_text)

    def build_messages(
        self,
        query: Query,
        history: Sequence[ConversationTurn],
        include_image: bool = False,
    ) -> list[dict[str, Any]]:
        """System prompt, windowed history, then the new user turn."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.config.system_prompt}]
        messages.extend(turn.to_message() for turn in history)

        user_text = self.config.render_user_text(query.text)
        if include_image and query.image_ref:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": user_text},
                    {"type": "image_url", "image_url": {"url": query.image_ref}},
                ],
            })
        else:
            messages.append({"role": "user", "content": user_text})
        return messages

    async def _call(
        self,
        model: ModelDescriptor,
        messages: list[dict[str, Any]],
        cancel_token: CancellationToken | None,
    ) -> RawModelResponse:
        return await self.client.complete(model, messages, self.config.params, cancel_token)

    async def primary_call(
        self,
        query: Query,
        history: Sequence[ConversationTurn],
        cancel_token: CancellationToken | None = None,
    ) -> RawModelResponse:
        return await self._call(self.config.primary, self.build_messages(query, history), cancel_token)

    async def backup_call(
        self,
        query: Query,
        history: Sequence[ConversationTurn],
        cancel_token: CancellationToken | None = None,
    ) -> RawModelResponse:
        return await self._call(self.config.backup, self.build_messages(query, history), cancel_token)

    async def _attempt(self, tier: str, query, history, cancel_token) -> tuple[RawModelResponse, str]:
        call = self.primary_call if tier == PRIMARY else self.backup_call
        raw = await call(query, history, cancel_token)
        text = self.format(raw.content)
        if not text:
            raise MalformedResponseError(f"{raw.model_id} returned no usable text")
        return raw, text

    async def run(
        self,
        query: Query,
        history: Sequence[ConversationTurn],
        cancel_token: CancellationToken | None = None,
    ) -> AdapterResponse:
        """
        Answer a query, falling back to the backup backend once.

        Args:
            query: The user query
            history: Turns already windowed for this mode
            cancel_token: Optional token that aborts in-flight calls

        Returns:
            AdapterResponse with the formatted text and a new assistant turn

        Raises:
            BothTiersFailedError: Primary and backup both failed
            RequestCancelledError: Cancelled during either call
        """
        start = time.perf_counter()
        tier = PRIMARY

        try:
            raw, text = await self._attempt(PRIMARY, query, history, cancel_token)
        except RequestCancelledError:
            raise
        except PipelineError as primary_error:
            self.log.warning(f"primary failed ({type(primary_error).__name__}): {primary_error}")
            tier = BACKUP
            try:
                raw, text = await self._attempt(BACKUP, query, history, cancel_token)
            except RequestCancelledError:
                raise
            except PipelineError as backup_error:
                self.log.error(f"backup failed ({type(backup_error).__name__}): {backup_error}")
                raise BothTiersFailedError(self.mode.value, primary_error, backup_error) from backup_error

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.log.info(f"answered by {raw.model_id} ({tier}) in {elapsed_ms:.0f}ms")

        turn = ConversationTurn(role=Role.ASSISTANT, content=text, mode=self.mode, model=raw.model_id)
        return AdapterResponse(
            text=text,
            model_id=raw.model_id,
            mode=self.mode,
            tier=tier,
            usage=raw.usage,
            elapsed_ms=elapsed_ms,
            turn=turn,
        )


def image_format(image_ref: str) -> str | None:
    """
    Format of an image reference: extension of a URL/path, or the MIME
    subtype of a data URI. Query strings and fragments are ignored.
    """
    if image_ref.startswith("data:"):
        mime = image_ref[5:].split(";", 1)[0].split(",", 1)[0]
        if not mime.startswith("image/"):
            return None
        return mime.removeprefix("image/").lower()

    path = urlparse(image_ref).path
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return name.rsplit(".", 1)[-1].lower()


def validate_image(image_ref: str) -> str:
    """Return the image format, raising UnsupportedImageFormatError if it is not allowed."""
    fmt = image_format(image_ref)
    if fmt not in SUPPORTED_IMAGE_FORMATS:
        raise UnsupportedImageFormatError(f"Unsupported image format: {fmt or 'unknown'}")
    return fmt


class ImageModeAdapter(ModeAdapter):
    """
    Image mode.

    With an image: vision model first, then the backup model with the same
    image. Without one the tiers swap and the backup model answers text-only
    first, with the vision model as its fallback.
    """

    async def primary_call(self, query, history, cancel_token=None) -> RawModelResponse:
        if query.image_ref:
            messages = self.build_messages(query, history, include_image=True)
            return await self._call(self.config.primary, messages, cancel_token)
        return await self._call(self.config.backup, self.build_messages(query, history), cancel_token)

    async def backup_call(self, query, history, cancel_token=None) -> RawModelResponse:
        if query.image_ref:
            messages = self.build_messages(query, history, include_image=True)
            return await self._call(self.config.backup, messages, cancel_token)
        return await self._call(self.config.primary, self.build_messages(query, history), cancel_token)

    async def run(self, query, history, cancel_token=None) -> AdapterResponse:
        if query.image_ref:
            validate_image(query.image_ref)
        return await super().run(query, history, cancel_token)


def build_adapters(registry: ModelRegistry, client: ChatCompletionsClient) -> dict[Mode, ModeAdapter]:
    """One adapter per mode, all sharing the same transport."""
    adapters: dict[Mode, ModeAdapter] = {}
    for config in registry:
        adapter_class = ImageModeAdapter if config.mode == Mode.IMAGE else ModeAdapter
        adapters[config.mode] = adapter_class(config, client)
    return adapters
