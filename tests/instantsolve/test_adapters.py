# SPDX-License-Identifier: MIT
"""Tests for mode adapters and the primary/backup protocol."""

import pytest

from instantsolve.backends import ChatCompletionsClient, ImageModeAdapter, build_adapters, validate_image
from instantsolve.backends.adapter import image_format
from instantsolve.cancellation import CancellationToken
from instantsolve.errors import BothTiersFailedError, RequestCancelledError, UnsupportedImageFormatError
from instantsolve.modes import Mode
from instantsolve.registry import MODEL_IDS, build_registry
from instantsolve.types import ConversationTurn, Query, Role


@pytest.fixture
def adapters(settings, http_client):
    client = ChatCompletionsClient(settings.openrouter, http_client=http_client)
    return build_adapters(build_registry(settings), client)


class TestFallbackProtocol:
    """Primary first, backup once, then a single combined error."""

    @pytest.mark.anyio
    async def test_primary_success(self, adapters, provider):
        provider.answer(MODEL_IDS["phi_3_mini"], "**Paris** is the capital.")
        response = await adapters[Mode.QUICK_ANSWER].run(Query("capital of france"), ())

        assert response.tier == "primary"
        assert response.model_id == MODEL_IDS["phi_3_mini"]
        assert response.text == "{{bold}}Paris{{/bold}} is the capital."
        assert response.turn.role == Role.ASSISTANT
        assert response.turn.mode == Mode.QUICK_ANSWER
        assert response.turn.content == response.text
        assert provider.models_called == [MODEL_IDS["phi_3_mini"]]

    @pytest.mark.anyio
    @pytest.mark.parametrize("failure", ["fail", "malformed", "unreachable", "timeout"])
    async def test_backup_after_primary_failure(self, adapters, provider, failure):
        getattr(provider, failure)(MODEL_IDS["phi_3_medium"])
        provider.answer(MODEL_IDS["gemini"], "Answer: 4")

        response = await adapters[Mode.LOGICAL_MATH].run(Query("2+2"), ())

        assert response.tier == "backup"
        assert response.model_id == MODEL_IDS["gemini"]
        assert provider.models_called == [MODEL_IDS["phi_3_medium"], MODEL_IDS["gemini"]]

    @pytest.mark.anyio
    async def test_both_tiers_fail(self, adapters, provider):
        provider.fail(MODEL_IDS["mythomax"])
        provider.malformed(MODEL_IDS["llama_3"])

        with pytest.raises(BothTiersFailedError) as exc_info:
            await adapters[Mode.CREATIVE].run(Query("write a story"), ())

        assert exc_info.value.mode == "creative"
        assert exc_info.value.primary_error.status_code == 500
        assert len(provider.requests) == 2

    @pytest.mark.anyio
    async def test_cancellation_skips_backup(self, adapters, provider):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RequestCancelledError):
            await adapters[Mode.DETAILED].run(Query("explain gravity"), (), token)
        assert provider.requests == []


class TestMessages:
    """Request message assembly."""

    @pytest.mark.anyio
    async def test_system_history_then_user(self, adapters, provider):
        history = (
            ConversationTurn(role=Role.USER, content="earlier question", mode=Mode.QUICK_ANSWER),
            ConversationTurn(role=Role.ASSISTANT, content="earlier answer", mode=Mode.QUICK_ANSWER),
        )
        await adapters[Mode.QUICK_ANSWER].run(Query("new question"), history)

        messages = provider.requests[0]["messages"]
        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith("You are a quick answer expert")
        assert messages[1:] == [
            {"role": "user", "content": "earlier question"},
            {"role": "assistant", "content": "earlier answer"},
            {"role": "user", "content": "new question"},
        ]

    @pytest.mark.anyio
    async def test_math_user_template(self, adapters, provider):
        await adapters[Mode.LOGICAL_MATH].run(Query("2+2"), ())
        user = provider.requests[0]["messages"][-1]
        assert user["content"] == "Solve this mathematical problem step by step: 2+2"

    @pytest.mark.anyio
    async def test_mode_params_sent(self, adapters, provider):
        await adapters[Mode.DETAILED].run(Query("explain gravity"), ())
        payload = provider.requests[0]
        assert payload["max_tokens"] == 2000
        assert payload["presence_penalty"] == 0.1


class TestImageAdapter:
    """Image validation and tier selection."""

    def test_image_adapter_class(self, adapters):
        assert isinstance(adapters[Mode.IMAGE], ImageModeAdapter)
        assert not isinstance(adapters[Mode.QUICK_ANSWER], ImageModeAdapter)

    @pytest.mark.anyio
    async def test_image_goes_to_vision_model(self, adapters, provider):
        query = Query("what is this", image_ref="https://example.com/photo.PNG?size=large")
        response = await adapters[Mode.IMAGE].run(query, ())

        assert response.model_id == MODEL_IDS["llama_vision"]
        content = provider.requests[0]["messages"][-1]["content"]
        assert content[0] == {"type": "text", "text": "what is this"}
        assert content[1] == {"type": "image_url", "image_url": {"url": query.image_ref}}

    @pytest.mark.anyio
    async def test_image_backup_keeps_image(self, adapters, provider):
        provider.fail(MODEL_IDS["llama_vision"])
        query = Query("what is this", image_ref="https://example.com/photo.jpg")
        response = await adapters[Mode.IMAGE].run(query, ())

        assert response.model_id == MODEL_IDS["gemini"]
        assert isinstance(provider.requests[1]["messages"][-1]["content"], list)

    @pytest.mark.anyio
    async def test_without_image_tiers_swap(self, adapters, provider):
        """Text-only image questions go to the backup model first."""
        response = await adapters[Mode.IMAGE].run(Query("how do painters use perspective"), ())

        assert response.model_id == MODEL_IDS["gemini"]
        assert provider.requests[0]["messages"][-1]["content"] == "how do painters use perspective"

    @pytest.mark.anyio
    async def test_without_image_falls_back_to_vision(self, adapters, provider):
        provider.fail(MODEL_IDS["gemini"])
        response = await adapters[Mode.IMAGE].run(Query("describe cubism"), ())
        assert response.model_id == MODEL_IDS["llama_vision"]

    @pytest.mark.anyio
    async def test_unsupported_format_rejected_before_request(self, adapters, provider):
        with pytest.raises(UnsupportedImageFormatError):
            await adapters[Mode.IMAGE].run(Query("what is this", image_ref="https://example.com/scan.tiff"), ())
        assert provider.requests == []


class TestImageFormats:
    """Image reference parsing."""

    @pytest.mark.parametrize("ref,expected", [
        ("https://example.com/a/b/cat.jpeg", "jpeg"),
        ("https://example.com/cat.WEBP#frag", "webp"),
        ("file:///tmp/cat.gif", "gif"),
        ("data:image/png;base64,iVBORw0KGgo=", "png"),
        ("https://example.com/image", None),
        ("data:text/plain;base64,aGVsbG8=", None),
    ])
    def test_image_format(self, ref, expected):
        assert image_format(ref) == expected

    def test_validate_accepts_allowed(self):
        assert validate_image("photo.jpg") == "jpg"

    @pytest.mark.parametrize("ref", ["photo.bmp", "https://example.com/noext", "data:application/pdf;base64,AA=="])
    def test_validate_rejects(self, ref):
        with pytest.raises(UnsupportedImageFormatError):
            validate_image(ref)
