"""
Model Selector.

Entry point of the query pipeline:
1. Pick a mode (explicit choice, or the classifier)
2. Window the conversation history for that mode
3. Run the mode's adapter (which handles primary/backup itself)
4. If the adapter fails, retry once with quick_answer
5. Package everything into a PipelineResult

Callers always get a PipelineResult back; errors are reported in it, never
raised, except for an unknown explicit mode name (ValueError).
"""

import time
from collections.abc import Mapping, Sequence

import httpx
from loguru import logger

from instantsolve.backends import ChatCompletionsClient, ModeAdapter, build_adapters
from instantsolve.cancellation import CancellationToken
from instantsolve.classifier import classify
from instantsolve.config import Settings, get_settings
from instantsolve.errors import ErrorKind, PipelineError, RequestCancelledError
from instantsolve.history import append_turns, window_history
from instantsolve.modes import DEFAULT_MODE, Mode, parse_mode
from instantsolve.registry import ModelRegistry, build_registry
from instantsolve.types import AdapterResponse, ClassificationResult, ConversationTurn, PipelineResult, Query, Role
from instantsolve.utils.logging import mode_logger

INTERNAL_ERROR_MESSAGE = "Something went wrong while answering. Please try again."


class ModelSelector:
    """
    Routes queries to mode adapters.

    Built once by build_selector() and shared; holds no per-request state.
    """

    def __init__(
        self,
        adapters: Mapping[Mode, ModeAdapter],
        registry: ModelRegistry | None = None,
        client: ChatCompletionsClient | None = None,
    ):
        missing = [mode.value for mode in Mode if mode not in adapters]
        if missing:
            raise ValueError(f"No adapter for modes: {', '.join(missing)}")
        self.adapters = dict(adapters)
        self.registry = registry
        self.client = client

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    def select_mode(self, query: Query, mode: "Mode | str | None" = None) -> ClassificationResult:
        """Explicit mode wins; otherwise classify the text."""
        explicit = mode if mode is not None else query.explicit_mode
        if explicit is not None:
            return ClassificationResult.explicit(parse_mode(explicit))
        return classify(query.text)

    async def _run(
        self,
        mode: Mode,
        query: Query,
        history: tuple[ConversationTurn, ...],
        cancel_token: CancellationToken | None,
    ) -> AdapterResponse:
        windowed = window_history(history, mode)
        mode_logger(mode).debug(f"Running with {len(windowed)}/{len(history)} history turns")
        return await self.adapters[mode].run(query, windowed, cancel_token)

    async def get_response(
        self,
        query: "Query | str",
        history: Sequence[ConversationTurn] = (),
        mode: "Mode | str | None" = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineResult:
        """
        Answer a query.

        Args:
            query: Query (or plain text)
            history: Caller's conversation; never modified
            mode: Explicit mode, overriding classification
            cancel_token: Optional token that aborts the call

        Returns:
            PipelineResult. On success its history is the caller's history
            plus the new user and assistant turns.
        """
        if isinstance(query, str):
            query = Query(text=query)
        history = tuple(history)
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            classification = self.select_mode(query, mode)
        except PipelineError as e:
            logger.error(f"Classification failed: {e}")
            return PipelineResult(
                success=False,
                used_mode=DEFAULT_MODE,
                classification=ClassificationResult(mode=DEFAULT_MODE, confidence=0.0),
                error=e.user_message,
                error_kind=e.kind,
                elapsed_ms=elapsed(),
                history=history,
            )

        selected = classification.mode
        logger.info(f"Query routed to {selected.value} (confidence {classification.confidence:.2f})")

        def failure(error: PipelineError) -> PipelineResult:
            return PipelineResult(
                success=False,
                used_mode=selected,
                classification=classification,
                error=error.user_message,
                error_kind=error.kind,
                elapsed_ms=elapsed(),
                history=history,
            )

        def success(response: AdapterResponse, fallback_from: Mode | None = None) -> PipelineResult:
            user_turn = ConversationTurn(
                role=Role.USER,
                content=query.text,
                mode=response.mode,
                image_ref=query.image_ref,
            )
            return PipelineResult(
                success=True,
                used_mode=response.mode,
                classification=classification,
                normalized_text=response.text,
                used_model=response.model_id,
                usage=response.usage,
                elapsed_ms=elapsed(),
                history=append_turns(history, user_turn, response.turn),
                fallback_from=fallback_from,
            )

        try:
            try:
                return success(await self._run(selected, query, history, cancel_token))
            except RequestCancelledError as e:
                logger.info(f"Request cancelled in {selected.value}: {e}")
                return failure(e)
            except PipelineError as e:
                if selected == Mode.QUICK_ANSWER:
                    logger.error(f"quick_answer failed: {e}")
                    return failure(e)
                logger.warning(f"{selected.value} failed ({e.kind.value}), falling back to quick_answer")
                first_error = e

            try:
                response = await self._run(Mode.QUICK_ANSWER, query, history, cancel_token)
            except RequestCancelledError as e:
                logger.info(f"Request cancelled in quick_answer fallback: {e}")
                return failure(e)
            except PipelineError as e:
                logger.error(f"quick_answer fallback failed after {first_error.kind.value}: {e}")
                return failure(e)
            return success(response, fallback_from=selected)

        except Exception:
            logger.exception(f"Unexpected error while answering in {selected.value}")
            return PipelineResult(
                success=False,
                used_mode=selected,
                classification=classification,
                error=INTERNAL_ERROR_MESSAGE,
                error_kind=ErrorKind.INTERNAL,
                elapsed_ms=elapsed(),
                history=history,
            )

    async def get_answer(
        self,
        text: str,
        image_ref: str | None = None,
        history: Sequence[ConversationTurn] = (),
        mode: "Mode | str | None" = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineResult:
        """Inbound call for the UI layer. An image without a mode selects image mode."""
        if mode is None and image_ref:
            mode = Mode.IMAGE
        query = Query(text=text, image_ref=image_ref)
        return await self.get_response(query, history, mode=mode, cancel_token=cancel_token)


def build_selector(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ModelSelector:
    """
    Wire registry, transport and adapters together.

    Args:
        settings: Settings to build from (defaults to get_settings())
        http_client: Optional shared HTTP client for the transport
    """
    settings = settings or get_settings()
    registry = build_registry(settings)
    client = ChatCompletionsClient(settings.openrouter, http_client=http_client)
    adapters = build_adapters(registry, client)

    missing_keys = [name for name, configured in settings.keys.configured().items() if not configured]
    if missing_keys:
        logger.warning(f"No API key configured for: {', '.join(missing_keys)}")

    return ModelSelector(adapters, registry=registry, client=client)
