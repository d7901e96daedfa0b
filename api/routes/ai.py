"""
InstantSolve API Routes.

Provides endpoints for:
- Mode catalog and query classification
- Answering queries (with optional chat session history)
- Stored chat sessions
- User preferences
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from instantsolve.cancellation import CancellationToken
from instantsolve.classifier import classify as classify_query
from instantsolve.classifier import extract_features
from instantsolve.config import get_settings
from instantsolve.modes import MODE_DESCRIPTIONS, Mode

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between client-disconnect checks while an answer is in flight
DISCONNECT_POLL_INTERVAL = 0.5


# ============================================================================
# Pydantic Models
# ============================================================================

class ClassifyRequest(BaseModel):
    """Request to classify a message."""
    message: str = Field(..., min_length=1, max_length=4000)


class ClassifyResponse(BaseModel):
    """Detected mode and the evidence for it."""
    mode: Mode
    confidence: float
    matched_signals: list[str] = []
    runner_up_modes: list[Mode] = []
    scores: dict[str, int] = {}
    features: list[str] = []


class AnswerRequest(BaseModel):
    """Request for an answer."""
    message: str = Field(..., min_length=1, max_length=4000)
    mode: Mode | None = None
    image_ref: str | None = Field(None, description="Image URL or data URI")
    chat_id: str | None = Field(None, description="Continue an existing chat")


class AnswerResponse(BaseModel):
    """Answer in the shape the UI renders."""
    success: bool
    data: str | None = None
    error: str | None = None
    error_kind: str | None = None
    mode: Mode
    model: str | None = None
    fallback_from: Mode | None = None
    confidence: float
    elapsed_ms: float
    chat_id: str | None = None


class PreferencesUpdate(BaseModel):
    """Partial update of user preferences."""
    preferred_mode: Mode | None = None
    accepted_terms: bool | None = None


class PreferencesResponse(BaseModel):
    preferred_mode: Mode
    accepted_terms: bool


# ============================================================================
# Helpers
# ============================================================================

async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Cancel the token when the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling answer")
            token.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


def _chat_detail(session) -> dict:
    detail = session.summary()
    detail["history"] = [turn.to_dict() for turn in session.history]
    return detail


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/modes")
async def get_modes(request: Request):
    """
    Get available response modes and their models.

    Returns the catalog in tie-break order for frontend display.
    """
    registry = request.app.state.selector.registry
    return {
        "modes": [
            {
                "mode": config.mode.value,
                "description": MODE_DESCRIPTIONS[config.mode],
                "primary_model": config.primary.model_id,
                "backup_model": config.backup.model_id,
                "max_tokens": config.params.max_tokens,
            }
            for config in registry
        ]
    }


@router.post("/classify", response_model=ClassifyResponse)
async def classify(body: ClassifyRequest):
    """Classify a message without answering it."""
    result = classify_query(body.message)
    return ClassifyResponse(
        mode=result.mode,
        confidence=result.confidence,
        matched_signals=sorted(result.matched_signals),
        runner_up_modes=[mode for mode in Mode if mode in result.runner_up_modes],
        scores={mode.value: score for mode, score in result.scores.items()},
        features=extract_features(body.message),
    )


@router.post("/answer", response_model=AnswerResponse)
async def answer(body: AnswerRequest, request: Request):
    """
    Answer a message.

    Uses the explicit mode if given, image mode when an image is attached,
    otherwise the classifier. With chat_id the stored session history is
    sent as context; successful answers are saved to the chat store.
    """
    selector = request.app.state.selector
    chats = request.app.state.chat_store

    history = ()
    if body.chat_id:
        session = chats.get(body.chat_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Chat not found")
        history = session.history

    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))

    try:
        result = await selector.get_answer(
            body.message,
            image_ref=body.image_ref,
            history=history,
            mode=body.mode,
            cancel_token=token,
        )
    except Exception as e:
        logger.error(f"Answer error: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An error occurred while processing your query. Please try again."
        ) from e
    finally:
        watcher.cancel()

    chat_id = body.chat_id
    if result.success:
        chat_id = chats.save(result.history, chat_id=body.chat_id).chat_id
    else:
        logger.warning(f"Answer failed: mode={result.used_mode.value} kind={result.error_kind}")

    payload = result.as_answer()
    return AnswerResponse(
        success=payload["success"],
        data=payload.get("data"),
        error=payload.get("error"),
        error_kind=result.error_kind.value if result.error_kind else None,
        mode=result.used_mode,
        model=payload["model"],
        fallback_from=result.fallback_from,
        confidence=result.classification.confidence,
        elapsed_ms=result.elapsed_ms,
        chat_id=chat_id,
    )


@router.get("/chats")
async def list_chats(request: Request):
    """List stored chats, most recent first."""
    chats = request.app.state.chat_store
    return {"count": len(chats), "chats": [session.summary() for session in chats.list()]}


@router.get("/chats/{chat_id}")
async def get_chat(chat_id: str, request: Request):
    """Get a stored chat with its full history."""
    session = request.app.state.chat_store.get(chat_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return _chat_detail(session)


@router.delete("/chats/{chat_id}")
async def delete_chat(chat_id: str, request: Request):
    """Delete a stored chat."""
    if not request.app.state.chat_store.delete(chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"success": True}


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(request: Request):
    prefs = request.app.state.settings_store.get()
    return PreferencesResponse(preferred_mode=prefs.preferred_mode, accepted_terms=prefs.accepted_terms)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(body: PreferencesUpdate, request: Request):
    """Update preferred mode and/or terms acceptance."""
    prefs = request.app.state.settings_store.update(
        preferred_mode=body.preferred_mode,
        accepted_terms=body.accepted_terms,
    )
    return PreferencesResponse(preferred_mode=prefs.preferred_mode, accepted_terms=prefs.accepted_terms)


@router.get("/health")
async def health():
    """
    Report which model keys are configured.

    Status is "degraded" when any key is missing.
    """
    configured = get_settings().keys.configured()
    return {
        "status": "ok" if all(configured.values()) else "degraded",
        "models": configured,
    }
