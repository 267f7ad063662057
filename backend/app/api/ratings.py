"""
Ratings API — /ratings
──────────────────────
Endpoints:
  GET    /ratings/categories                       — The category table
  GET    /ratings/me                               — Current user's rated items, best first
  GET    /ratings/progress                         — Progress through the first 5 ratings
  POST   /ratings/sessions                         — Start rating an item (201)
  POST   /ratings/sessions/{session_id}/comparisons — Answer "which do you prefer?"
  POST   /ratings/sessions/{session_id}/commit     — Normalize + persist
  DELETE /ratings/sessions/{session_id}            — Abandon a session (204)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.db.models import User
from app.deps.auth import get_current_user
from app.deps.ratings import get_rating_store, get_session_registry
from app.schemas.ratings import (
    CategoryItem,
    CommitResponse,
    NextStepResponse,
    RatingListItem,
    RatingProgress,
    RecordComparisonRequest,
    SessionResponse,
    StartSessionRequest,
)
from app.services.rating_service import (
    cancel_session,
    commit_session,
    list_categories,
    list_my_ratings,
    rating_progress,
    record_comparison,
    start_session,
)
from app.services.rating_session import (
    RatingSession,
    SessionConflictError,
    SessionNotFoundError,
    SessionRegistry,
    SessionStateError,
)
from app.services.rating_store import RatingStoreError, SqlRatingStore
from app.services.rating_types import ComparisonError, NextStep

router = APIRouter()


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


def _next_step(step: NextStep) -> dict:
    return {
        "resolved": step.resolved,
        "opponent_id": step.opponent_id,
        "opponent_rating": step.opponent_rating,
        "final_rating": step.final_rating,
    }


def _session_payload(session: RatingSession) -> dict:
    return {
        "session_id": session.id,
        "item_id": session.item_id,
        "category": session.category.key,
        "mode": session.mode,
        "state": session.state.value,
        "comparisons": len(session.history),
        "next_step": _next_step(session.next_step),
    }


def _session_not_found(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=_error("SESSION_NOT_FOUND", str(exc)),
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("/categories", response_model=list[CategoryItem])
def get_categories() -> list[dict]:
    """The qualitative buckets a new rating starts from, lowest first."""
    return list_categories()


@router.get("/me", response_model=list[RatingListItem])
def get_my_ratings(store: SqlRatingStore = Depends(get_rating_store)) -> list[dict]:
    """Return the authenticated user's rated items, highest rating first."""
    return list_my_ratings(store)


@router.get("/progress", response_model=RatingProgress)
def get_progress(store: SqlRatingStore = Depends(get_rating_store)) -> dict:
    return rating_progress(store)


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_session_endpoint(
    payload: StartSessionRequest,
    current_user: User = Depends(get_current_user),
    store: SqlRatingStore = Depends(get_rating_store),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    """
    Start rating an item.

    The response carries the first opponent to compare against. When no
    comparison is needed it carries an already resolved rating instead.
    """
    try:
        session = await start_session(
            store, registry, current_user.id, payload.item_id, payload.category
        )
    except SessionConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_IN_PROGRESS", str(exc)),
        ) from exc
    except RatingStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error("RATING_STORE_UNAVAILABLE", str(exc)),
        ) from exc

    return _session_payload(session)


@router.post("/sessions/{session_id}/comparisons", response_model=NextStepResponse)
def record_comparison_endpoint(
    session_id: UUID,
    payload: RecordComparisonRequest,
    current_user: User = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    """Record the user's answer about the opponent they were shown."""
    try:
        step = record_comparison(
            registry, current_user.id, session_id, payload.opponent_id, payload.outcome
        )
    except SessionNotFoundError as exc:
        raise _session_not_found(exc) from exc
    except SessionStateError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_STATE", str(exc)),
        ) from exc
    except ComparisonError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error("COMPARISON_INVALID", str(exc)),
        ) from exc

    return _next_step(step)


@router.post("/sessions/{session_id}/commit", response_model=CommitResponse)
async def commit_session_endpoint(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    store: SqlRatingStore = Depends(get_rating_store),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    """
    Normalize the collection around the new rating and persist it.

    Neighbour writes that fail are listed in failed_item_ids; they heal on a
    later pass. Failing to write the new rating itself is a 503 and the
    session stays open for a retry.
    """
    try:
        session = await commit_session(store, registry, current_user.id, session_id)
    except SessionNotFoundError as exc:
        raise _session_not_found(exc) from exc
    except SessionStateError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_STATE", str(exc)),
        ) from exc
    except RatingStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error("RATING_STORE_UNAVAILABLE", str(exc)),
        ) from exc

    return {
        "session_id": session.id,
        "item_id": session.item_id,
        "final_rating": session.final_rating,
        "updated_count": len(session.updated_item_ids),
        "failed_item_ids": [str(item_id) for item_id in session.failed_item_ids],
    }


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_session_endpoint(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    """Abandon a session before commit. Nothing was written."""
    try:
        cancel_session(registry, current_user.id, session_id)
    except SessionNotFoundError as exc:
        raise _session_not_found(exc) from exc
