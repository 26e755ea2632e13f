"""Satisfaction rating submission."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..conversations.ratings import InvalidRatingError, RatingService
from ..conversations.repository import (
    ConversationNotFoundError,
    RatingAlreadyRecordedError,
)
from ..core.deps import get_rating_service
from ..core.limits import RATING_RATE_LIMIT, limiter

router = APIRouter(prefix="/api/conversations", tags=["ratings"])

logger = logging.getLogger(__name__)


class RatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class RatingCreated(BaseModel):
    id: UUID
    conversation_id: UUID
    rating: int


@router.post("/{conversation_id}/rating", response_model=RatingCreated, status_code=201)
@limiter.limit(RATING_RATE_LIMIT)
def submit_rating(
    request: Request,
    conversation_id: UUID,
    payload: RatingIn,
    service: RatingService = Depends(get_rating_service),
) -> RatingCreated:
    """Store the customer's 1-5 rating and close the conversation.

    Rate-limited by client IP.
    """
    try:
        receipt = service.submit_rating(
            conversation_id, payload.rating, comment=payload.comment
        )
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RatingAlreadyRecordedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidRatingError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return RatingCreated(
        id=receipt.id, conversation_id=receipt.conversation_id, rating=receipt.rating
    )
