# =============================================================================
# app/routers/mux.py - Signed Playback Tokens
# =============================================================================

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.dependencies import OptionalUser
from core.services.playback_service import PlaybackService

router = APIRouter()


class TokenRequest(BaseModel):
    playback_id: str = Field(..., min_length=1, alias="playbackId")

    model_config = {"populate_by_name": True}


class TokenResponse(BaseModel):
    token: str
    expiresIn: int


@router.post("/token", response_model=TokenResponse)
async def playback_token(body: TokenRequest, user: OptionalUser):
    """
    Token for a signed playback ID.

    Free previews and sample videos don't need sign-in; everything else
    needs the matching enrollment, membership or creator subscription.
    """
    return PlaybackService.issue_token(user, body.playback_id)
