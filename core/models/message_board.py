# =============================================================================
# core/models/message_board.py - Community Message Board Schemas
# =============================================================================
# Posts live in messageBoardPosts/{postId}; comments and replies are written
# by the web client directly and only reach the API for notifications.
# =============================================================================

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EDIT_WINDOW_HOURS = 24
MAX_MENTIONS = 50


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PostEdit(_CamelModel):
    content: str = Field(..., min_length=1, max_length=10000)


class CommentNotification(_CamelModel):
    """A comment was added to someone's post."""
    comment_id: str = Field(..., min_length=1)
    post_author_id: str = Field(..., min_length=1)


class ReplyNotification(_CamelModel):
    """A reply was added under someone's comment."""
    comment_id: str = Field(..., min_length=1)
    reply_id: str = Field(..., min_length=1)
    comment_author_id: str = Field(..., min_length=1)


class MentionNotification(_CamelModel):
    """Handles or display names mentioned in a post."""
    mentions: list[str] = Field(..., max_length=MAX_MENTIONS)
    author_name: str | None = Field(default=None, max_length=100)


# -----------------------------------------------------------------------------
# Badges
# -----------------------------------------------------------------------------

class BadgeDefinition(BaseModel):
    """
    A badge and how it is earned.

    criteria is "date" (account created before `before`) or "count" (at
    least `count` matching documents in `collection` where `field` is the
    user's ID).
    """
    id: str
    name: str
    description: str
    criteria: str
    before: datetime | None = None
    collection: str | None = None
    field: str | None = None
    count: int = 0


BADGE_DEFINITIONS: list[BadgeDefinition] = [
    BadgeDefinition(
        id="early_member",
        name="Early Member",
        description="Joined before 2024",
        criteria="date",
        before=datetime(2024, 1, 1, tzinfo=timezone.utc),
    ),
    BadgeDefinition(
        id="first_purchase",
        name="First Purchase",
        description="Bought something on the marketplace",
        criteria="count",
        collection="orders",
        field="buyerId",
        count=1,
    ),
    BadgeDefinition(
        id="active_poster",
        name="Active Poster",
        description="Wrote 10 message board posts",
        criteria="count",
        collection="messageBoardPosts",
        field="authorId",
        count=10,
    ),
    BadgeDefinition(
        id="top_seller",
        name="Top Seller",
        description="Sold 5 items on the marketplace",
        criteria="count",
        collection="orders",
        field="sellerId",
        count=5,
    ),
]
