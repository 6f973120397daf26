# =============================================================================
# app/routers/message_board.py - Message Board Actions
# =============================================================================
# Posts and comments are written by the client; these endpoints cover
# edits, bookmarks, follows, notifications and badges.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path

from app.dependencies import CurrentUser
from core.models.message_board import (
    CommentNotification,
    MentionNotification,
    PostEdit,
    ReplyNotification,
)
from core.services.message_board_service import MessageBoardService

router = APIRouter()

PostId = Annotated[str, Path(description="messageBoardPosts document ID")]
UserId = Annotated[str, Path(description="User to follow or unfollow")]


@router.put("/posts/{post_id}")
async def edit_post(post_id: PostId, body: PostEdit, user: CurrentUser):
    """Authors may edit within 24 hours of posting."""
    MessageBoardService.edit_post(user.uid, post_id, body.content)
    return {"success": True}


@router.post("/posts/{post_id}/bookmark")
async def bookmark_post(post_id: PostId, user: CurrentUser):
    MessageBoardService.bookmark(user.uid, post_id)
    return {"success": True}


@router.delete("/posts/{post_id}/bookmark")
async def remove_bookmark(post_id: PostId, user: CurrentUser):
    MessageBoardService.remove_bookmark(user.uid, post_id)
    return {"success": True}


@router.post("/posts/{post_id}/notify-comment")
async def notify_comment(post_id: PostId, body: CommentNotification, user: CurrentUser):
    sent = MessageBoardService.notify_comment(user.uid, post_id, body.comment_id, body.post_author_id)
    return {"success": True, "notified": int(sent)}


@router.post("/posts/{post_id}/notify-reply")
async def notify_reply(post_id: PostId, body: ReplyNotification, user: CurrentUser):
    sent = MessageBoardService.notify_reply(
        user.uid, post_id, body.comment_id, body.reply_id, body.comment_author_id
    )
    return {"success": True, "notified": int(sent)}


@router.post("/posts/{post_id}/notify-mentions")
async def notify_mentions(post_id: PostId, body: MentionNotification, user: CurrentUser):
    notified = MessageBoardService.notify_mentions(user.uid, post_id, body.mentions, body.author_name)
    return {"success": True, "notified": notified}


@router.post("/users/{user_id}/follow")
async def follow_user(user_id: UserId, user: CurrentUser):
    MessageBoardService.follow(user.uid, user_id)
    return {"success": True}


@router.delete("/users/{user_id}/follow")
async def unfollow_user(user_id: UserId, user: CurrentUser):
    MessageBoardService.unfollow(user.uid, user_id)
    return {"success": True}


@router.post("/badges/check")
async def check_badges(user: CurrentUser):
    """Award the caller any badges they now qualify for."""
    awarded = MessageBoardService.check_badges(user.uid)
    return {"awarded": awarded, "count": len(awarded)}
