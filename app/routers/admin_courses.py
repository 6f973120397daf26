# =============================================================================
# app/routers/admin_courses.py - Course Authoring
# =============================================================================
# Admin-only. Paths mirror the Firestore layout:
#   /admin/courses/{courseId}/modules/{moduleId}/lessons/{lessonId}
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path
from pydantic import BaseModel

from app.dependencies import AdminUser
from core.models.course import (
    CourseCreate,
    LessonCreate,
    LessonMove,
    LessonUpdate,
    ModuleCreate,
    ModuleUpdate,
    MuxLink,
)
from core.services.course_service import CourseService

router = APIRouter()

CourseId = Annotated[str, Path(description="Course ID")]
ModuleId = Annotated[str, Path(description="Module ID")]
LessonId = Annotated[str, Path(description="Lesson ID")]


class LessonUploadRequest(BaseModel):
    title: str | None = None
    description: str | None = None


# =============================================================================
# Read
# =============================================================================

@router.get("")
async def list_courses(admin: AdminUser):
    """All courses with modules, lessons and whether each lesson has a video."""
    return {"courses": CourseService.list_courses_with_videos()}


# =============================================================================
# Create
# =============================================================================

@router.post("")
async def create_course(body: CourseCreate, admin: AdminUser):
    course_id = CourseService.create_course(body.title, body.slug, created_by=admin.uid)
    return {"success": True, "courseId": course_id}


@router.post("/{course_id}/modules")
async def create_module(course_id: CourseId, body: ModuleCreate, admin: AdminUser):
    module_id = CourseService.create_module(course_id, body.title, body.index)
    return {"success": True, "moduleId": module_id}


@router.post("/{course_id}/modules/{module_id}/lessons")
async def create_lesson(course_id: CourseId, module_id: ModuleId, body: LessonCreate, admin: AdminUser):
    lesson_id = CourseService.create_lesson(
        course_id,
        module_id,
        title=body.title,
        index=body.index,
        description=body.description,
        free_preview=body.free_preview,
    )
    return {"success": True, "lessonId": lesson_id}


# =============================================================================
# Update
# =============================================================================

@router.patch("/{course_id}/modules/{module_id}")
async def update_module(course_id: CourseId, module_id: ModuleId, body: ModuleUpdate, admin: AdminUser):
    CourseService.update_module(course_id, module_id, body)
    return {"success": True}


@router.patch("/{course_id}/modules/{module_id}/lessons/{lesson_id}")
async def update_lesson(
    course_id: CourseId,
    module_id: ModuleId,
    lesson_id: LessonId,
    body: LessonUpdate,
    admin: AdminUser,
):
    CourseService.update_lesson(course_id, module_id, lesson_id, body)
    return {"success": True}


@router.post("/{course_id}/modules/{module_id}/lessons/{lesson_id}/move")
async def move_lesson(
    course_id: CourseId,
    module_id: ModuleId,
    lesson_id: LessonId,
    body: LessonMove,
    admin: AdminUser,
):
    """Move a lesson to another module, or re-index it within this one."""
    CourseService.move_lesson(course_id, module_id, body.target_module_id, lesson_id, body.new_index)
    return {"success": True, "moduleId": body.target_module_id}


# =============================================================================
# Video
# =============================================================================

@router.post("/{course_id}/modules/{module_id}/lessons/{lesson_id}/mux")
async def link_mux(
    course_id: CourseId,
    module_id: ModuleId,
    lesson_id: LessonId,
    body: MuxLink,
    admin: AdminUser,
):
    """Attach an existing Mux asset or playback ID to a lesson."""
    return CourseService.link_mux(
        course_id, module_id, lesson_id,
        playback_id=body.playback_id,
        asset_id=body.asset_id,
    )


@router.post("/{course_id}/modules/{module_id}/lessons/{lesson_id}/upload")
async def create_lesson_upload(
    course_id: CourseId,
    module_id: ModuleId,
    lesson_id: LessonId,
    admin: AdminUser,
    body: LessonUploadRequest | None = None,
):
    """
    Direct upload URL for a lesson video.

    The browser PUTs the file to uploadUrl; the Mux webhook links the
    resulting asset to the lesson.
    """
    body = body or LessonUploadRequest()
    return CourseService.create_lesson_upload(
        course_id, module_id, lesson_id,
        title=body.title,
        description=body.description,
    )
