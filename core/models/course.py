# =============================================================================
# core/models/course.py - Course Authoring Schemas
# =============================================================================
# Courses live at courses/{courseId}/modules/{moduleId}/lessons/{lessonId}.
# =============================================================================

from pydantic import BaseModel, Field, model_validator


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)


class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1)
    index: int = Field(..., ge=0)


class ModuleUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    index: int | None = Field(default=None, ge=0)


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1)
    index: int = Field(..., ge=0)
    description: str | None = None
    free_preview: bool = False


class LessonUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    index: int | None = Field(default=None, ge=0)
    free_preview: bool | None = None


class LessonMove(BaseModel):
    """Move a lesson between modules of the same course."""
    target_module_id: str = Field(..., min_length=1)
    new_index: int | None = Field(default=None, ge=0)


class MuxLink(BaseModel):
    """Attach a Mux video to a lesson by playback ID, asset ID or both."""

    playback_id: str | None = Field(default=None, min_length=1)
    asset_id: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def require_one_id(self):
        if not self.playback_id and not self.asset_id:
            raise ValueError("Either playback_id or asset_id must be provided")
        return self
