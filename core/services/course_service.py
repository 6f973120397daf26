# =============================================================================
# core/services/course_service.py - Course Authoring
# =============================================================================
# Admin operations on courses/{courseId}/modules/{moduleId}/lessons/{lessonId}
# and on the Mux videos attached to lessons.
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from app.config import settings
from app.exceptions import InvalidRequestError, ResourceNotFoundError
from core.models.course import LessonUpdate, ModuleUpdate
from lib.firebase_client import FirebaseClient
from lib.mux_client import MuxClient
from lib.mux_thumbnails import animated_gif_url, best_thumbnail

logger = logging.getLogger(__name__)


def _existing(ref, resource: str, resource_id: str):
    """Snapshot of ref, or ResourceNotFoundError."""
    snapshot = ref.get()
    if not snapshot.exists:
        raise ResourceNotFoundError(resource, resource_id)
    return snapshot


def lesson_passthrough(course_id: str, module_id: str, lesson_id: str) -> str:
    """Mux passthrough that locates a lesson when its asset is ready."""
    return f"courseId:{course_id}|moduleId:{module_id}|lessonId:{lesson_id}"


class CourseService:
    """Course, module and lesson administration."""

    @staticmethod
    def _course_ref(course_id: str):
        return FirebaseClient.get_db().collection("courses").document(course_id)

    @staticmethod
    def _module_ref(course_id: str, module_id: str):
        return CourseService._course_ref(course_id).collection("modules").document(module_id)

    @staticmethod
    def _lesson_ref(course_id: str, module_id: str, lesson_id: str):
        return CourseService._module_ref(course_id, module_id).collection("lessons").document(lesson_id)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    @staticmethod
    def create_course(title: str, slug: str, created_by: str = "admin") -> str:
        """Create an unpublished, empty course; returns its ID."""
        ref = FirebaseClient.get_db().collection("courses").document()
        ref.set({
            "title": title,
            "slug": slug,
            "summary": "",
            "price": 0,
            "isSubscription": False,
            "featured": False,
            "categories": [],
            "modulesCount": 0,
            "lessonsCount": 0,
            "published": False,
            "createdBy": created_by,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Course {ref.id} created ({slug})")
        return ref.id

    @staticmethod
    def create_module(course_id: str, title: str, index: int) -> str:
        """
        Add a module to a course.

        Raises:
            ResourceNotFoundError: If the course doesn't exist
        """
        course_ref = CourseService._course_ref(course_id)
        course = _existing(course_ref, "Course", course_id).to_dict() or {}

        module_ref = course_ref.collection("modules").document()
        module_ref.set({
            "title": title,
            "index": index,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        course_ref.update({
            "modulesCount": int(course.get("modulesCount") or 0) + 1,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Module {module_ref.id} added to course {course_id}")
        return module_ref.id

    @staticmethod
    def create_lesson(
        course_id: str,
        module_id: str,
        title: str,
        index: int,
        description: str | None = None,
        free_preview: bool = False,
    ) -> str:
        """
        Add a lesson to a module.

        Raises:
            ResourceNotFoundError: If the course or module doesn't exist
        """
        course_ref = CourseService._course_ref(course_id)
        course = _existing(course_ref, "Course", course_id).to_dict() or {}
        module_ref = course_ref.collection("modules").document(module_id)
        _existing(module_ref, "Module", module_id)

        lesson_ref = module_ref.collection("lessons").document()
        lesson_ref.set({
            "title": title,
            "index": index,
            "description": description or "",
            "freePreview": free_preview,
            "durationSec": 0,
            "resources": [],
            "transcriptPath": None,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        course_ref.update({
            "lessonsCount": int(course.get("lessonsCount") or 0) + 1,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Lesson {lesson_ref.id} added to {course_id}/{module_id}")
        return lesson_ref.id

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    @staticmethod
    def update_module(course_id: str, module_id: str, data: ModuleUpdate) -> None:
        ref = CourseService._module_ref(course_id, module_id)
        _existing(ref, "Module", module_id)
        fields = data.model_dump(exclude_none=True)
        ref.update({**fields, "updatedAt": firestore.SERVER_TIMESTAMP})

    @staticmethod
    def update_lesson(course_id: str, module_id: str, lesson_id: str, data: LessonUpdate) -> None:
        """Partial update; omitted fields keep their values."""
        ref = CourseService._lesson_ref(course_id, module_id, lesson_id)
        _existing(ref, "Lesson", lesson_id)
        fields = data.model_dump(exclude_none=True)
        if "free_preview" in fields:
            fields["freePreview"] = fields.pop("free_preview")
        ref.update({**fields, "updatedAt": firestore.SERVER_TIMESTAMP})
        logger.info(f"Lesson {lesson_id} updated ({', '.join(sorted(fields))})")

    @staticmethod
    def move_lesson(
        course_id: str,
        source_module_id: str,
        target_module_id: str,
        lesson_id: str,
        new_index: int | None = None,
    ) -> None:
        """
        Move a lesson to another module (or re-index it within its module).

        Moving copies the lesson under the target module, keeping its ID, at
        new_index or after the target's last lesson, then deletes the source.
        """
        source_ref = CourseService._module_ref(course_id, source_module_id)
        target_ref = CourseService._module_ref(course_id, target_module_id)
        _existing(source_ref, "Module", source_module_id)
        _existing(target_ref, "Module", target_module_id)

        lesson_ref = source_ref.collection("lessons").document(lesson_id)
        lesson = _existing(lesson_ref, "Lesson", lesson_id).to_dict() or {}

        if source_module_id == target_module_id:
            if new_index is not None:
                lesson_ref.update({"index": new_index, "updatedAt": firestore.SERVER_TIMESTAMP})
            return

        if new_index is None:
            indexes = [int((doc.to_dict() or {}).get("index") or 0) for doc in target_ref.collection("lessons").stream()]
            new_index = max(indexes) + 1 if indexes else 0

        target_ref.collection("lessons").document(lesson_id).set({
            **lesson,
            "index": new_index,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        lesson_ref.delete()
        logger.info(f"Lesson {lesson_id} moved {source_module_id} -> {target_module_id} at {new_index}")

    # -------------------------------------------------------------------------
    # Mux
    # -------------------------------------------------------------------------

    @staticmethod
    def link_mux(
        course_id: str,
        module_id: str,
        lesson_id: str,
        playback_id: str | None = None,
        asset_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Attach a Mux video to a lesson.

        - asset only: playback ID and duration come from the asset
        - playback only: asset and duration come from the lesson's upload, if any
        - both: the asset's playback ID must match

        Raises:
            InvalidRequestError: No usable playback ID, or IDs that don't match
            ResourceNotFoundError: If the lesson doesn't exist
        """
        if not playback_id and not asset_id:
            raise InvalidRequestError("Either playback_id or asset_id must be provided")

        lesson_ref = CourseService._lesson_ref(course_id, module_id, lesson_id)
        lesson = _existing(lesson_ref, "Lesson", lesson_id).to_dict() or {}
        duration = 0

        if asset_id:
            asset = MuxClient.get_asset(asset_id)
            asset_playback_id = MuxClient.first_playback_id(asset)
            if playback_id and asset_playback_id != playback_id:
                raise InvalidRequestError(
                    "Playback ID does not match the provided asset ID",
                    details={"providedPlaybackId": playback_id, "assetPlaybackId": asset_playback_id},
                )
            if not asset_playback_id:
                raise InvalidRequestError(
                    "Asset found but has no playback ID",
                    suggestion="The asset may still be processing; try again shortly",
                )
            playback_id = asset_playback_id
            asset_id = asset.get("id") or asset_id
            duration = MuxClient.duration_seconds(asset)
        elif lesson.get("muxUploadId"):
            try:
                upload = MuxClient.get_upload(lesson["muxUploadId"])
                if upload.get("asset_id"):
                    asset = MuxClient.get_asset(upload["asset_id"])
                    asset_id = asset.get("id")
                    duration = MuxClient.duration_seconds(asset)
            except InvalidRequestError:
                raise
            except Exception as e:
                logger.warning(f"Could not resolve upload for lesson {lesson_id}: {e}")

        updates: dict[str, Any] = {
            "muxPlaybackId": playback_id,
            "muxAnimatedGifUrl": animated_gif_url(playback_id),
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if asset_id:
            updates["muxAssetId"] = asset_id
        if duration > 0:
            updates["durationSec"] = duration
        lesson_ref.set(updates, merge=True)
        logger.info(f"Lesson {lesson_id} linked to Mux playback {playback_id}")

        return {
            "success": True,
            "playbackId": playback_id,
            "assetId": asset_id,
            "durationSec": duration,
        }

    @staticmethod
    def create_lesson_upload(
        course_id: str,
        module_id: str,
        lesson_id: str,
        title: str | None = None,
        description: str | None = None,
    ) -> dict[str, str]:
        """
        Mux direct upload URL for a lesson video.

        The upload ID is stored on the lesson so the asset can be matched back
        to it before the webhook arrives.
        """
        _existing(CourseService._course_ref(course_id), "Course", course_id)
        _existing(CourseService._module_ref(course_id, module_id), "Module", module_id)
        lesson_ref = CourseService._lesson_ref(course_id, module_id, lesson_id)
        _existing(lesson_ref, "Lesson", lesson_id)

        cors_origin = "*" if settings.is_development else (settings.cors_origins_list[0] if settings.cors_origins_list else settings.BASE_URL)
        upload = MuxClient.create_direct_upload(
            passthrough=lesson_passthrough(course_id, module_id, lesson_id),
            cors_origin=cors_origin,
            signed=True,
        )

        fields: dict[str, Any] = {"muxUploadId": upload.get("id"), "updatedAt": firestore.SERVER_TIMESTAMP}
        if title:
            fields["title"] = title
        if description is not None:
            fields["description"] = description
        lesson_ref.set(fields, merge=True)
        logger.info(f"Mux upload {upload.get('id')} created for lesson {lesson_id}")

        return {"uploadId": upload.get("id"), "uploadUrl": upload.get("url")}

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    @staticmethod
    def list_courses_with_videos() -> list[dict[str, Any]]:
        """Every course with its modules and lessons, ordered, with video status."""
        db = FirebaseClient.get_db()
        courses = []
        for course_doc in db.collection("courses").order_by("title").stream():
            course = course_doc.to_dict() or {}
            modules = []
            for module_doc in course_doc.reference.collection("modules").order_by("index").stream():
                module = module_doc.to_dict() or {}
                lessons = []
                for lesson_doc in module_doc.reference.collection("lessons").order_by("index").stream():
                    lesson = lesson_doc.to_dict() or {}
                    lessons.append({
                        "id": lesson_doc.id,
                        "title": lesson.get("title") or "Untitled Lesson",
                        "description": lesson.get("description") or "",
                        "index": lesson.get("index") or 0,
                        "freePreview": bool(lesson.get("freePreview")),
                        "durationSec": lesson.get("durationSec") or 0,
                        "muxAssetId": lesson.get("muxAssetId"),
                        "muxPlaybackId": lesson.get("muxPlaybackId"),
                        "muxAnimatedGifUrl": lesson.get("muxAnimatedGifUrl"),
                        "thumbnailUrl": lesson.get("muxAnimatedGifUrl")
                        or best_thumbnail(lesson.get("muxPlaybackId"), lesson.get("durationSec")),
                        "hasVideo": bool(lesson.get("muxAssetId") and lesson.get("muxPlaybackId")),
                    })
                modules.append({
                    "id": module_doc.id,
                    "title": module.get("title") or "Untitled Module",
                    "index": module.get("index") or 0,
                    "lessons": lessons,
                })
            courses.append({
                "id": course_doc.id,
                "title": course.get("title") or "Untitled Course",
                "slug": course.get("slug") or course_doc.id,
                "modules": modules,
            })
        return courses
