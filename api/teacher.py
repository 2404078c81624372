"""Teacher dashboard endpoints — roster, modules, progress, publishing, reminders.

All routes require a caller whose identity-metadata role is ``teacher``.
The teacher's metadata ``subject`` (and ``grade`` for module listings)
scopes what they see.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from adapters.user_adapter import build_roster
from api.request_utils import parse_body
from errors import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    SupabaseError,
    UpstreamError,
)
from models.data import AuthUser, Role, StudentView
from models.request import PublishModuleRequest, ReminderRequest
from services.supabase_service import SupabaseService, get_supabase_service
from skylab_backend.auth import require_teacher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher", tags=["teacher"])

PROGRESS_MODULE_COLUMNS = "id,title,grade,subject,published"
MODULE_LIST_COLUMNS = (
    "id,title,grade,subject,module,description,asset_urls,price_yearly,published,created_at"
)


async def _roster(service: SupabaseService, teacher: AuthUser) -> list[StudentView]:
    try:
        users = await service.list_users()
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc
    return build_roster(users, teacher.subject)


@router.get("/students")
async def list_students(
    teacher: AuthUser = Depends(require_teacher("view students")),
    service: SupabaseService = Depends(get_supabase_service),
):
    """Students visible to the teacher (unset or matching subject)."""
    students = await _roster(service, teacher)
    return {"students": [s.model_dump() for s in students]}


@router.get("/modules")
async def list_modules(
    teacher: AuthUser = Depends(require_teacher("view")),
    service: SupabaseService = Depends(get_supabase_service),
):
    """All modules in the teacher's subject and grade, newest first."""
    try:
        modules = await service.list_modules(
            MODULE_LIST_COLUMNS,
            subject=teacher.subject,
            grade=teacher.grade,
            newest_first=True,
        )
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc
    return {"modules": modules}


@router.get("/progress")
async def get_progress(
    teacher: AuthUser = Depends(require_teacher("view progress")),
    service: SupabaseService = Depends(get_supabase_service),
):
    """Published modules, the roster, and every submission against those modules."""
    try:
        modules = await service.list_modules(
            PROGRESS_MODULE_COLUMNS,
            subject=teacher.subject,
            published=True,
        )
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc

    students = await _roster(service, teacher)

    module_ids = [m["id"] for m in modules if m.get("id")]
    try:
        submissions = await service.list_submissions(module_ids)
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc

    return {
        "modules": modules,
        "submissions": submissions,
        "students": [s.model_dump() for s in students],
    }


@router.post("/publish")
async def publish_module(
    request: Request,
    teacher: AuthUser = Depends(require_teacher("publish")),
    service: SupabaseService = Depends(get_supabase_service),
):
    """Publish or unpublish a module within the teacher's subject."""
    body = await parse_body(request, PublishModuleRequest)
    module_id = (body.module_id or "").strip()
    published = True if body.published is None else body.published
    if not module_id:
        raise BadRequestError("moduleId is required")

    try:
        module = await service.get_module(module_id, "id,subject")
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc
    if module is None:
        raise NotFoundError("Module not found")

    teacher_subject = teacher.subject
    if teacher_subject and module.get("subject") != teacher_subject:
        raise PermissionDeniedError("Cannot publish modules outside your subject")

    try:
        await service.set_module_published(module_id, published)
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc

    return {"success": True, "published": published}


async def _ensure_profile(service: SupabaseService, user: AuthUser, role: str) -> None:
    full_name = user.full_name or user.email or role
    try:
        await service.upsert_profile({"id": user.id, "full_name": full_name, "role": role})
    except SupabaseError as exc:
        raise UpstreamError(f"Profile upsert failed: {exc.message}") from exc


def build_reminder(module_title: str | None, module_subject: str | None) -> tuple[str, str]:
    """Return ``(title, message)`` for a submission reminder notification."""
    title = f"Reminder: {module_title}" if module_title else "Submission reminder"
    title_part = f' "{module_title}"' if module_title else ""
    subject_part = f" for {module_subject}" if module_subject else ""
    message = (
        f"Please submit your activity{title_part}{subject_part}. "
        "Your teacher has requested your submission."
    )
    return title, message


@router.post("/reminders")
async def send_reminder(
    request: Request,
    teacher: AuthUser = Depends(require_teacher("send reminders")),
    service: SupabaseService = Depends(get_supabase_service),
):
    """Queue an unread reminder notification for one student."""
    body = await parse_body(request, ReminderRequest, lenient=True)
    student_id = body.student_id or ""
    if not student_id:
        raise BadRequestError("Missing studentId")

    try:
        student = await service.get_user_by_id(student_id)
    except SupabaseError as exc:
        raise NotFoundError(exc.message or "Student not found") from exc
    if student is None:
        raise NotFoundError("Student not found")
    if student.meta_role != Role.STUDENT.value:
        raise BadRequestError("Target user is not a student")

    await _ensure_profile(service, teacher, Role.TEACHER.value)
    await _ensure_profile(service, student, Role.STUDENT.value)

    module_title = body.module_title
    module_subject = body.subject or teacher.subject
    if body.module_id:
        try:
            module = await service.get_module(body.module_id, "title,subject,grade")
        except SupabaseError as exc:
            raise UpstreamError(exc.message) from exc
        if module:
            module_title = module.get("title") or module_title
            module_subject = module.get("subject") or module_subject

    title, message = build_reminder(module_title, module_subject)
    try:
        await service.insert_notification({
            "user_id": student_id,
            "module_id": body.module_id,
            "subject": module_subject,
            "title": title,
            "message": message,
            "status": "unread",
        })
    except SupabaseError as exc:
        raise UpstreamError(exc.message) from exc

    logger.info("Teacher %s reminded student %s", teacher.id, student_id)
    return {"ok": True}
