# confdesk/api/v1/routers/admin.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from tortoise.expressions import Q

from confdesk.core import outbox
from confdesk.core.policy import authorize
from confdesk.core.workflow import PaperEvent, PaperStatus, next_status
from confdesk.models.outbox import OutboxEntry
from confdesk.models.paper import PaperSubmission
from confdesk.models.user import Role, User
from confdesk.schemas.admin import AssignEditorIn, CreateStaffIn
from confdesk.services import notifications
from confdesk.services.accounts import create_staff_account
from confdesk.services.assignments import versioned_update

router = APIRouter(prefix="/admin", tags=["admin"])


async def _count_admins() -> int:
    """
    Count the total number of admin users in the system.
    Used to prevent deleting the last admin user.
    """
    return await User.filter(role=Role.ADMIN).count()


async def _get_paper(paper_id: str) -> PaperSubmission:
    paper = await PaperSubmission.find(paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    return paper


async def _get_editor(editor_id: Optional[str]) -> User:
    try:
        parsed = uuid.UUID(str(editor_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Editor not found")
    editor = await User.get_or_none(id=parsed, role=Role.EDITOR)
    if not editor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Editor not found")
    return editor


# ==============================================================================
# I. Editors and paper assignment
#     Prefix: /api/v1/admin/editors, /api/v1/admin/papers/{id}/editor
# ==============================================================================
@router.post("/editors", status_code=status.HTTP_201_CREATED)
async def create_editor(
    body: CreateStaffIn,
    background_tasks: BackgroundTasks,
    admin: User = Depends(authorize("editor.create")),
):
    editor = await create_staff_account(body, Role.EDITOR, background_tasks)
    return {"success": True, "message": "Editor created and credentials emailed", "data": editor.public_dict()}


@router.get("/editors")
async def list_editors(admin: User = Depends(authorize("user.manage"))):
    editors = await User.filter(role=Role.EDITOR).order_by("username")
    items = []
    for e in editors:
        items.append({**e.public_dict(), "assignedPapers": await PaperSubmission.filter(assigned_editor_id=e.id).count()})
    return {"success": True, "data": items}


@router.post("/papers/{paper_id}/editor")
async def assign_editor(
    paper_id: str,
    body: AssignEditorIn,
    background_tasks: BackgroundTasks,
    admin: User = Depends(authorize("paper.assign_editor")),
):
    """
    Assign an editor to a freshly submitted paper (Submitted -> Editor Assigned).
    Papers further along the workflow use the reassign endpoint.
    """
    paper = await _get_paper(paper_id)
    editor = await _get_editor(body.editorId)

    def mutate(p: PaperSubmission) -> dict:
        return {"status": next_status(p.status, PaperEvent.ASSIGN_EDITOR), "assigned_editor_id": editor.id}

    paper = await versioned_update(paper.id, mutate)
    await notifications.notify(background_tasks, notifications.editor_assigned(editor, paper))
    return {"success": True, "message": f"Editor {editor.username} assigned", "data": paper.to_dict()}


@router.put("/papers/{paper_id}/editor")
async def reassign_editor(
    paper_id: str,
    body: AssignEditorIn,
    background_tasks: BackgroundTasks,
    admin: User = Depends(authorize("paper.assign_editor")),
):
    """Hand the paper to another editor; the status does not change."""
    paper = await _get_paper(paper_id)
    editor = await _get_editor(body.editorId)

    def mutate(p: PaperSubmission) -> dict | None:
        if p.assigned_editor_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Paper has no editor yet; assign one first")
        if PaperStatus(p.status) in (PaperStatus.REJECTED, PaperStatus.PUBLISHED):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Cannot reassign a paper in status '{PaperStatus(p.status).value}'")
        if str(p.assigned_editor_id) == str(editor.id):
            return None
        return {"assigned_editor_id": editor.id}

    paper = await versioned_update(paper.id, mutate)
    await notifications.notify(background_tasks, notifications.editor_assigned(editor, paper))
    return {"success": True, "message": f"Paper reassigned to {editor.username}", "data": paper.to_dict()}


# ==============================================================================
# II. User Management Interface
#     Prefix: /api/v1/admin/users
# ==============================================================================
@router.get("/users")
async def list_users(
    role: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Fuzzy search by username/email"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(authorize("user.manage")),
):
    qs = User.all().order_by("-created_at")
    if role:
        try:
            qs = qs.filter(role=Role(role))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role '{role}'")
    if search:
        qs = qs.filter(Q(username__icontains=search) | Q(email__icontains=search))

    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return {"success": True, "data": [u.public_dict() for u in rows], "offset": offset, "limit": limit, "total": total}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, admin: User = Depends(authorize("user.manage"))):
    """
    Permanently delete a user account.
    An admin cannot delete themselves, and the last admin cannot be deleted.
    """
    try:
        u = await User.get_or_none(id=uuid.UUID(user_id))
    except ValueError:
        u = None
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if str(admin.id) == str(u.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete yourself")
    if u.role == Role.ADMIN and await _count_admins() <= 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete the last admin")

    await u.delete()
    return {"success": True, "message": "User deleted"}


@router.get("/dashboard")
async def dashboard_stats(admin: User = Depends(authorize("stats.admin"))):
    by_status = {s.value: await PaperSubmission.filter(status=s).count() for s in PaperStatus}
    by_role = {r.value: await User.filter(role=r).count() for r in Role}
    recent = await PaperSubmission.all().order_by("-created_at").limit(5)
    return {
        "success": True,
        "data": {
            "totalPapers": sum(by_status.values()),
            "papersByStatus": by_status,
            "usersByRole": by_role,
            "recentSubmissions": [
                {
                    "id": str(p.id),
                    "submissionId": p.submission_id,
                    "paperTitle": p.title,
                    "authorName": p.author_name,
                    "status": PaperStatus(p.status).value,
                    "createdAt": p.created_at.isoformat() if p.created_at else None,
                }
                for p in recent
            ],
            "outbox": {
                "pending": await OutboxEntry.filter(status=outbox.PENDING).count(),
                "dead": await OutboxEntry.filter(status=outbox.DEAD).count(),
            },
        },
    }


# ==============================================================================
# III. Outbox (notification delivery and fan-out)
#     Prefix: /api/v1/admin/outbox
# ==============================================================================
@router.get("/outbox")
async def list_outbox(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    kind: Optional[str] = Query(default=None),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(authorize("outbox.manage")),
):
    qs = OutboxEntry.all().order_by("-created_at")
    if status_filter:
        qs = qs.filter(status=status_filter)
    if kind:
        qs = qs.filter(kind=kind)
    rows = await qs.limit(limit)
    return {"success": True, "data": [r.to_dict() for r in rows]}


@router.post("/outbox/drain")
async def drain_outbox(
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(authorize("outbox.manage")),
):
    """Retry pending entries now; dead entries are left for inspection."""
    result = await outbox.drain(limit=limit)
    return {"success": True, "data": result}
