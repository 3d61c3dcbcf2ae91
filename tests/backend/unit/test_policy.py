"""
Unit tests for the role policy table and ownership predicates.
"""
import uuid
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from confdesk.core.policy import (
    POLICY,
    authorize,
    ensure,
    is_allowed,
    is_assigned_reviewer,
    is_paper_author,
    is_paper_editor,
)
from confdesk.models.user import Role


def _user(role: Role, email: str = "someone@example.com"):
    return SimpleNamespace(id=uuid.uuid4(), role=role, email=email)


def _paper(email: str = "author@example.com", editor_id=None, reviewers=()):
    assigned = {str(r) for r in reviewers}
    return SimpleNamespace(
        email=email,
        assigned_editor_id=editor_id,
        assignment_for=lambda rid: {"reviewer": str(rid)} if str(rid) in assigned else None,
    )


def test_every_action_has_at_least_one_role():
    assert all(POLICY[action] for action in POLICY)


@pytest.mark.parametrize(
    "role, action, allowed",
    [
        (Role.AUTHOR, "paper.submit", True),
        (Role.EDITOR, "paper.submit", False),
        (Role.EDITOR, "paper.assign_reviewers", True),
        (Role.ADMIN, "paper.assign_reviewers", True),
        (Role.REVIEWER, "paper.assign_reviewers", False),
        (Role.EDITOR, "paper.assign_editor", False),
        (Role.REVIEWER, "review.submit", True),
        (Role.EDITOR, "review.submit", False),
        (Role.AUTHOR, "payment.verify", False),
        (Role.ADMIN, "payment.verify", True),
        ("Reviewer", "message.reviewer", True),
    ],
)
def test_is_allowed(role, action, allowed):
    assert is_allowed(role, action) is allowed


def test_unknown_action_fails_at_declaration():
    with pytest.raises(KeyError):
        authorize("paper.teleport")


@pytest.mark.asyncio
async def test_authorize_dependency():
    dependency = authorize("copyright.review")
    admin = _user(Role.ADMIN)
    assert await dependency(user=admin) is admin

    with pytest.raises(HTTPException) as exc:
        await dependency(user=_user(Role.EDITOR))
    assert exc.value.status_code == 403
    assert "Admin" in exc.value.detail


def test_paper_author_match_ignores_case():
    paper = _paper(email="Author@Example.com")
    assert is_paper_author(_user(Role.AUTHOR, "author@example.com"), paper)
    assert not is_paper_author(_user(Role.AUTHOR, "other@example.com"), paper)


def test_paper_editor_rules():
    editor = _user(Role.EDITOR)
    other = _user(Role.EDITOR)
    assert is_paper_editor(editor, _paper(editor_id=None))
    assert is_paper_editor(editor, _paper(editor_id=editor.id))
    assert not is_paper_editor(other, _paper(editor_id=editor.id))
    assert is_paper_editor(_user(Role.ADMIN), _paper(editor_id=editor.id))
    assert not is_paper_editor(_user(Role.REVIEWER), _paper(editor_id=None))


def test_assigned_reviewer():
    reviewer = _user(Role.REVIEWER)
    assert is_assigned_reviewer(reviewer, _paper(reviewers=[reviewer.id]))
    assert not is_assigned_reviewer(reviewer, _paper(reviewers=[uuid.uuid4()]))


def test_ensure():
    ensure(True)
    with pytest.raises(HTTPException) as exc:
        ensure(False, "nope")
    assert exc.value.status_code == 403
    assert exc.value.detail == "nope"
