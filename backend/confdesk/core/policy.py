# confdesk/core/policy.py
"""
Role policy table and ownership checks.

Routes declare the action they perform with `Depends(authorize("action"))`;
the roles allowed to perform each action live in POLICY below and nowhere
else. Checks that need the loaded resource (is this the paper's editor,
author, reviewer) are the predicates at the bottom of this module.
"""
from fastapi import Depends, HTTPException, status

from ..api.v1.deps import get_current_user
from ..models.user import Role, User

A, E, R, ADMIN = Role.AUTHOR, Role.EDITOR, Role.REVIEWER, Role.ADMIN
STAFF = frozenset({E, ADMIN})

POLICY: dict[str, frozenset[Role]] = {
    # papers
    "paper.submit": frozenset({A}),
    "paper.own": frozenset({A}),
    "paper.list": STAFF,
    "paper.read": STAFF,
    "paper.assign_reviewers": STAFF,
    "paper.remove_reviewer": STAFF,
    "paper.decide": STAFF,
    "paper.request_revision": STAFF,
    "paper.reviews": STAFF,
    "paper.reminders": STAFF,
    # admin
    "paper.assign_editor": frozenset({ADMIN}),
    "user.manage": frozenset({ADMIN}),
    "editor.create": frozenset({ADMIN}),
    "reviewer.create": STAFF,
    "reviewer.list": STAFF,
    "stats.admin": frozenset({ADMIN}),
    "stats.editor": STAFF,
    "outbox.manage": frozenset({ADMIN}),
    # reviewers
    "review.read": frozenset({R}),
    "review.submit": frozenset({R}),
    "review.respond": frozenset({R}),
    # messaging
    "message.paper": frozenset({A, E, ADMIN}),
    "message.reviewer": frozenset({E, ADMIN, R}),
    "message.support.author": frozenset({A}),
    "message.support.admin": frozenset({ADMIN}),
    # copyright / payments
    "copyright.author": frozenset({A}),
    "copyright.review": frozenset({ADMIN}),
    "copyright.message": frozenset({A, ADMIN}),
    "payment.submit": frozenset({A}),
    "payment.verify": frozenset({ADMIN}),
}


def allowed_roles(action: str) -> frozenset[Role]:
    return POLICY[action]


def is_allowed(role: str | Role, action: str) -> bool:
    return Role(role) in POLICY[action]


def authorize(action: str):
    """
    Build a dependency that returns the current user when their role may
    perform `action`, and raises 403 otherwise.

    An unknown action name raises KeyError when the route module is imported.
    """
    roles = allowed_roles(action)
    required = ", ".join(sorted(r.value for r in roles))

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if Role(user.role) not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required}",
            )
        return user

    return _dependency


# ---------------------------------------------------------------------------
# Ownership predicates
# ---------------------------------------------------------------------------
def is_paper_author(user: User, paper) -> bool:
    return (paper.email or "").lower() == (user.email or "").lower()


def is_paper_editor(user: User, paper) -> bool:
    if Role(user.role) == ADMIN:
        return True
    if Role(user.role) != E:
        return False
    return paper.assigned_editor_id is None or str(paper.assigned_editor_id) == str(user.id)


def is_assigned_reviewer(user: User, paper) -> bool:
    return paper.assignment_for(user.id) is not None


def ensure(predicate: bool, message: str = "Access denied") -> None:
    if not predicate:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
