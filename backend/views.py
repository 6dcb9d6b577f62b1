"""
Role-dependent projections of the project list.

Everything here is a pure function of its arguments: projects are anything
with ``status``, ``students``, ``title``, ``description`` and ``course_code``
attributes, so ORM rows and plain test doubles both work.
"""

from typing import Any, Iterable, Optional, Sequence

from models import ProjectStatus, Role


APPROVED_ALIAS = "Completed"


def _text(value: Optional[str]) -> str:
    return (value or "").lower()


def matches_search(project: Any, query: Optional[str]) -> bool:
    """Case-insensitive substring match on title, description or course code."""
    if query is None or not query.strip():
        return True
    needle = query.strip().lower()
    return (
        needle in _text(project.title)
        or needle in _text(project.description)
        or needle in _text(project.course_code)
    )


def search(projects: Iterable[Any], query: Optional[str]) -> list:
    return [p for p in projects if matches_search(p, query)]


def is_member(project: Any, identity: str) -> bool:
    identity = identity.lower()
    return any(email.lower() == identity for email in project.students)


def review_first(projects: Sequence[Any]) -> list:
    """Under Review projects first; relative order otherwise unchanged."""
    return sorted(projects, key=lambda p: p.status != ProjectStatus.under_review)


def list_visible(actor_role: Any, actor_identity: str, projects: Sequence[Any],
                 query: Optional[str] = None) -> list:
    role = Role(actor_role)

    if role == Role.student:
        visible = [p for p in projects if is_member(p, actor_identity)]
    elif role == Role.advisor:
        visible = review_first(projects)
    else:
        visible = list(projects)

    return search(visible, query)


def archive(projects: Iterable[Any], query: Optional[str] = None) -> list:
    return search((p for p in projects if p.status == ProjectStatus.approved), query)


def can_view(actor_role: Any, actor_identity: str, project: Any) -> bool:
    if Role(actor_role) != Role.student:
        return True
    return is_member(project, actor_identity) or project.status == ProjectStatus.approved


def status_label(status: ProjectStatus, actor_role: Any) -> str:
    """Display label for ``status`` as seen by ``actor_role``."""
    if status == ProjectStatus.approved and Role(actor_role) == Role.advisor:
        return APPROVED_ALIAS
    return status.value
