"""
services/tag_service.py — Tag lookup.

Tags are global and identified by name. resolve_tags() returns existing rows
for known names and creates the rest, so the same name is never stored twice.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.tag import Tag


def resolve_tags(tags_data: list[dict] | None, session: Session) -> list[Tag]:
    """
    Get-or-create by name. A new tag takes the icon from the request; an
    existing tag keeps its icon.
    """
    if not tags_data:
        return []

    wanted: dict[str, str | None] = {}
    for item in tags_data:
        name = item["name"].strip()
        wanted.setdefault(name, item.get("icon"))

    existing = {
        t.name: t
        for t in session.execute(
            select(Tag).where(Tag.name.in_(list(wanted)))
        ).scalars().all()
    }

    tags = []
    for name, icon in wanted.items():
        tag = existing.get(name)
        if tag is None:
            tag = Tag(name=name, icon=icon)
            session.add(tag)
        tags.append(tag)

    session.flush()
    return tags


def serialize_tags(tags: list[Tag]) -> list[dict]:
    return [{"id": t.id, "name": t.name, "icon": t.icon} for t in tags]
