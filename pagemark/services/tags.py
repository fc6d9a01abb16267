"""Per-user tag namespace.

Tags are resolved by exact, case-sensitive name. Get-or-create goes through an
insert that ignores the ``(user_id, name)`` unique key followed by a re-fetch,
so two requests introducing the same tag at once end up sharing one row.
"""

from __future__ import annotations

from sqlalchemy import func

from pagemark.extensions import db
from pagemark.models import Page, Tag, page_tags, utcnow
from pagemark.services.common import clean_tag_name, parse_tags
from pagemark.services.store import atomic, get_owned, insert_ignore


def resolve_tags(user_id: int, names) -> list[Tag]:
    names = parse_tags(names)
    if not names:
        return []

    with atomic():
        now = utcnow()
        insert_ignore(
            Tag.__table__,
            [{"user_id": user_id, "name": name, "created_at": now} for name in names],
        )
        rows = Tag.query.filter(Tag.user_id == user_id, Tag.name.in_(names)).all()

    by_name = {tag.name: tag for tag in rows}
    return [by_name[name] for name in names]


def resolve_tag(user_id: int, name: str) -> Tag:
    return resolve_tags(user_id, [clean_tag_name(name)])[0]


def create_tag(user_id: int, name: str) -> Tag:
    name = clean_tag_name(name)
    with atomic(conflict_message=f"tag '{name}' already exists"):
        tag = Tag(user_id=user_id, name=name)
        db.session.add(tag)
        db.session.flush()
    return tag


def rename_tag(user_id: int, tag_id, name: str) -> Tag:
    name = clean_tag_name(name)
    with atomic(conflict_message=f"tag '{name}' already exists"):
        tag = get_owned(Tag, user_id, tag_id, "tag")
        if tag.name != name:
            tag.name = name
            db.session.flush()
    return tag


def delete_tag(user_id: int, tag_id) -> int:
    """Delete a tag and its page links. Returns the number of pages untagged."""
    with atomic():
        tag = get_owned(Tag, user_id, tag_id, "tag")
        untagged = len(tag.pages)
        db.session.delete(tag)
    return untagged


def list_tags(user_id: int) -> list[dict]:
    rows = (
        db.session.query(Tag, func.count(page_tags.c.page_id))
        .outerjoin(page_tags, page_tags.c.tag_id == Tag.id)
        .filter(Tag.user_id == user_id)
        .group_by(Tag.id)
        .order_by(Tag.name.asc())
        .all()
    )
    return [{**tag.as_dict(), "count": count} for tag, count in rows]


def replace_page_tags(user_id: int, page: Page, names) -> list[Tag]:
    with atomic():
        tags = resolve_tags(user_id, names)
        page.tags = tags
    return tags
