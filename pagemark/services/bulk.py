"""One action applied to many pages in a single transaction.

Ids that do not belong to the acting user (or do not exist) are skipped
without error for every action; :class:`BulkResult` reports how many of the
requested ids matched and how many rows were actually written or removed, so
repeating an action reports ``affected == 0``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import select

from pagemark.extensions import db
from pagemark.models import Folder, Page, Tag, page_folders, page_tags
from pagemark.services.errors import InvalidArgument
from pagemark.services.store import atomic, get_owned, insert_ignore, parse_id


ACTION_MOVE = "move"
ACTION_TAG = "tag"
ACTION_DELETE = "delete"
ACTION_UNFOLDER = "unfolder"

BULK_ACTIONS = (ACTION_MOVE, ACTION_TAG, ACTION_DELETE, ACTION_UNFOLDER)


@dataclass
class BulkResult:
    action: str
    requested: int
    matched: int
    affected: int

    def as_dict(self):
        return asdict(self)


def _parse_page_ids(ids) -> list[int]:
    if not isinstance(ids, (list, tuple)) or not ids:
        raise InvalidArgument("ids must be a non-empty list")
    parsed: list[int] = []
    seen: set[int] = set()
    for raw in ids:
        page_id = parse_id(raw, "page")
        if page_id not in seen:
            seen.add(page_id)
            parsed.append(page_id)
    return parsed


def _required_target(model, user_id: int, target_id, label: str, action: str):
    if target_id is None or (isinstance(target_id, str) and not target_id.strip()):
        raise InvalidArgument(f"{label}_id is required for {action}")
    return get_owned(model, user_id, target_id, label)


def _move(user_id: int, page_ids: list[int], folder_id) -> int:
    folder = _required_target(Folder, user_id, folder_id, "folder", ACTION_MOVE)
    return insert_ignore(
        page_folders,
        [{"page_id": page_id, "folder_id": folder.id} for page_id in page_ids],
    )


def _tag(user_id: int, page_ids: list[int], tag_id) -> int:
    tag = _required_target(Tag, user_id, tag_id, "tag", ACTION_TAG)
    return insert_ignore(
        page_tags,
        [{"page_id": page_id, "tag_id": tag.id} for page_id in page_ids],
    )


def _unfolder(user_id: int, page_ids: list[int], folder_id) -> int:
    folder = _required_target(Folder, user_id, folder_id, "folder", ACTION_UNFOLDER)
    if not page_ids:
        return 0
    result = db.session.execute(
        page_folders.delete().where(
            page_folders.c.folder_id == folder.id,
            page_folders.c.page_id.in_(page_ids),
        )
    )
    return max(result.rowcount or 0, 0)


def _delete(user_id: int, page_ids: list[int]) -> int:
    if not page_ids:
        return 0
    db.session.execute(page_tags.delete().where(page_tags.c.page_id.in_(page_ids)))
    db.session.execute(
        page_folders.delete().where(page_folders.c.page_id.in_(page_ids))
    )
    return Page.query.filter(
        Page.user_id == user_id, Page.id.in_(page_ids)
    ).delete(synchronize_session="fetch")


def apply_bulk_action(
    user_id: int,
    ids,
    action: str,
    folder_id=None,
    tag_id=None,
) -> BulkResult:
    action = (action or "").strip().lower()
    if action not in BULK_ACTIONS:
        raise InvalidArgument(f"action must be one of: {', '.join(BULK_ACTIONS)}")
    requested = _parse_page_ids(ids)

    with atomic():
        owned = list(
            db.session.scalars(
                select(Page.id).where(Page.user_id == user_id, Page.id.in_(requested))
            )
        )
        if action == ACTION_MOVE:
            affected = _move(user_id, owned, folder_id)
        elif action == ACTION_TAG:
            affected = _tag(user_id, owned, tag_id)
        elif action == ACTION_UNFOLDER:
            affected = _unfolder(user_id, owned, folder_id)
        else:
            affected = _delete(user_id, owned)

    return BulkResult(
        action=action,
        requested=len(requested),
        matched=len(owned),
        affected=affected,
    )
