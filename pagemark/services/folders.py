"""Folder forest maintenance.

Folders form a forest per user. Deleting a folder never deletes anything
below it: child folders and the folder's page memberships are handed to the
deleted folder's parent, or released to the root when it had none.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func, select

from pagemark.extensions import db
from pagemark.models import Folder, page_folders
from pagemark.services.common import clean_folder_name
from pagemark.services.errors import InvalidArgument
from pagemark.services.query import BookmarkFilter, FolderScope, count_bookmarks
from pagemark.services.store import atomic, get_owned, insert_ignore


@dataclass
class DeletedFolder:
    id: int
    name: str
    parent_id: int | None
    child_folders: int
    pages: int

    def as_dict(self):
        return asdict(self)


@dataclass
class FolderListing:
    folders: list[dict]
    uncategorized_count: int

    def as_dict(self):
        return asdict(self)


def _is_root(parent_id) -> bool:
    return parent_id is None or (isinstance(parent_id, str) and not parent_id.strip())


def create_folder(user_id: int, name: str, parent_id=None) -> Folder:
    name = clean_folder_name(name)
    with atomic():
        parent = None
        if not _is_root(parent_id):
            parent = get_owned(Folder, user_id, parent_id, "folder")
        folder = Folder(
            user_id=user_id,
            name=name,
            parent_id=parent.id if parent else None,
        )
        db.session.add(folder)
        db.session.flush()
    return folder


def rename_folder(user_id: int, folder_id, name: str) -> Folder:
    name = clean_folder_name(name)
    with atomic():
        folder = get_owned(Folder, user_id, folder_id, "folder")
        folder.name = name
    return folder


def move_folder(user_id: int, folder_id, parent_id) -> Folder:
    with atomic():
        folder = get_owned(Folder, user_id, folder_id, "folder")
        if _is_root(parent_id):
            folder.parent_id = None
            return folder

        parent = get_owned(Folder, user_id, parent_id, "folder")
        if parent.id == folder.id:
            raise InvalidArgument("a folder cannot be moved into itself")

        by_id = {row.id: row for row in Folder.query.filter_by(user_id=user_id)}
        cursor = by_id.get(parent.parent_id)
        seen = {parent.id}
        while cursor and cursor.id not in seen:
            if cursor.id == folder.id:
                raise InvalidArgument(
                    "a folder cannot be moved inside its own subtree"
                )
            seen.add(cursor.id)
            cursor = by_id.get(cursor.parent_id)

        folder.parent_id = parent.id
    return folder


def delete_folder(user_id: int, folder_id) -> DeletedFolder:
    with atomic():
        folder = get_owned(Folder, user_id, folder_id, "folder")
        parent_id = folder.parent_id

        children = Folder.query.filter_by(parent_id=folder.id).all()
        for child in children:
            child.parent_id = parent_id
        db.session.flush()

        page_ids = list(
            db.session.scalars(
                select(page_folders.c.page_id).where(
                    page_folders.c.folder_id == folder.id
                )
            )
        )
        if parent_id is not None:
            insert_ignore(
                page_folders,
                [{"page_id": page_id, "folder_id": parent_id} for page_id in page_ids],
            )
        db.session.execute(
            page_folders.delete().where(page_folders.c.folder_id == folder.id)
        )

        result = DeletedFolder(
            id=folder.id,
            name=folder.name,
            parent_id=parent_id,
            child_folders=len(children),
            pages=len(page_ids),
        )
        # The collections must reload so the delete sees the rewritten rows.
        db.session.expire(folder, ["children", "pages"])
        db.session.delete(folder)
    return result


def list_folders(user_id: int) -> FolderListing:
    rows = (
        db.session.query(Folder, func.count(page_folders.c.page_id))
        .outerjoin(page_folders, page_folders.c.folder_id == Folder.id)
        .filter(Folder.user_id == user_id)
        .group_by(Folder.id)
        .order_by(Folder.created_at.desc(), Folder.id.desc())
        .all()
    )
    folders = [{**folder.as_dict(), "count": count} for folder, count in rows]
    uncategorized = count_bookmarks(
        user_id, BookmarkFilter(scope=FolderScope.unfoldered())
    )
    return FolderListing(folders=folders, uncategorized_count=uncategorized)


def folder_path(user_id: int, folder_id) -> list[Folder]:
    """Breadcrumb from the root down to ``folder_id``."""
    folder = get_owned(Folder, user_id, folder_id, "folder")
    path = [folder]
    seen = {folder.id}
    cursor = folder.parent
    while cursor is not None and cursor.id not in seen:
        path.append(cursor)
        seen.add(cursor.id)
        cursor = cursor.parent
    path.reverse()
    return path
