from __future__ import annotations

from pagemark.extensions import db
from pagemark.models import Folder, Page, page_folders
from pagemark.services.common import clean_memo, clean_title, clean_url
from pagemark.services.errors import Conflict, InvalidArgument, NotFound
from pagemark.services.store import atomic, get_owned, insert_ignore
from pagemark.services.tags import replace_page_tags


DUPLICATE_URL_MESSAGE = "this url is already saved"


def _ensure_url_free(user_id: int, url: str, page_id: int | None = None) -> None:
    query = Page.query.filter(Page.user_id == user_id, Page.url == url)
    if page_id is not None:
        query = query.filter(Page.id != page_id)
    if query.first() is not None:
        raise Conflict(DUPLICATE_URL_MESSAGE)


def create_page(
    user_id: int,
    title: str,
    url: str,
    memo: str | None = None,
    tags=None,
    folder_ids=None,
) -> Page:
    title = clean_title(title)
    url = clean_url(url)
    memo = clean_memo(memo)
    if folder_ids is not None and not isinstance(folder_ids, (list, tuple)):
        raise InvalidArgument("folder_ids must be a list")

    with atomic(conflict_message=DUPLICATE_URL_MESSAGE):
        _ensure_url_free(user_id, url)
        folders: list[Folder] = []
        for folder_id in folder_ids or []:
            folder = get_owned(Folder, user_id, folder_id, "folder")
            if folder not in folders:
                folders.append(folder)

        page = Page(user_id=user_id, title=title, url=url, memo=memo)
        db.session.add(page)
        db.session.flush()
        replace_page_tags(user_id, page, tags or [])
        page.folders = folders
    return page


def get_page(user_id: int, page_id) -> Page:
    return get_owned(Page, user_id, page_id, "page")


def update_page(
    user_id: int,
    page_id,
    title: str,
    url: str,
    memo: str | None = None,
    tags=None,
) -> Page:
    """Rewrite a page; ``tags=None`` leaves its tag set alone."""
    title = clean_title(title)
    url = clean_url(url)
    memo = clean_memo(memo)

    with atomic(conflict_message=DUPLICATE_URL_MESSAGE):
        page = get_owned(Page, user_id, page_id, "page")
        if url != page.url:
            _ensure_url_free(user_id, url, page.id)
        page.title = title
        page.url = url
        page.memo = memo
        if tags is not None:
            replace_page_tags(user_id, page, tags)
    return page


def delete_page(user_id: int, page_id) -> None:
    with atomic():
        page = get_owned(Page, user_id, page_id, "page")
        db.session.delete(page)


def add_page_to_folder(user_id: int, page_id, folder_id) -> bool:
    """Returns False when the page was already in the folder."""
    with atomic():
        page = get_owned(Page, user_id, page_id, "page")
        folder = get_owned(Folder, user_id, folder_id, "folder")
        inserted = insert_ignore(
            page_folders, [{"page_id": page.id, "folder_id": folder.id}]
        )
    return inserted > 0


def remove_page_from_folder(user_id: int, page_id, folder_id) -> None:
    with atomic():
        page = get_owned(Page, user_id, page_id, "page")
        folder = get_owned(Folder, user_id, folder_id, "folder")
        result = db.session.execute(
            page_folders.delete().where(
                page_folders.c.page_id == page.id,
                page_folders.c.folder_id == folder.id,
            )
        )
        if not result.rowcount:
            raise NotFound("page is not in that folder")
