"""Composite bookmark filtering.

A filter combines a folder scope, a free-text match and tag include/exclude
sets. All predicates are ANDed. Tag conditions are correlated ``EXISTS``
subqueries over the page/tag join table; AND-mode needs one subquery per tag
name because a single page row cannot match several tag rows in one join.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from sqlalchemy import String, exists, func, or_
from sqlalchemy.orm import selectinload

from pagemark.extensions import db
from pagemark.models import Page, Tag, page_folders, page_tags
from pagemark.services.errors import InvalidArgument
from pagemark.services.store import CASEFOLD_FUNCTION, VIRTUAL_FOLDER_ID, parse_id


AND_MODE = "AND"
OR_MODE = "OR"


@dataclass(frozen=True)
class FolderScope:
    ALL: ClassVar[str] = "all"
    UNFOLDERED: ClassVar[str] = "unfoldered"
    REAL: ClassVar[str] = "real"

    kind: str
    folder_id: int | None = None

    @classmethod
    def all(cls) -> "FolderScope":
        return cls(cls.ALL)

    @classmethod
    def unfoldered(cls) -> "FolderScope":
        return cls(cls.UNFOLDERED)

    @classmethod
    def real(cls, folder_id) -> "FolderScope":
        return cls(cls.REAL, parse_id(folder_id, "folder"))

    @classmethod
    def parse(cls, raw) -> "FolderScope":
        text = str(raw).strip() if raw is not None else ""
        if not text:
            return cls.all()
        if text == VIRTUAL_FOLDER_ID:
            return cls.unfoldered()
        return cls.real(text)


def _split_names(raw) -> list[str]:
    if not raw:
        return []
    names: list[str] = []
    for item in str(raw).split(","):
        name = item.strip()
        if name and name not in names:
            names.append(name)
    return names


@dataclass
class BookmarkFilter:
    scope: FolderScope = field(default_factory=FolderScope.all)
    query: str | None = None
    include_tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    mode: str = AND_MODE

    def __post_init__(self):
        if self.mode not in (AND_MODE, OR_MODE):
            raise InvalidArgument("mode must be AND or OR")

    @classmethod
    def from_args(cls, args) -> "BookmarkFilter":
        include = _split_names(args.get("inc"))
        exclude = _split_names(args.get("exc"))
        legacy_tag = (args.get("tag") or "").strip()
        if legacy_tag and legacy_tag not in include:
            include.append(legacy_tag)

        mode = OR_MODE if (args.get("mode") or "").strip().upper() == OR_MODE else AND_MODE
        return cls(
            scope=FolderScope.parse(args.get("folder")),
            query=(args.get("q") or "").strip() or None,
            include_tags=include,
            exclude_tags=exclude,
            mode=mode,
        )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _text_matches(text: str):
    columns = (Page.title, Page.memo, Page.url)
    if db.engine.dialect.name == "sqlite":
        pattern = f"%{_escape_like(text.casefold())}%"
        fold = getattr(func, CASEFOLD_FUNCTION)
        return or_(
            *(fold(column, type_=String).like(pattern, escape="\\") for column in columns)
        )
    pattern = f"%{_escape_like(text)}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))


def _has_tag_named(*conditions):
    return exists().where(
        page_tags.c.page_id == Page.id,
        page_tags.c.tag_id == Tag.id,
        *conditions,
    )


def build_conditions(user_id: int, bookmark_filter: BookmarkFilter) -> list:
    conditions = [Page.user_id == user_id]

    scope = bookmark_filter.scope
    if scope.kind == FolderScope.REAL:
        conditions.append(
            exists().where(
                page_folders.c.page_id == Page.id,
                page_folders.c.folder_id == scope.folder_id,
            )
        )
    elif scope.kind == FolderScope.UNFOLDERED:
        conditions.append(~exists().where(page_folders.c.page_id == Page.id))

    if bookmark_filter.query:
        conditions.append(_text_matches(bookmark_filter.query))

    if bookmark_filter.exclude_tags:
        conditions.append(~_has_tag_named(Tag.name.in_(bookmark_filter.exclude_tags)))

    if bookmark_filter.include_tags:
        if bookmark_filter.mode == OR_MODE:
            conditions.append(_has_tag_named(Tag.name.in_(bookmark_filter.include_tags)))
        else:
            for name in bookmark_filter.include_tags:
                conditions.append(_has_tag_named(Tag.name == name))

    return conditions


def list_bookmarks(user_id: int, bookmark_filter: BookmarkFilter | None = None) -> list[Page]:
    bookmark_filter = bookmark_filter or BookmarkFilter()
    return (
        Page.query.filter(*build_conditions(user_id, bookmark_filter))
        .options(selectinload(Page.tags), selectinload(Page.folders))
        .order_by(Page.created_at.desc(), Page.id.desc())
        .all()
    )


def count_bookmarks(user_id: int, bookmark_filter: BookmarkFilter | None = None) -> int:
    bookmark_filter = bookmark_filter or BookmarkFilter()
    return Page.query.filter(*build_conditions(user_id, bookmark_filter)).count()
