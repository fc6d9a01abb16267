from __future__ import annotations

import re
from urllib.parse import urlparse

from pagemark.services.errors import InvalidArgument


TAG_NAME_MAX_LENGTH = 50
PAGE_TITLE_MAX_LENGTH = 512
PAGE_URL_MAX_LENGTH = 2048
FOLDER_NAME_MAX_LENGTH = 255

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_url(url: str | None) -> str:
    text = (url or "").strip()
    if not text:
        raise InvalidArgument("url is required")
    if len(text) > PAGE_URL_MAX_LENGTH or any(ch.isspace() for ch in text):
        raise InvalidArgument("url is not valid")
    parsed = urlparse(text)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise InvalidArgument("url must be an absolute http(s) address")
    return text


def clean_title(title: str | None) -> str:
    text = (title or "").strip()
    if not text:
        raise InvalidArgument("title is required")
    return text[:PAGE_TITLE_MAX_LENGTH]


def clean_memo(memo: str | None) -> str | None:
    text = (memo or "").strip()
    return text or None


def clean_folder_name(name: str | None) -> str:
    text = (name or "").strip()
    if not text:
        raise InvalidArgument("folder name is required")
    if len(text) > FOLDER_NAME_MAX_LENGTH:
        raise InvalidArgument(
            f"folder name must be at most {FOLDER_NAME_MAX_LENGTH} characters"
        )
    return text


def clean_tag_name(name: str | None) -> str:
    text = (name or "").strip()
    if not text:
        raise InvalidArgument("tag name is required")
    if len(text) > TAG_NAME_MAX_LENGTH:
        raise InvalidArgument(
            f"tag name must be at most {TAG_NAME_MAX_LENGTH} characters"
        )
    return text


def parse_tags(raw) -> list[str]:
    """Tag names from a list or a comma separated string.

    Names are case-sensitive; blanks are dropped and repeats collapse onto the
    first occurrence.
    """
    if not raw:
        return []
    if isinstance(raw, str):
        tokens = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        tokens = [str(item) for item in raw if item is not None]
    else:
        raise InvalidArgument("tags must be a list of names")

    names: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        if not token.strip():
            continue
        name = clean_tag_name(token)
        if name not in seen:
            seen.add(name)
            names.append(name)
    return names


def clean_email(email: str | None) -> str:
    text = (email or "").strip().lower()
    if not _EMAIL_RE.match(text):
        raise InvalidArgument("a valid email address is required")
    return text
