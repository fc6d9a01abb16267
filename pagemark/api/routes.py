from __future__ import annotations

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from pagemark.api import api_bp
from pagemark.extensions import db
from pagemark.services.bulk import apply_bulk_action
from pagemark.services.errors import InvalidArgument, ServiceError, TransactionFailure
from pagemark.services.folders import (
    create_folder,
    delete_folder,
    folder_path,
    list_folders,
    move_folder,
    rename_folder,
)
from pagemark.services.pages import (
    add_page_to_folder,
    create_page,
    delete_page,
    get_page,
    remove_page_from_folder,
    update_page,
)
from pagemark.services.query import BookmarkFilter, list_bookmarks
from pagemark.services.security import api_auth_required
from pagemark.services.store import atomic
from pagemark.services.tags import create_tag, delete_tag, list_tags, rename_tag

_MISSING = object()


@api_bp.app_errorhandler(ServiceError)
def handle_service_error(exc: ServiceError):
    if isinstance(exc, TransactionFailure):
        return jsonify({"error": "internal error"}), exc.status_code
    return jsonify({"error": exc.message}), exc.status_code


@api_bp.app_errorhandler(SQLAlchemyError)
def handle_store_error(exc: SQLAlchemyError):
    # Reads run outside atomic(), so their store errors surface here.
    db.session.rollback()
    current_app.logger.exception("store error while handling %s", request.path)
    return jsonify({"error": "internal error"}), TransactionFailure.status_code


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidArgument("request body must be a JSON object")
    return payload


def _field(payload: dict, *names, default=None):
    """First of ``names`` present in the payload (snake_case, then camelCase)."""
    for name in names:
        if name in payload:
            return payload[name]
    return default


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/pages", methods=["GET"])
@api_auth_required()
def pages_list():
    user = g.api_user
    bookmark_filter = BookmarkFilter.from_args(request.args)
    items = [page.as_dict() for page in list_bookmarks(user.id, bookmark_filter)]
    return jsonify({"items": items, "count": len(items)})


@api_bp.route("/pages", methods=["POST"])
@api_auth_required()
def pages_create():
    user = g.api_user
    payload = _json_payload()
    page = create_page(
        user.id,
        title=payload.get("title"),
        url=payload.get("url"),
        memo=payload.get("memo"),
        tags=payload.get("tags"),
        folder_ids=_field(payload, "folder_ids", "folderIds"),
    )
    current_app.logger.info("user %s saved page %s", user.id, page.id)
    return jsonify(page.as_dict()), 201


@api_bp.route("/pages/<int:page_id>", methods=["GET"])
@api_auth_required()
def pages_get(page_id: int):
    user = g.api_user
    return jsonify(get_page(user.id, page_id).as_dict())


@api_bp.route("/pages/<int:page_id>", methods=["PUT"])
@api_auth_required()
def pages_update(page_id: int):
    user = g.api_user
    payload = _json_payload()
    page = update_page(
        user.id,
        page_id,
        title=payload.get("title"),
        url=payload.get("url"),
        memo=payload.get("memo"),
        tags=payload.get("tags"),
    )
    return jsonify(page.as_dict())


@api_bp.route("/pages/<int:page_id>", methods=["DELETE"])
@api_auth_required()
def pages_delete(page_id: int):
    user = g.api_user
    delete_page(user.id, page_id)
    return jsonify({"status": "deleted"})


@api_bp.route("/pages/<int:page_id>/folders", methods=["POST"])
@api_auth_required()
def pages_add_folder(page_id: int):
    user = g.api_user
    payload = _json_payload()
    added = add_page_to_folder(
        user.id, page_id, _field(payload, "folder_id", "folderId")
    )
    return jsonify({"status": "ok", "added": added})


@api_bp.route("/pages/<int:page_id>/folders", methods=["DELETE"])
@api_auth_required()
def pages_remove_folder(page_id: int):
    user = g.api_user
    folder_id = request.args.get("folder_id") or request.args.get("folderId")
    if not folder_id:
        raise InvalidArgument("folder_id is required")
    remove_page_from_folder(user.id, page_id, folder_id)
    return jsonify({"status": "ok"})


@api_bp.route("/pages/bulk", methods=["POST"])
@api_auth_required()
def pages_bulk():
    user = g.api_user
    payload = _json_payload()
    result = apply_bulk_action(
        user.id,
        payload.get("ids"),
        payload.get("action"),
        folder_id=_field(payload, "folder_id", "folderId"),
        tag_id=_field(payload, "tag_id", "tagId"),
    )
    current_app.logger.info(
        "user %s bulk %s matched=%s affected=%s",
        user.id,
        result.action,
        result.matched,
        result.affected,
    )
    return jsonify(result.as_dict())


@api_bp.route("/folders", methods=["GET"])
@api_auth_required()
def folders_list():
    user = g.api_user
    return jsonify(list_folders(user.id).as_dict())


@api_bp.route("/folders", methods=["POST"])
@api_auth_required()
def folders_create():
    user = g.api_user
    payload = _json_payload()
    folder = create_folder(
        user.id,
        payload.get("name"),
        _field(payload, "parent_id", "parentId"),
    )
    return jsonify(folder.as_dict()), 201


@api_bp.route("/folders/<int:folder_id>", methods=["PATCH"])
@api_auth_required()
def folders_update(folder_id: int):
    user = g.api_user
    payload = _json_payload()
    name = payload.get("name", _MISSING)
    parent_id = _field(payload, "parent_id", "parentId", default=_MISSING)
    if name is _MISSING and parent_id is _MISSING:
        raise InvalidArgument("nothing to update: send name and/or parent_id")

    with atomic():
        if name is not _MISSING:
            folder = rename_folder(user.id, folder_id, name)
        if parent_id is not _MISSING:
            folder = move_folder(user.id, folder_id, parent_id)
    return jsonify(folder.as_dict())


@api_bp.route("/folders/<int:folder_id>", methods=["DELETE"])
@api_auth_required()
def folders_delete(folder_id: int):
    user = g.api_user
    deleted = delete_folder(user.id, folder_id)
    current_app.logger.info(
        "user %s deleted folder %s, reparented %s folders and %s pages",
        user.id,
        deleted.id,
        deleted.child_folders,
        deleted.pages,
    )
    return jsonify({"status": "deleted", **deleted.as_dict()})


@api_bp.route("/folders/<int:folder_id>/path", methods=["GET"])
@api_auth_required()
def folders_path(folder_id: int):
    user = g.api_user
    path = folder_path(user.id, folder_id)
    return jsonify({"items": [{"id": row.id, "name": row.name} for row in path]})


@api_bp.route("/tags", methods=["GET"])
@api_auth_required()
def tags_list():
    user = g.api_user
    return jsonify({"items": list_tags(user.id)})


@api_bp.route("/tags", methods=["POST"])
@api_auth_required()
def tags_create():
    user = g.api_user
    payload = _json_payload()
    tag = create_tag(user.id, payload.get("name"))
    return jsonify(tag.as_dict()), 201


def _tag_id_from(payload: dict, tag_id):
    if tag_id is not None:
        return tag_id
    value = payload.get("id")
    if value is None:
        raise InvalidArgument("tag id is required")
    return value


@api_bp.route("/tags", methods=["PUT"])
@api_bp.route("/tags/<int:tag_id>", methods=["PUT"])
@api_auth_required()
def tags_update(tag_id: int | None = None):
    user = g.api_user
    payload = _json_payload()
    tag = rename_tag(user.id, _tag_id_from(payload, tag_id), payload.get("name"))
    return jsonify(tag.as_dict())


@api_bp.route("/tags", methods=["DELETE"])
@api_bp.route("/tags/<int:tag_id>", methods=["DELETE"])
@api_auth_required()
def tags_delete(tag_id: int | None = None):
    user = g.api_user
    payload = _json_payload()
    untagged = delete_tag(user.id, _tag_id_from(payload, tag_id))
    return jsonify({"status": "deleted", "untagged_pages": untagged})
