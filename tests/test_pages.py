import pytest
from sqlalchemy import select

from pagemark.extensions import db
from pagemark.models import Page, Tag, page_folders, page_tags
from pagemark.services.errors import Conflict, Forbidden, InvalidArgument, NotFound
from pagemark.services.folders import create_folder
from pagemark.services.pages import (
    add_page_to_folder,
    create_page,
    delete_page,
    get_page,
    remove_page_from_folder,
    update_page,
)


def test_create_page_resolves_tags_and_folders(app, make_user):
    with app.app_context():
        user_id = make_user()
        folder_id = create_folder(user_id, "Inbox").id

        page = create_page(
            user_id,
            title="  Example  ",
            url="https://example.com/a",
            memo="  ",
            tags=["b", "a", "b"],
            folder_ids=[folder_id, folder_id],
        )

        assert page.title == "Example"
        assert page.memo is None
        assert [tag.name for tag in page.tags] == ["a", "b"]
        assert [folder.id for folder in page.folders] == [folder_id]
        assert Tag.query.count() == 2


def test_create_page_validation_and_duplicate_url(app, make_user):
    with app.app_context():
        user_id = make_user()
        other = make_user("other@example.com")
        create_page(user_id, "First", "https://dup.example")

        with pytest.raises(Conflict):
            create_page(user_id, "Again", "https://dup.example", tags=["new"])
        with pytest.raises(InvalidArgument):
            create_page(user_id, "", "https://ok.example")
        with pytest.raises(InvalidArgument):
            create_page(user_id, "Bad", "not a url")
        with pytest.raises(InvalidArgument):
            create_page(user_id, "Bad", "ftp://files.example")

        create_page(other, "Same url, other user", "https://dup.example")
        assert Page.query.count() == 2
        assert Tag.query.filter_by(name="new").count() == 0


def test_update_page_replaces_tags_atomically(app, make_user):
    with app.app_context():
        user_id = make_user()
        page_id = create_page(user_id, "A", "https://a.example", tags=["old"]).id
        create_page(user_id, "B", "https://b.example")

        with pytest.raises(Conflict):
            update_page(user_id, page_id, "A2", "https://b.example", tags=["fresh"])

        page = get_page(user_id, page_id)
        assert page.title == "A"
        assert [tag.name for tag in page.tags] == ["old"]
        assert Tag.query.filter_by(name="fresh").count() == 0

        page = update_page(
            user_id, page_id, "A2", "https://a2.example", memo="note", tags=["fresh"]
        )
        assert (page.title, page.url, page.memo) == ("A2", "https://a2.example", "note")
        assert [tag.name for tag in page.tags] == ["fresh"]

        page = update_page(user_id, page_id, "A3", "https://a2.example")
        assert [tag.name for tag in page.tags] == ["fresh"]


def test_page_ownership(app, make_user):
    with app.app_context():
        owner = make_user("owner@example.com")
        other = make_user("other@example.com")
        page_id = create_page(owner, "Mine", "https://mine.example").id

        with pytest.raises(Forbidden):
            get_page(other, page_id)
        with pytest.raises(Forbidden):
            update_page(other, page_id, "Stolen", "https://mine.example")
        with pytest.raises(Forbidden):
            delete_page(other, page_id)
        with pytest.raises(NotFound):
            get_page(owner, page_id + 1)


def test_delete_page_removes_join_rows(app, make_user):
    with app.app_context():
        user_id = make_user()
        folder_id = create_folder(user_id, "F").id
        page_id = create_page(
            user_id, "Doomed", "https://doomed.example", tags=["t"], folder_ids=[folder_id]
        ).id

        delete_page(user_id, page_id)

        assert db.session.get(Page, page_id) is None
        assert db.session.execute(select(page_tags)).all() == []
        assert db.session.execute(select(page_folders)).all() == []
        assert Tag.query.count() == 1


def test_add_and_remove_folder_membership(app, make_user):
    with app.app_context():
        user_id = make_user()
        folder_id = create_folder(user_id, "F").id
        page_id = create_page(user_id, "P", "https://p.example").id

        assert add_page_to_folder(user_id, page_id, folder_id) is True
        assert add_page_to_folder(user_id, page_id, folder_id) is False
        assert [f.id for f in get_page(user_id, page_id).folders] == [folder_id]

        remove_page_from_folder(user_id, page_id, folder_id)
        assert get_page(user_id, page_id).folders == []

        with pytest.raises(NotFound):
            remove_page_from_folder(user_id, page_id, folder_id)
        with pytest.raises(InvalidArgument):
            add_page_to_folder(user_id, page_id, "uncategorized")
