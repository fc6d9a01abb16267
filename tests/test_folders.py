import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from pagemark.extensions import db
from pagemark.models import Folder, Page, page_folders
from pagemark.services import folders as folder_service
from pagemark.services.errors import (
    Forbidden,
    InvalidArgument,
    NotFound,
    TransactionFailure,
)
from pagemark.services.folders import (
    create_folder,
    delete_folder,
    folder_path,
    list_folders,
    move_folder,
    rename_folder,
)
from pagemark.services.pages import add_page_to_folder, create_page
from pagemark.services.query import BookmarkFilter, FolderScope, list_bookmarks


def _memberships(page_id):
    return set(
        db.session.scalars(
            select(page_folders.c.folder_id).where(page_folders.c.page_id == page_id)
        )
    )


def _page(user_id, slug, folders=()):
    page = create_page(
        user_id, title=slug.title(), url=f"https://{slug}.example", folder_ids=list(folders)
    )
    return page.id


def test_delete_reparents_children_and_pages_to_parent(app, make_user):
    with app.app_context():
        user_id = make_user()
        root = create_folder(user_id, "Root").id
        middle = create_folder(user_id, "Middle", root).id
        leaf = create_folder(user_id, "Leaf", middle).id
        other = create_folder(user_id, "Other").id

        only_middle = _page(user_id, "only-middle", [middle])
        already_in_root = _page(user_id, "already-in-root", [middle, root])
        also_other = _page(user_id, "also-other", [middle, other])

        deleted = delete_folder(user_id, middle)

        assert deleted.name == "Middle"
        assert deleted.parent_id == root
        assert deleted.child_folders == 1
        assert deleted.pages == 3

        assert db.session.get(Folder, middle) is None
        assert db.session.get(Folder, leaf).parent_id == root
        assert _memberships(only_middle) == {root}
        assert _memberships(already_in_root) == {root}
        assert _memberships(also_other) == {root, other}
        assert Page.query.count() == 3


def test_delete_work_keeps_projects_membership(app, make_user):
    with app.app_context():
        user_id = make_user()
        work = create_folder(user_id, "Work").id
        projects = create_folder(user_id, "Projects", work).id
        page_id = _page(user_id, "x")
        add_page_to_folder(user_id, page_id, projects)

        delete_folder(user_id, work)

        assert db.session.get(Folder, work) is None
        assert db.session.get(Folder, projects).parent_id is None
        assert _memberships(page_id) == {projects}


def test_delete_only_root_folder_moves_pages_to_uncategorized(app, make_user):
    with app.app_context():
        user_id = make_user()
        folder_id = create_folder(user_id, "Solo").id
        page_id = _page(user_id, "solo-page", [folder_id])
        assert list_folders(user_id).uncategorized_count == 0

        deleted = delete_folder(user_id, folder_id)

        assert deleted.parent_id is None
        assert Folder.query.count() == 0
        assert _memberships(page_id) == set()
        rows = list_bookmarks(user_id, BookmarkFilter(scope=FolderScope.unfoldered()))
        assert [page.id for page in rows] == [page_id]
        assert list_folders(user_id).uncategorized_count == 1


def test_delete_folder_ownership_and_missing(app, make_user):
    with app.app_context():
        owner = make_user("owner@example.com")
        intruder = make_user("intruder@example.com")
        folder_id = create_folder(owner, "Private").id

        with pytest.raises(Forbidden):
            delete_folder(intruder, folder_id)
        with pytest.raises(NotFound):
            delete_folder(owner, folder_id + 100)
        with pytest.raises(InvalidArgument):
            delete_folder(owner, "uncategorized")

        assert db.session.get(Folder, folder_id) is not None


def test_delete_folder_rolls_back_when_store_fails(app, make_user, monkeypatch):
    with app.app_context():
        user_id = make_user()
        parent = create_folder(user_id, "Parent").id
        doomed = create_folder(user_id, "Doomed", parent).id
        child = create_folder(user_id, "Child", doomed).id
        page_id = _page(user_id, "kept", [doomed])

        def failing_insert(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(folder_service, "insert_ignore", failing_insert)

        with pytest.raises(TransactionFailure):
            delete_folder(user_id, doomed)

        assert db.session.get(Folder, doomed) is not None
        assert db.session.get(Folder, child).parent_id == doomed
        assert _memberships(page_id) == {doomed}


def test_create_folder_validation(app, make_user):
    with app.app_context():
        owner = make_user("owner@example.com")
        other = make_user("other@example.com")
        foreign = create_folder(other, "Theirs").id

        with pytest.raises(InvalidArgument):
            create_folder(owner, "   ")
        with pytest.raises(Forbidden):
            create_folder(owner, "Child", foreign)
        with pytest.raises(NotFound):
            create_folder(owner, "Child", foreign + 100)
        with pytest.raises(InvalidArgument):
            create_folder(owner, "Child", "uncategorized")

        folder = create_folder(owner, "  Reading  ", "")
        assert folder.name == "Reading"
        assert folder.parent_id is None
        assert Folder.query.filter_by(user_id=owner).count() == 1


def test_rename_folder(app, make_user):
    with app.app_context():
        owner = make_user("owner@example.com")
        other = make_user("other@example.com")
        folder_id = create_folder(owner, "Old").id

        with pytest.raises(Forbidden):
            rename_folder(other, folder_id, "Stolen")
        with pytest.raises(NotFound):
            rename_folder(owner, folder_id + 1, "Missing")
        with pytest.raises(InvalidArgument):
            rename_folder(owner, folder_id, "")
        with pytest.raises(InvalidArgument):
            rename_folder(owner, "uncategorized", "Virtual")

        assert rename_folder(owner, folder_id, "New").name == "New"
        assert db.session.get(Folder, folder_id).name == "New"


def test_move_folder_rejects_cycles(app, make_user):
    with app.app_context():
        user_id = make_user()
        top = create_folder(user_id, "Top").id
        mid = create_folder(user_id, "Mid", top).id
        low = create_folder(user_id, "Low", mid).id

        with pytest.raises(InvalidArgument):
            move_folder(user_id, top, top)
        with pytest.raises(InvalidArgument):
            move_folder(user_id, top, low)
        with pytest.raises(InvalidArgument):
            move_folder(user_id, mid, low)

        assert move_folder(user_id, low, None).parent_id is None
        assert move_folder(user_id, top, low).parent_id == low
        assert db.session.get(Folder, mid).parent_id == top


def test_list_folders_counts_direct_pages(app, make_user):
    with app.app_context():
        user_id = make_user()
        other_user = make_user("other@example.com")
        news = create_folder(user_id, "News").id
        empty = create_folder(user_id, "Empty").id
        create_folder(other_user, "Not mine")
        _page(user_id, "a", [news])
        _page(user_id, "b", [news])
        _page(user_id, "c")

        listing = list_folders(user_id)

        counts = {row["id"]: row["count"] for row in listing.folders}
        assert counts == {news: 2, empty: 0}
        assert [row["id"] for row in listing.folders] == [empty, news]
        assert listing.uncategorized_count == 1


def test_folder_path_walks_to_root(app, make_user):
    with app.app_context():
        user_id = make_user()
        a = create_folder(user_id, "A").id
        b = create_folder(user_id, "B", a).id
        c = create_folder(user_id, "C", b).id

        assert [row.name for row in folder_path(user_id, c)] == ["A", "B", "C"]
        assert [row.id for row in folder_path(user_id, a)] == [a]
