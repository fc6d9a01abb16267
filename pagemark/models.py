from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from pagemark.extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


page_tags = db.Table(
    "page_tags",
    db.Column(
        "page_id",
        db.Integer,
        db.ForeignKey("pages.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "tag_id",
        db.Integer,
        db.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Index("ix_page_tags_tag_id", "tag_id"),
)

page_folders = db.Table(
    "page_folders",
    db.Column(
        "page_id",
        db.Integer,
        db.ForeignKey("pages.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "folder_id",
        db.Integer,
        db.ForeignKey("folders.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Index("ix_page_folders_folder_id", "folder_id"),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), unique=True, nullable=False, index=True)
    # Null for accounts that only ever signed in through an external provider.
    password_hash = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(120), nullable=True)
    image = db.Column(db.Text, nullable=True)
    email_verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    google_sub = db.Column(db.String(255), unique=True, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    pages = db.relationship("Page", backref="user", lazy=True)
    folders = db.relationship("Folder", backref="user", lazy=True)
    tags = db.relationship("Tag", backref="user", lazy=True)

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "image": self.image,
            "email_verified": self.is_verified,
            "created_at": self.created_at.isoformat(),
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Folder(db.Model):
    __tablename__ = "folders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    parent_id = db.Column(
        db.Integer, db.ForeignKey("folders.id"), nullable=True, index=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    children = db.relationship("Folder", backref=db.backref("parent", remote_side=[id]))

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    def as_dict(self):
        return {"id": self.id, "name": self.name}


class Page(db.Model):
    __tablename__ = "pages"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    title = db.Column(db.String(512), nullable=False)
    url = db.Column(db.String(2048), nullable=False)
    memo = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    tags = db.relationship(
        "Tag", secondary=page_tags, backref="pages", order_by="Tag.name"
    )
    folders = db.relationship(
        "Folder", secondary=page_folders, backref="pages", order_by="Folder.name"
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "url", name="uq_page_user_url"),
        db.Index("ix_page_user_created", "user_id", "created_at"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "memo": self.memo or "",
            "tags": [tag.as_dict() for tag in self.tags],
            "folders": [
                {"id": folder.id, "name": folder.name} for folder in self.folders
            ],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
