from flask import Flask

from pagemark.api import api_bp
from pagemark.auth import auth_bp
from pagemark.config import Config
from pagemark.extensions import db, login_manager, migrate


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Pagemark database.")

    with app.app_context():
        db.create_all()

    return app
