# backend/stockroom/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.changes import changes_bp
    from .routes.storages import storages_bp
    from .routes.stock import stock_bp
    from .routes.permissions import permissions_bp
    from .routes.products import products_bp
    from .routes.catalog import catalog_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(changes_bp)
    app.register_blueprint(storages_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(permissions_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(catalog_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
