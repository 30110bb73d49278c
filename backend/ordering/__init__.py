# backend/ordering/__init__.py
from flask import Flask

from .config import Config, engine_options
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if test_config:
        app.config.update(test_config)
        # Engine options follow the effective database URI
        if "SQLALCHEMY_ENGINE_OPTIONS" not in test_config:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(
                app.config["SQLALCHEMY_DATABASE_URI"],
                app.config["DB_STATEMENT_TIMEOUT_SECONDS"],
            )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.orders import orders_bp
    from .routes.cart import cart_bp
    from .routes.payments import payments_bp
    from .routes.deliveries import deliveries_bp
    from .routes.products import products_bp
    from .routes.retailers import retailers_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(retailers_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
