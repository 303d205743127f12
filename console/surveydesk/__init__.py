# console/surveydesk/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import backend, drafts


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("surveydesk").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    backend.init_app(app)
    drafts.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.customers import customers_bp
    from .routes.tools import tools_bp
    from .routes.sales import sales_bp
    from .routes.payments import payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(tools_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(payments_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
