import logging
import os

from flask import Flask

from . import identity
from .errors import register_error_handlers
from .extensions import db, login_manager, migrate


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or os.getenv("PRICECOMPARE_CONFIG", "pricecompare.config.Config"))

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger(__name__).setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    identity.init_app(app)
    register_error_handlers(app)

    from . import models  # noqa: F401
    from .main import main_bp
    from .auth import auth_bp
    from .compare import compare_bp
    from .admin import admin_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(compare_bp, url_prefix="/compare")
    app.register_blueprint(admin_bp, url_prefix="/admin")

    return app
