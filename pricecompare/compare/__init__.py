from flask import Blueprint

compare_bp = Blueprint("compare", __name__)

from . import routes  # noqa: E402,F401
