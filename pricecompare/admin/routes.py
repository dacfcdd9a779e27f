from flask import jsonify
from flask_login import current_user, login_required
from sqlalchemy import select

from . import admin_bp
from ..errors import NotAuthorizedError
from ..extensions import db
from ..identity import authenticated_user
from ..models import User


@admin_bp.get("/is-admin")
def is_admin():
    user = authenticated_user()
    return jsonify({"is_admin": bool(user is not None and user.is_admin())})


@admin_bp.get("/users")
@login_required
def list_users():
    if not current_user.is_admin():
        raise NotAuthorizedError("Administrators only.")
    users = db.session.execute(select(User).order_by(User.created_at.desc())).scalars()
    return jsonify({"users": [u.to_dict() for u in users]})
