import logging

from flask import current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func, select

from . import auth_bp
from .forms import LoginForm, ProfileForm, RegisterForm
from .sessions import complete_sign_in, restore_session, sign_out
from ..extensions import db
from ..identity import current_identity
from ..models import Role, User

logger = logging.getLogger(__name__)


def _name_taken(name: str, exclude_id=None) -> bool:
    stmt = select(User.id).where(func.lower(User.name) == name.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.session.execute(stmt.limit(1)).first() is not None


def _email_taken(email: str, exclude_id=None) -> bool:
    stmt = select(User.id).filter_by(email=email.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.session.execute(stmt.limit(1)).first() is not None


@auth_bp.before_app_request
def claim_on_restore():
    restore_session()


@auth_bp.post("/register")
def register():
    if current_user.is_authenticated:
        return jsonify({"error": "Already signed in."}), 400

    form = RegisterForm()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    email = form.email.data.lower().strip()
    name = form.full_name.data.strip()
    if _email_taken(email):
        return jsonify({"error": "Email already registered. Try logging in."}), 409
    if _name_taken(name):
        return jsonify({"error": "That name is already taken."}), 409

    admins = current_app.config.get("ADMIN_EMAILS") or []
    user = User(
        name=name,
        email=email,
        role=Role.ADMIN if email in admins else Role.MEMBER,
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    logger.info("Registered account %s", user.id)

    report = complete_sign_in(user)
    return jsonify({"user": user.to_dict(), "migration": report.to_dict()}), 201


@auth_bp.post("/login")
def login():
    form = LoginForm()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    user = db.session.execute(
        select(User).filter_by(email=form.email.data.lower().strip())
    ).scalar_one_or_none()
    if not user or not user.check_password(form.password.data):
        return jsonify({"error": "Invalid email or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Account is disabled. Contact admin."}), 403

    report = complete_sign_in(user)
    return jsonify({"user": user.to_dict(), "migration": report.to_dict()})


@auth_bp.post("/logout")
def logout():
    sign_out()
    return jsonify({"signed_out": True})


@auth_bp.get("/me")
def me():
    identity = current_identity()
    body = {"identity": identity.to_dict(), "user": None}
    if identity.is_account:
        body["user"] = current_user.to_dict()
    return jsonify(body)


@auth_bp.get("/check-name")
def check_name():
    name = (request.args.get("name") or "").strip()
    if not name:
        return jsonify({"available": False})
    exclude = current_user.id if current_user.is_authenticated else None
    return jsonify({"available": not _name_taken(name, exclude_id=exclude)})


@auth_bp.patch("/profile")
@login_required
def update_profile():
    form = ProfileForm()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    user = current_user
    if form.full_name.data and form.full_name.data.strip() != user.name:
        name = form.full_name.data.strip()
        if _name_taken(name, exclude_id=user.id):
            return jsonify({"error": "That name is already taken."}), 409
        user.name = name

    if form.email.data and form.email.data.lower().strip() != user.email:
        email = form.email.data.lower().strip()
        if _email_taken(email, exclude_id=user.id):
            return jsonify({"error": "Email already registered."}), 409
        user.email = email

    if form.new_password.data:
        if not form.current_password.data or not user.check_password(form.current_password.data):
            return jsonify({"error": "Current password is incorrect."}), 403
        user.set_password(form.new_password.data)

    db.session.commit()
    logger.info("Updated profile for account %s", user.id)
    return jsonify({"user": user.to_dict()})
