"""Who is making the current request.

An authenticated account always wins. Everyone else is an anonymous visitor
identified by a random id kept in a long-lived cookie; the id is created on
first use and written to the response by :func:`apply_visitor_cookie`.
"""
import logging
import uuid
from typing import NamedTuple, Optional

from flask import current_app, g, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db

logger = logging.getLogger(__name__)

ACCOUNT = "account"
VISITOR = "visitor"


class Identity(NamedTuple):
    kind: str
    id: str

    @property
    def is_account(self) -> bool:
        return self.kind == ACCOUNT

    @property
    def account_id(self) -> int:
        return int(self.id)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id}


def _cookie_name() -> str:
    return current_app.config["VISITOR_COOKIE_NAME"]


def authenticated_user():
    """The signed-in account, or None. Lookup failures count as signed out."""
    try:
        if current_user.is_authenticated:
            return current_user
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Could not resolve the signed-in account, continuing as visitor", exc_info=True)
    return None


def visitor_id() -> Optional[str]:
    """The visitor id for this browser, without creating one."""
    if g.get("visitor_forgotten"):
        return None
    return g.get("new_visitor_id") or request.cookies.get(_cookie_name()) or None


def ensure_visitor_id() -> str:
    vid = visitor_id()
    if vid:
        return vid
    vid = str(uuid.uuid4())
    g.new_visitor_id = vid
    g.visitor_forgotten = False
    logger.debug("Issued visitor id %s", vid)
    return vid


def current_identity() -> Identity:
    user = authenticated_user()
    if user is not None:
        return Identity(ACCOUNT, str(user.id))
    return Identity(VISITOR, ensure_visitor_id())


def forget_visitor() -> None:
    g.pop("new_visitor_id", None)
    g.visitor_forgotten = True


def apply_visitor_cookie(response):
    name = _cookie_name()
    if g.get("visitor_forgotten"):
        response.delete_cookie(name)
    elif g.get("new_visitor_id"):
        response.set_cookie(
            name,
            g.new_visitor_id,
            max_age=current_app.config["VISITOR_COOKIE_MAX_AGE_DAYS"] * 24 * 3600,
            httponly=True,
            samesite="Lax",
        )
    return response


def init_app(app) -> None:
    app.after_request(apply_visitor_cookie)
