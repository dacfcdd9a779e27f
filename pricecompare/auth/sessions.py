"""Signing accounts in and out, and handing visitor data over on sign-in."""
import logging

from flask import current_app, session
from flask_login import login_user, logout_user

from ..compare.form_state import clear_session_state, forget_loaded
from ..compare.migration import MigrationReport, migrate_visitor_data
from ..identity import authenticated_user, forget_visitor, visitor_id

logger = logging.getLogger(__name__)

# counter kept by older front ends; dropped on sign-out
LEGACY_COUNTER_KEY = "comparisons_count"


def claim_visitor_data(user) -> MigrationReport:
    """Move this browser's visitor submissions to ``user`` and drop the cookie."""
    try:
        report = migrate_visitor_data(
            user.id,
            visitor_id(),
            claim_skipped=current_app.config.get("MIGRATION_CLAIM_SKIPPED", False),
        )
    finally:
        forget_visitor()
    if report.migrated or report.skipped or report.failed:
        logger.info("Visitor data for account %s: %s", user.id, report.to_dict())
    return report


def complete_sign_in(user, remember: bool = False) -> MigrationReport:
    login_user(user, remember=remember)
    # answers are re-read from the account on the next visit to each category
    forget_loaded()
    return claim_visitor_data(user)


def sign_out() -> None:
    logout_user()
    clear_session_state()
    session.pop(LEGACY_COUNTER_KEY, None)
    forget_visitor()


def restore_session() -> None:
    """Claim visitor data for a returning account that still has a visitor cookie."""
    if visitor_id() is None:
        return
    user = authenticated_user()
    if user is None:
        return
    logger.debug("Restored session for account %s still carries a visitor cookie", user.id)
    forget_loaded()
    claim_visitor_data(user)
