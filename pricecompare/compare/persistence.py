import logging
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db
from ..models import User, UserFormResponse, VisitorSubmission

logger = logging.getLogger(__name__)


def _reads(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Read failed in %s", fn.__name__)
            raise PersistenceError("Could not load submissions.") from exc
    return wrapper


def _insert(model):
    # ON CONFLICT needs the dialect-specific insert construct
    dialect = db.session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise PersistenceError(f"Upserts are not supported on {dialect}.")


class SubmissionRepository:
    """Reads and writes submissions for both kinds of owner.

    Write methods only stage their statements; callers group them with
    :meth:`transaction`, which commits or rolls back and converts database
    errors into :class:`PersistenceError`.
    """

    @contextmanager
    def transaction(self):
        try:
            yield
            db.session.commit()
        except PersistenceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Write failed, rolled back")
            raise PersistenceError("Could not save your answers. Please try again.") from exc

    @_reads
    def account_submission(self, user_id: int, category: str) -> Optional[UserFormResponse]:
        return db.session.execute(
            select(UserFormResponse).filter_by(user_id=user_id, category=category)
        ).scalar_one_or_none()

    @_reads
    def visitor_submission(
        self, visitor_id: str, category: str, unclaimed_only: bool = True
    ) -> Optional[VisitorSubmission]:
        stmt = select(VisitorSubmission).filter_by(visitor_id=visitor_id, category=category)
        if unclaimed_only:
            stmt = stmt.where(VisitorSubmission.claimed_by.is_(None))
        return db.session.execute(stmt).scalar_one_or_none()

    @_reads
    def unclaimed_for_visitor(self, visitor_id: str) -> List[VisitorSubmission]:
        stmt = (
            select(VisitorSubmission)
            .filter_by(visitor_id=visitor_id)
            .where(VisitorSubmission.claimed_by.is_(None))
            .order_by(VisitorSubmission.created_at)
        )
        return list(db.session.execute(stmt).scalars())

    @_reads
    def account_rows(self, category: str) -> List[UserFormResponse]:
        stmt = (
            select(UserFormResponse)
            .filter_by(category=category)
            .order_by(UserFormResponse.created_at.desc())
        )
        return list(db.session.execute(stmt).scalars())

    @_reads
    def unclaimed_visitor_rows(self, category: str) -> List[VisitorSubmission]:
        stmt = (
            select(VisitorSubmission)
            .filter_by(category=category)
            .where(VisitorSubmission.claimed_by.is_(None))
            .order_by(VisitorSubmission.created_at.desc())
        )
        return list(db.session.execute(stmt).scalars())

    @_reads
    def profile_names(self, user_ids) -> Dict[int, str]:
        ids = {i for i in user_ids if i is not None}
        if not ids:
            return {}
        rows = db.session.execute(select(User.id, User.name).where(User.id.in_(ids)))
        return {user_id: name for user_id, name in rows}

    def upsert_account(self, user_id: int, category: str, answers: Dict[str, Any]) -> None:
        now = datetime.utcnow()
        stmt = _insert(UserFormResponse).values(
            user_id=user_id,
            category=category,
            form_data=answers,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "category"],
            set_={"form_data": stmt.excluded.form_data, "updated_at": stmt.excluded.updated_at},
        )
        db.session.execute(stmt)

    def upsert_visitor(self, visitor_id: str, category: str, answers: Dict[str, Any]) -> None:
        """Insert or update the visitor's row in one statement.

        A row that has already been claimed is left untouched.
        """
        now = datetime.utcnow()
        stmt = _insert(VisitorSubmission).values(
            visitor_id=visitor_id,
            category=category,
            form_data=answers,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["visitor_id", "category"],
            set_={"form_data": stmt.excluded.form_data, "updated_at": stmt.excluded.updated_at},
            where=VisitorSubmission.claimed_by.is_(None),
        )
        db.session.execute(stmt)

    def insert_account_if_absent(
        self,
        user_id: int,
        category: str,
        answers: Dict[str, Any],
        created_at: Optional[datetime] = None,
    ) -> bool:
        """Create the account's row unless one exists; never overwrites."""
        now = datetime.utcnow()
        stmt = _insert(UserFormResponse).values(
            user_id=user_id,
            category=category,
            form_data=answers,
            created_at=created_at or now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id", "category"])
        result = db.session.execute(stmt)
        return bool(result.rowcount)

    def mark_claimed(self, submission_id: int, user_id: int) -> None:
        submission = db.session.get(VisitorSubmission, submission_id)
        if submission is None:
            raise PersistenceError(f"Visitor submission {submission_id} no longer exists.")
        submission.claimed_by = user_id
        submission.claimed_at = datetime.utcnow()
        db.session.flush()

    def clear_category(self, category: str) -> int:
        removed = db.session.execute(delete(VisitorSubmission).filter_by(category=category)).rowcount
        removed += db.session.execute(delete(UserFormResponse).filter_by(category=category)).rowcount
        return removed
