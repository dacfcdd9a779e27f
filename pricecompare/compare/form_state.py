import logging
from typing import Any, Dict, Mapping, Optional, Union

from flask import session

from ..identity import Identity
from ..models import UserFormResponse, VisitorSubmission
from .categories import Category
from .persistence import SubmissionRepository

logger = logging.getLogger(__name__)

SESSION_KEY = "form_state"
LOADED_KEY = "form_state_loaded"


def session_state(category: Category) -> Dict[str, str]:
    return dict((session.get(SESSION_KEY) or {}).get(category.slug) or {})


def store_session_state(category: Category, state: Mapping[str, str]) -> None:
    states = dict(session.get(SESSION_KEY) or {})
    states[category.slug] = dict(state)
    session[SESSION_KEY] = states


def is_loaded(category: Category) -> bool:
    return category.slug in (session.get(LOADED_KEY) or [])


def mark_loaded(category: Category) -> None:
    loaded = list(session.get(LOADED_KEY) or [])
    if category.slug not in loaded:
        loaded.append(category.slug)
    session[LOADED_KEY] = loaded


def forget_loaded() -> None:
    session.pop(LOADED_KEY, None)


def clear_session_state() -> None:
    session.pop(SESSION_KEY, None)
    session.pop(LOADED_KEY, None)


class FormStateStore:
    """Answers to one category's questionnaire for one identity.

    The store is built fresh for every request from the state kept in the
    Flask session; ``save`` mirrors it to the identity's submission row.
    Calling ``save`` repeatedly with the same state writes the same row.
    """

    def __init__(
        self,
        identity: Identity,
        category: Category,
        repository: Optional[SubmissionRepository] = None,
        state: Optional[Mapping[str, str]] = None,
    ):
        self.identity = identity
        self.category = category
        self.repository = repository or SubmissionRepository()
        self.state: Dict[str, str] = dict(state or {})

    def load(self) -> bool:
        row = self._fetch()
        if row is None or not row.form_data:
            self.state = {}
            return False
        self.state = dict(row.form_data)
        logger.debug("Loaded %s answers for %s", self.category.slug, self.identity.kind)
        return True

    def update(self, field: str, value: str) -> None:
        self.state[field] = value

    def replace(self, full_state: Mapping[str, str]) -> None:
        self.state = dict(full_state)

    def clear(self) -> None:
        self.state = {}

    def cleaned(self) -> Dict[str, Any]:
        return {k: v.strip() if isinstance(v, str) else v for k, v in self.state.items()}

    def save(self) -> Optional[Union[UserFormResponse, VisitorSubmission]]:
        if not self.state:
            return None

        answers = self.cleaned()
        slug = self.category.slug
        with self.repository.transaction():
            if self.identity.is_account:
                self.repository.upsert_account(self.identity.account_id, slug, answers)
            else:
                self.repository.upsert_visitor(self.identity.id, slug, answers)

        logger.info("Saved %s answers for %s %s", slug, self.identity.kind, self.identity.id)
        return self._fetch(unclaimed_only=False)

    def _fetch(self, unclaimed_only: bool = True):
        slug = self.category.slug
        if self.identity.is_account:
            return self.repository.account_submission(self.identity.account_id, slug)
        return self.repository.visitor_submission(self.identity.id, slug, unclaimed_only=unclaimed_only)
