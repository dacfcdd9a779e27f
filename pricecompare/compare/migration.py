import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import PersistenceError
from .persistence import SubmissionRepository

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    migrated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"migrated": self.migrated, "skipped": self.skipped, "failed": self.failed}


def migrate_visitor_data(
    account_id: int,
    visitor_id: Optional[str],
    repository: Optional[SubmissionRepository] = None,
    claim_skipped: bool = False,
) -> MigrationReport:
    """Copy a visitor's unclaimed submissions into an account.

    Each category is committed on its own; a failure is logged and the loop
    moves on. An account's existing submission is never overwritten. The
    visitor row is kept and tagged with the claiming account. When the account
    already had the category, the visitor row is only tagged if
    ``claim_skipped`` is set.
    """
    report = MigrationReport()
    if not visitor_id:
        return report

    repository = repository or SubmissionRepository()
    try:
        pending = [
            (s.id, s.category, dict(s.form_data or {}), s.created_at)
            for s in repository.unclaimed_for_visitor(visitor_id)
        ]
    except PersistenceError:
        logger.warning("Could not read submissions of visitor %s, nothing migrated", visitor_id)
        return report

    if not pending:
        return report

    logger.info("Migrating %d visitor submission(s) from %s to account %s", len(pending), visitor_id, account_id)

    for submission_id, category, answers, created_at in pending:
        try:
            with repository.transaction():
                if repository.account_submission(account_id, category) is None:
                    inserted = repository.insert_account_if_absent(account_id, category, answers, created_at)
                else:
                    inserted = False

                if inserted or claim_skipped:
                    repository.mark_claimed(submission_id, account_id)
        except PersistenceError:
            logger.warning("Skipping %s while migrating visitor %s", category, visitor_id)
            report.failed.append(category)
            continue

        if inserted:
            report.migrated.append(category)
        else:
            report.skipped.append(category)

    return report
