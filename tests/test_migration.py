from sqlalchemy.exc import OperationalError

from pricecompare.compare.migration import migrate_visitor_data
from pricecompare.compare.persistence import SubmissionRepository, _reads
from pricecompare.extensions import db
from pricecompare.models import UserFormResponse, VisitorSubmission


class FlakyRepository(SubmissionRepository):
    def __init__(self, broken_category):
        self.broken_category = broken_category

    def insert_account_if_absent(self, user_id, category, answers, created_at=None):
        if category == self.broken_category:
            raise OperationalError("INSERT INTO user_form_responses", {}, Exception("database is locked"))
        return super().insert_account_if_absent(user_id, category, answers, created_at)


def _account_row(user, category):
    return db.session.query(UserFormResponse).filter_by(user_id=user.id, category=category).one_or_none()


def _visitor_row(visitor_id, category):
    return db.session.query(VisitorSubmission).filter_by(visitor_id=visitor_id, category=category).one()


def test_no_visitor_id_is_a_no_op(ctx, make_user):
    user = make_user()
    report = migrate_visitor_data(user.id, None)
    assert report.to_dict() == {"migrated": [], "skipped": [], "failed": []}


def test_moves_new_categories_and_keeps_existing_ones(ctx, make_user, seed):
    user = make_user()
    a_answers = {"bank": "TD", "monthly_fee": "12", "free_transactions": "10"}
    seed.visitor("v-1", "bank-fees", a_answers)
    seed.visitor("v-1", "internet-cable", {"provider": "Bell", "monthly_cost": "60", "speed": "100mbps"})
    seed.account(user, "internet-cable", {"provider": "Fizz", "monthly_cost": "45", "speed": "300mbps"})

    report = migrate_visitor_data(user.id, "v-1")

    assert report.migrated == ["bank-fees"]
    assert report.skipped == ["internet-cable"]
    db.session.expire_all()

    assert _account_row(user, "bank-fees").form_data == a_answers
    claimed = _visitor_row("v-1", "bank-fees")
    assert claimed.claimed_by == user.id
    assert claimed.claimed_at is not None

    assert _account_row(user, "internet-cable").form_data["provider"] == "Fizz"
    assert _visitor_row("v-1", "internet-cable").claimed_by is None


def test_created_at_is_carried_over(ctx, make_user, seed):
    user = make_user()
    row = seed.visitor("v-1", "bank-fees", {"bank": "TD"})
    original = row.created_at

    migrate_visitor_data(user.id, "v-1")

    db.session.expire_all()
    assert _account_row(user, "bank-fees").created_at == original


def test_claim_skipped_marks_existing_categories(ctx, make_user, seed):
    user = make_user()
    seed.visitor("v-1", "internet-cable", {"provider": "Bell"})
    seed.account(user, "internet-cable", {"provider": "Fizz"})

    report = migrate_visitor_data(user.id, "v-1", claim_skipped=True)

    assert report.skipped == ["internet-cable"]
    db.session.expire_all()
    assert _visitor_row("v-1", "internet-cable").claimed_by == user.id
    assert _account_row(user, "internet-cable").form_data == {"provider": "Fizz"}


def test_failed_category_does_not_stop_the_others(ctx, make_user, seed):
    user = make_user()
    seed.visitor("v-1", "bank-fees", {"bank": "TD"})
    seed.visitor("v-1", "internet-cable", {"provider": "Bell"})

    report = migrate_visitor_data(user.id, "v-1", repository=FlakyRepository("bank-fees"))

    assert report.failed == ["bank-fees"]
    assert report.migrated == ["internet-cable"]
    db.session.expire_all()
    assert _account_row(user, "bank-fees") is None
    assert _visitor_row("v-1", "bank-fees").claimed_by is None
    assert _visitor_row("v-1", "internet-cable").claimed_by == user.id


def test_second_run_finds_nothing_left(ctx, make_user, seed):
    user = make_user()
    seed.visitor("v-1", "bank-fees", {"bank": "TD"})

    migrate_visitor_data(user.id, "v-1")
    again = migrate_visitor_data(user.id, "v-1")

    assert again.migrated == [] and again.skipped == []
    assert db.session.query(UserFormResponse).count() == 1


def test_unreadable_visitor_rows_return_an_empty_report(ctx, make_user, seed):
    class UnreadableRepository(SubmissionRepository):
        @_reads
        def unclaimed_for_visitor(self, visitor_id):
            raise OperationalError("SELECT visitor_submissions", {}, Exception("database is locked"))

    user = make_user()
    seed.visitor("v-1", "bank-fees", {"bank": "TD"})

    report = migrate_visitor_data(user.id, "v-1", repository=UnreadableRepository())

    assert report.to_dict() == {"migrated": [], "skipped": [], "failed": []}
    assert _account_row(user, "bank-fees") is None
