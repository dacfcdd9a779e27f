from pricecompare.compare.categories import Category
from pricecompare.compare.form_state import (
    FormStateStore,
    clear_session_state,
    is_loaded,
    mark_loaded,
    session_state,
    store_session_state,
)
from pricecompare.extensions import db
from pricecompare.identity import ACCOUNT, VISITOR, Identity
from pricecompare.models import UserFormResponse, VisitorSubmission


def _visitor_rows():
    return db.session.query(VisitorSubmission).all()


def test_save_with_empty_state_writes_nothing(ctx):
    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES)
    assert store.save() is None
    assert _visitor_rows() == []


def test_visitor_save_is_idempotent_and_trims(ctx):
    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES)
    store.update("bank", "  TD ")
    store.update("monthly_fee", "12")

    first = store.save()
    second = store.save()

    rows = _visitor_rows()
    assert len(rows) == 1
    assert first.id == second.id
    assert rows[0].form_data == {"bank": "TD", "monthly_fee": "12"}
    assert rows[0].claimed_by is None


def test_last_write_wins(ctx):
    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES)
    store.update("bank", "TD")
    store.save()
    store.update("bank", "RBC")
    store.save()

    db.session.expire_all()
    assert _visitor_rows()[0].form_data == {"bank": "RBC"}


def test_account_save_upserts_one_row(ctx, make_user):
    user = make_user()
    store = FormStateStore(Identity(ACCOUNT, str(user.id)), Category.BANK_FEES)
    store.replace({"bank": "TD", "monthly_fee": "5"})
    store.save()
    store.update("monthly_fee", "7")
    store.save()

    db.session.expire_all()
    rows = db.session.query(UserFormResponse).all()
    assert len(rows) == 1
    assert rows[0].form_data == {"bank": "TD", "monthly_fee": "7"}


def test_load_reads_own_row_only(ctx, make_user, seed):
    user = make_user()
    seed.account(user, "bank-fees", {"bank": "BMO"})
    seed.visitor("v-1", "bank-fees", {"bank": "TD"})

    account = FormStateStore(Identity(ACCOUNT, str(user.id)), Category.BANK_FEES)
    assert account.load()
    assert account.state == {"bank": "BMO"}

    visitor = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES)
    assert visitor.load()
    assert visitor.state == {"bank": "TD"}

    stranger = FormStateStore(Identity(VISITOR, "v-2"), Category.BANK_FEES)
    assert not stranger.load()
    assert stranger.state == {}


def test_load_ignores_claimed_visitor_rows(ctx, make_user, seed):
    user = make_user()
    row = seed.visitor("v-1", "bank-fees", {"bank": "TD"})
    row.claimed_by = user.id
    db.session.commit()

    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES)
    assert not store.load()


def test_claimed_visitor_row_is_not_overwritten(ctx, make_user, seed):
    user = make_user()
    row = seed.visitor("v-1", "bank-fees", {"bank": "TD"})
    row.claimed_by = user.id
    db.session.commit()

    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES, state={"bank": "RBC"})
    store.save()

    db.session.expire_all()
    assert _visitor_rows()[0].form_data == {"bank": "TD"}


def test_clear_empties_state(ctx):
    store = FormStateStore(Identity(VISITOR, "v-1"), Category.BANK_FEES, state={"bank": "TD"})
    store.clear()
    assert store.state == {}


def test_session_helpers(ctx):
    category = Category.BANK_FEES
    assert session_state(category) == {}
    store_session_state(category, {"bank": "TD"})
    mark_loaded(category)
    assert session_state(category) == {"bank": "TD"}
    assert is_loaded(category)

    clear_session_state()
    assert session_state(category) == {}
    assert not is_loaded(category)


def test_load_without_a_row_empties_the_state(ctx, make_user):
    user = make_user()
    store = FormStateStore(Identity(ACCOUNT, str(user.id)), Category.BANK_FEES, state={"bank": "TD"})
    assert not store.load()
    assert store.state == {}
