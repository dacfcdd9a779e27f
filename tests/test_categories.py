import pytest

from pricecompare.compare.categories import (
    CAR_MODELS,
    DEFAULT_BANKS,
    Category,
    catalog,
    options_for,
    to_number,
)
from pricecompare.errors import UnknownCategoryError


def test_every_category_has_fields_and_a_primary_result():
    for category in Category:
        assert category.fields
        names = {rf.name for rf in category.results.fields}
        assert category.results.primary in names


def test_from_slug_round_trips_and_rejects_unknown():
    assert Category.from_slug("bank-fees") is Category.BANK_FEES
    with pytest.raises(UnknownCategoryError) as exc:
        Category.from_slug("pet-insurance")
    assert exc.value.status_code == 404


def test_catalog_is_sorted_by_name():
    names = [entry["name"] for entry in catalog()]
    assert names == sorted(names)
    assert {entry["slug"] for entry in catalog()} == {c.slug for c in Category}


@pytest.mark.parametrize(
    "value, expected",
    [("25 years", 25.0), ("3.5", 3.5), (12, 12.0), ("", 0.0), (None, 0.0), ("n/a", 0.0)],
)
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_model_options_follow_make():
    model = Category.CAR_INSURANCE.field_named("model")
    assert options_for(model, {}) == []
    assert options_for(model, {"make": "Honda"}) == list(CAR_MODELS["Honda"])


def test_bank_options_come_from_the_banks_file(ctx):
    bank = Category.BANK_FEES.field_named("bank")
    options = options_for(bank, {})
    assert "Tangerine" in options
    assert all(o == o.strip() and o for o in options)


def test_bank_options_fall_back_when_file_missing(app, ctx, tmp_path):
    app.config["BANKS_FILE"] = str(tmp_path / "missing.txt")
    bank = Category.BANK_FEES.field_named("bank")
    assert options_for(bank, {}) == list(DEFAULT_BANKS)


def test_bank_options_fall_back_when_file_blank(app, ctx, tmp_path):
    blank = tmp_path / "banks.txt"
    blank.write_text("\n   \n", encoding="utf-8")
    app.config["BANKS_FILE"] = str(blank)
    bank = Category.BANK_FEES.field_named("bank")
    assert options_for(bank, {}) == list(DEFAULT_BANKS)


def test_text_fields_have_no_options():
    agent = Category.REAL_ESTATE_BROKER.field_named("agent_name")
    assert options_for(agent, {}) == []
