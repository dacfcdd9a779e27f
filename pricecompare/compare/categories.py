# pricecompare/compare/categories.py

# The closed set of comparison categories.
# Each category carries its ordered questionnaire and the shape of its
# results page as plain data:
# - fields are asked one per step, in order
# - a dependent field (vehicle model) takes its options from a lookup table
#   keyed by the answer to an earlier field
# - results are normalised from the stored answers, sorted on one numeric
#   field and filtered by the listed groups

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from flask import current_app, has_app_context

from ..errors import UnknownCategoryError

logger = logging.getLogger(__name__)

SELECT = "select"
TEXT = "text"

_NUMBER_RE = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+))")


@dataclass(frozen=True)
class FormField:
    name: str
    label: str
    options: Tuple[str, ...] = ()
    kind: str = SELECT
    required: bool = True
    depends_on: Optional[str] = None
    option_map: Optional[Mapping[str, Tuple[str, ...]]] = field(default=None, hash=False, compare=False)
    # config key naming a text file with one option per line
    options_source: Optional[str] = None


@dataclass(frozen=True)
class ResultField:
    name: str
    source: Optional[str] = None
    numeric: bool = False
    default: Any = ""
    derive: Optional[Callable[[Dict[str, Any]], Any]] = field(default=None, hash=False, compare=False)


@dataclass(frozen=True)
class FilterGroup:
    name: str
    label: str
    # (label, "min-max") pairs; empty means match on distinct values
    buckets: Tuple[Tuple[str, str], ...] = ()

    @property
    def is_range(self) -> bool:
        return bool(self.buckets)


@dataclass(frozen=True)
class ResultShape:
    primary: str
    fields: Tuple[ResultField, ...]
    filters: Tuple[FilterGroup, ...] = ()
    # records missing any of these answers are left out of the results
    complete_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    fields: Tuple[FormField, ...]
    results: ResultShape


def to_number(value: Any, default: float = 0.0) -> float:
    """Leading numeric part of ``value`` ("25 years" -> 25.0), else ``default``."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _NUMBER_RE.match(str(value or ""))
    if not match:
        return default
    return float(match.group(1))


def read_options_file(path: str) -> List[str]:
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


def _amounts(start: int, stop: int, step: int) -> Tuple[str, ...]:
    return tuple(str(v) for v in range(start, stop + 1, step))


def _monthly_from_annual(values: Dict[str, Any]) -> float:
    return round(values["annual_premium"] / 12, 2)


def _mortgage_payment(values: Dict[str, Any]) -> float:
    principal = values["mortgage_amount"] * (1 - values["down_payment_percent"] / 100)
    payments = int(to_number(values.get("amortization_period"), 25)) * 12
    if payments <= 0:
        return 0.0
    monthly_rate = values["interest_rate"] / 100 / 12
    if monthly_rate == 0:
        return round(principal / payments, 2)
    growth = (1 + monthly_rate) ** payments
    return round(principal * monthly_rate * growth / (growth - 1), 2)


CAR_MODELS: Dict[str, Tuple[str, ...]] = {
    "Toyota": ("Camry", "Corolla", "RAV4", "Highlander", "Tacoma"),
    "Honda": ("Civic", "Accord", "CR-V", "Pilot", "HR-V"),
    "Ford": ("F-150", "Escape", "Explorer", "Mustang", "Edge"),
    "Chevrolet": ("Silverado", "Equinox", "Malibu", "Traverse", "Tahoe"),
    "BMW": ("3 Series", "5 Series", "X3", "X5", "7 Series"),
    "Mercedes": ("C-Class", "E-Class", "GLC", "GLE", "S-Class"),
    "Hyundai": ("Elantra", "Sonata", "Tucson", "Santa Fe", "Palisade"),
    "Kia": ("Forte", "K5", "Sportage", "Telluride", "Sorento"),
    "Volkswagen": ("Jetta", "Passat", "Tiguan", "Atlas", "Golf"),
    "Audi": ("A3", "A4", "Q3", "Q5", "Q7"),
}

DEFAULT_BANKS = ("CIBC", "RBC", "TD", "Scotiabank", "BMO", "National")

QUEBEC_CITIES = (
    "Montreal", "Quebec City", "Laval", "Gatineau", "Longueuil",
    "Sherbrooke", "Saguenay", "Levis", "Trois-Rivieres", "Terrebonne",
)

_CURRENT_YEAR = datetime.now().year


class Category(Enum):
    BANK_FEES = "bank-fees"
    CAR_INSURANCE = "car-insurance"
    NEW_CAR_PAYMENT = "new-car-payment"
    CELL_PHONE_PLAN = "cell-phone-plan"
    HOME_INSURANCE = "home-insurance"
    INTERNET_CABLE = "internet-cable"
    MORTGAGE_RATE = "mortgage-rate"
    REAL_ESTATE_BROKER = "real-estate-broker"

    @classmethod
    def from_slug(cls, slug: str) -> "Category":
        try:
            return cls(slug)
        except ValueError:
            raise UnknownCategoryError(slug) from None

    @property
    def slug(self) -> str:
        return self.value

    @property
    def definition(self) -> CategoryDefinition:
        return DEFINITIONS[self]

    @property
    def display_name(self) -> str:
        return self.definition.name

    @property
    def fields(self) -> Tuple[FormField, ...]:
        return self.definition.fields

    @property
    def results(self) -> ResultShape:
        return self.definition.results

    def field_named(self, name: str) -> Optional[FormField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


DEFINITIONS: Dict[Category, CategoryDefinition] = {
    Category.BANK_FEES: CategoryDefinition(
        name="Bank Fees",
        fields=(
            FormField("bank", "Which bank are you with?", DEFAULT_BANKS, options_source="BANKS_FILE"),
            FormField("monthly_fee", "What is your monthly fee?", _amounts(0, 40, 1)),
            FormField(
                "free_transactions",
                "How many free transactions per month do you have?",
                ("0", "5", "10", "20", "unlimited"),
            ),
        ),
        results=ResultShape(
            primary="monthly_fee",
            fields=(
                ResultField("bank", default="Unknown Bank"),
                ResultField("monthly_fee", numeric=True),
                ResultField("free_transactions", default="0"),
                ResultField("annual_cost", numeric=True, derive=lambda v: round(v["monthly_fee"] * 12, 2)),
            ),
            filters=(
                FilterGroup("bank", "Bank"),
                FilterGroup(
                    "monthly_fee",
                    "Monthly fee",
                    (("$0-$5", "0-5"), ("$6-$10", "6-10"), ("$11-$15", "11-15"), ("$16+", "16-999")),
                ),
                FilterGroup("free_transactions", "Free transactions"),
            ),
        ),
    ),
    Category.CAR_INSURANCE: CategoryDefinition(
        name="Car Insurance",
        fields=(
            FormField("age", "How old are you?", ("18-24", "25-34", "35-44", "45-54", "55-64", "65+")),
            FormField(
                "current_provider",
                "Who is your current insurance provider?",
                ("AllState", "StateFarm", "Progressive", "Geico", "Liberty Mutual", "Other", "None (First Time)"),
            ),
            FormField(
                "annual_premium",
                "How much do you pay annually for car insurance?",
                _amounts(1000, 5000, 100),
            ),
            FormField("make", "What make of vehicle do you drive?", tuple(CAR_MODELS)),
            FormField("model", "What model vehicle do you drive?", depends_on="make", option_map=CAR_MODELS),
            FormField(
                "year",
                "What year is the vehicle?",
                tuple(str(_CURRENT_YEAR - i) for i in range(25)),
            ),
            FormField("license_age", "What age did you get your license?", _amounts(16, 68, 1)),
            FormField("claims", "How many claims have you made in the past 6 years?", ("0", "1", "2", "3", "4", "5+")),
            FormField(
                "city",
                "What city do you live in?",
                ("Toronto", "Vancouver", "Montreal", "Calgary", "Ottawa", "Edmonton", "Other"),
            ),
        ),
        results=ResultShape(
            primary="monthly_premium",
            fields=(
                ResultField("provider", source="current_provider", default="Unknown Provider"),
                ResultField("annual_premium", numeric=True),
                ResultField("monthly_premium", numeric=True, derive=_monthly_from_annual),
                ResultField("age_range", source="age", default="Unknown"),
                ResultField("vehicle_make", source="make", default="Unknown"),
                ResultField("vehicle_model", source="model", default="Unknown"),
                ResultField("vehicle_year", source="year", default="Unknown"),
                ResultField("license_age", default="Unknown"),
                ResultField("claims_count", source="claims", default="0"),
                ResultField("city", default="Unknown"),
            ),
            filters=(
                FilterGroup("provider", "Provider"),
                FilterGroup("age_range", "Age range"),
                FilterGroup("vehicle_make", "Vehicle make"),
                FilterGroup(
                    "monthly_premium",
                    "Monthly premium",
                    (("$0-$100", "0-100"), ("$101-$200", "101-200"), ("$201-$300", "201-300"), ("$300+", "301-999999")),
                ),
                FilterGroup("city", "City"),
            ),
        ),
    ),
    Category.NEW_CAR_PAYMENT: CategoryDefinition(
        name="New Car Payment",
        fields=(
            FormField("make", "What make is your car?", tuple(CAR_MODELS)),
            FormField("model", "What model is your car?", depends_on="make", option_map=CAR_MODELS),
            FormField("monthly_payment", "How much is your monthly payment?", _amounts(100, 1950, 50)),
            FormField(
                "interest_rate",
                "What is your interest rate?",
                tuple(f"{i * 0.5:g}" for i in range(31)),
            ),
            FormField(
                "term",
                "What is your loan term?",
                ("12 months", "24 months", "36 months", "48 months", "60 months", "72 months", "84 months"),
            ),
            FormField("down_payment", "How much was your down payment?", _amounts(0, 20000, 1000)),
        ),
        results=ResultShape(
            primary="monthly_payment",
            fields=(
                ResultField("make", default="Unknown Make"),
                ResultField("model", default="Unknown Model"),
                ResultField("monthly_payment", numeric=True),
                ResultField("interest_rate", numeric=True),
                ResultField("term", default=""),
                ResultField("down_payment", numeric=True),
            ),
            filters=(
                FilterGroup("make", "Make"),
                FilterGroup("model", "Model"),
                FilterGroup("term", "Term"),
                FilterGroup(
                    "monthly_payment",
                    "Monthly payment",
                    (("$0-$300", "0-300"), ("$301-$500", "301-500"), ("$501-$750", "501-750"), ("$751+", "751-999999")),
                ),
                FilterGroup(
                    "interest_rate",
                    "Interest rate",
                    (("0-3%", "0-3"), ("3-5%", "3-5"), ("5-7%", "5-7"), ("7%+", "7-100")),
                ),
            ),
        ),
    ),
    Category.CELL_PHONE_PLAN: CategoryDefinition(
        name="Cell Phone Plan",
        fields=(
            FormField("carrier", "Which carrier do you use?", ("Rogers", "Fido", "Telus", "Bell", "Videotron", "Other")),
            FormField("monthly_cost", "How much do you pay monthly?", _amounts(10, 100, 5)),
            FormField("data", "How much data do you have?", tuple(f"{i * 10}GB" for i in range(21))),
            FormField("usa_roaming", "Do you have unlimited calling and texting while in USA?", ("Yes", "No")),
        ),
        results=ResultShape(
            primary="monthly_cost",
            fields=(
                ResultField("carrier", default="Unknown Carrier"),
                ResultField(
                    "plan_name",
                    derive=lambda v: f"{v['carrier']} Plan" if v["carrier"] != "Unknown Carrier" else "Unknown Plan",
                ),
                ResultField("monthly_cost", numeric=True),
                ResultField("data_limit", source="data", default="0GB"),
                ResultField("usa_roaming", default=""),
            ),
            filters=(
                FilterGroup("carrier", "Carrier"),
                FilterGroup("data_limit", "Data"),
                FilterGroup(
                    "monthly_cost",
                    "Monthly cost",
                    (("$0-$50", "0-50"), ("$51-$100", "51-100"), ("$101-$150", "101-150"), ("$150+", "151-999999")),
                ),
            ),
        ),
    ),
    Category.HOME_INSURANCE: CategoryDefinition(
        name="Home Insurance",
        fields=(
            FormField("city", "What city do you live in?", QUEBEC_CITIES),
            FormField("house_value", "How much is your house worth?", _amounts(200000, 3000000, 50000)),
            FormField("coverage_level", "What level of coverage do you want?", ("Low", "Medium", "High")),
            FormField("annual_premium", "How much is your annual premium?", _amounts(1000, 5000, 100)),
            FormField("deductible", "What is your deductible?", _amounts(0, 5000, 250)),
        ),
        results=ResultShape(
            primary="monthly_premium",
            fields=(
                ResultField("city", default="Unknown"),
                ResultField("house_value", numeric=True),
                ResultField("coverage_level", default="Unknown"),
                ResultField("annual_premium", numeric=True),
                ResultField("monthly_premium", numeric=True, derive=_monthly_from_annual),
                ResultField("deductible", numeric=True),
            ),
            filters=(
                FilterGroup("city", "City"),
                FilterGroup("coverage_level", "Coverage"),
                FilterGroup(
                    "monthly_premium",
                    "Monthly premium",
                    (("$0-$100", "0-100"), ("$101-$200", "101-200"), ("$201-$300", "201-300"), ("$300+", "301-999999")),
                ),
                FilterGroup(
                    "house_value",
                    "House value",
                    (
                        ("$0-$250k", "0-250000"),
                        ("$250k-$500k", "250000-500000"),
                        ("$500k-$750k", "500000-750000"),
                        ("$750k+", "750000-999999999"),
                    ),
                ),
                FilterGroup(
                    "deductible",
                    "Deductible",
                    (("$0-$500", "0-500"), ("$501-$1000", "501-1000"), ("$1001-$2000", "1001-2000"), ("$2000+", "2001-999999")),
                ),
            ),
        ),
    ),
    Category.INTERNET_CABLE: CategoryDefinition(
        name="Internet & Cable",
        fields=(
            FormField("provider", "Who is your provider?", ("Videotron", "Bell", "Fizz", "Virgin", "Other")),
            FormField("monthly_cost", "How much do you pay per month?", _amounts(10, 200, 5)),
            FormField("speed", "What is your internet speed?", ("100mbps", "200mbps", "300mbps", "400mbps", "500mbps")),
        ),
        results=ResultShape(
            primary="monthly_cost",
            fields=(
                ResultField("provider", default="Unknown Provider"),
                ResultField("monthly_cost", numeric=True),
                ResultField("speed", default="Unknown"),
            ),
            filters=(
                FilterGroup("provider", "Provider"),
                FilterGroup("speed", "Speed"),
                FilterGroup(
                    "monthly_cost",
                    "Monthly cost",
                    (("$0-$50", "0-50"), ("$51-$100", "51-100"), ("$101-$150", "101-150"), ("$151+", "151-999")),
                ),
            ),
        ),
    ),
    Category.MORTGAGE_RATE: CategoryDefinition(
        name="Mortgage Rate",
        fields=(
            FormField("bank", "Who is your provider?", DEFAULT_BANKS),
            FormField("mortgage_amount", "What is your mortgage amount?", _amounts(100000, 3500000, 50000)),
            FormField(
                "down_payment_percent",
                "What percentage is your down payment?",
                _amounts(5, 50, 5),
            ),
            FormField(
                "interest_rate",
                "What is your interest rate?",
                tuple(f"{i * 0.25:.2f}" for i in range(49)),
            ),
            FormField("term_years", "What is your mortgage term?", ("1 year", "2 years", "3 years", "4 years", "5 years")),
            FormField(
                "amortization_period",
                "What is your amortization period?",
                ("15 years", "20 years", "25 years", "30 years"),
            ),
        ),
        results=ResultShape(
            primary="interest_rate",
            fields=(
                ResultField("bank", default="Unknown Bank"),
                ResultField("mortgage_amount", numeric=True),
                ResultField("down_payment_percent", numeric=True),
                ResultField("interest_rate", numeric=True),
                ResultField("term_years", default=""),
                ResultField("amortization_period", default=""),
                ResultField("monthly_payment", numeric=True, derive=_mortgage_payment),
            ),
            filters=(
                FilterGroup("bank", "Bank"),
                FilterGroup("term_years", "Term"),
                FilterGroup(
                    "interest_rate",
                    "Interest rate",
                    (("0-3%", "0-3"), ("3-5%", "3-5"), ("5-7%", "5-7"), ("7%+", "7-100")),
                ),
                FilterGroup(
                    "monthly_payment",
                    "Monthly payment",
                    (("$0-$1000", "0-1000"), ("$1001-$2000", "1001-2000"), ("$2001-$3000", "2001-3000"), ("$3000+", "3001-999999")),
                ),
                FilterGroup(
                    "mortgage_amount",
                    "Mortgage amount",
                    (
                        ("$0-$250k", "0-250000"),
                        ("$250k-$500k", "250000-500000"),
                        ("$500k-$750k", "500000-750000"),
                        ("$750k+", "750000-999999999"),
                    ),
                ),
            ),
        ),
    ),
    Category.REAL_ESTATE_BROKER: CategoryDefinition(
        name="Real Estate Broker",
        fields=(
            FormField(
                "agency",
                "What agency are you with?",
                (
                    "Royal Lepage", "Remax", "M Immobilier", "Centris", "Century21",
                    "Engel & Volkers", "BLVD Immobilier", "Sotheby's", "Other",
                ),
            ),
            FormField(
                "commission_rate",
                "What is your commission rate?",
                tuple(f"{(i + 4) * 0.25:.2f}" for i in range(29)),
            ),
            FormField("agent_name", "What is your agent's name?", kind=TEXT),
        ),
        results=ResultShape(
            primary="commission_rate",
            fields=(
                ResultField("agency"),
                ResultField("agent_name"),
                ResultField("commission_rate", numeric=True),
            ),
            complete_on=("agency", "agent_name", "commission_rate"),
        ),
    ),
}

_undefined = [c.slug for c in Category if c not in DEFINITIONS]
if _undefined:
    raise RuntimeError(f"Categories without a definition: {_undefined}")


def catalog() -> List[Dict[str, str]]:
    entries = [{"id": c.name.lower(), "slug": c.slug, "name": c.display_name} for c in Category]
    return sorted(entries, key=lambda e: e["name"])


def options_for(f: FormField, state: Mapping[str, str]) -> List[str]:
    """Selectable options for ``f`` given the answers collected so far.

    A dependent field has no options until its prerequisite is answered.
    Fields backed by a text resource fall back to their built-in options when
    the file is missing or empty.
    """
    if f.kind == TEXT:
        return []

    if f.depends_on:
        parent = (state.get(f.depends_on) or "").strip()
        return list((f.option_map or {}).get(parent, ()))

    if f.options_source and has_app_context():
        path = current_app.config.get(f.options_source)
        if path:
            try:
                loaded = read_options_file(path)
            except OSError:
                logger.warning("Could not read options for %s from %s", f.name, path)
                loaded = []
            if loaded:
                return loaded

    return list(f.options)
