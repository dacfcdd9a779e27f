import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import NotAuthorizedError
from ..identity import Identity
from .categories import Category, FilterGroup, to_number
from .persistence import SubmissionRepository

logger = logging.getLogger(__name__)

SOURCE_USER = "user"
SOURCE_VISITOR = "visitor"

ANONYMOUS = "Anonymous"
VISITOR_PLACEHOLDER = "Visitor Submission"


@dataclass
class ResultRecord:
    id: int
    source: str
    owner_name: str
    fields: Dict[str, Any]
    is_own: bool
    created_at: Optional[datetime] = None

    def value(self, name: str) -> Any:
        return self.fields.get(name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "owner_name": self.owner_name,
            "is_own": self.is_own,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.fields,
        }


def normalize(category: Category, answers: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Display values for one stored answer map, or None if it is incomplete."""
    shape = category.results
    if any(not str(answers.get(k) or "").strip() for k in shape.complete_on):
        return None

    values: Dict[str, Any] = {}
    for rf in shape.fields:
        if rf.derive:
            continue
        raw = answers.get(rf.source or rf.name)
        if rf.numeric:
            values[rf.name] = to_number(raw, float(rf.default or 0))
        else:
            values[rf.name] = str(raw) if raw not in (None, "") else rf.default
    for rf in shape.fields:
        if rf.derive:
            values[rf.name] = rf.derive(values)
    return values


def parse_range(value: str) -> Tuple[float, float]:
    low, _, high = value.partition("-")
    return to_number(low.replace("$", "")), to_number(high.replace("$", "").replace("%", ""))


def matches(group: FilterGroup, record_value: Any, selected: Iterable[str]) -> bool:
    if group.is_range:
        number = to_number(record_value)
        for bucket in selected:
            low, high = parse_range(bucket)
            if low <= number <= high:
                return True
        return False
    return str(record_value) in set(selected)


def apply_filters(
    category: Category, records: Iterable[ResultRecord], selected: Mapping[str, Iterable[str]]
) -> List[ResultRecord]:
    groups = {g.name: g for g in category.results.filters}
    active = []
    for name, values in selected.items():
        values = [v for v in values if v]
        if not values:
            continue
        group = groups.get(name)
        if group is None:
            logger.debug("Ignoring unknown filter group %s for %s", name, category.slug)
            continue
        active.append((group, values))

    return [
        r for r in records
        if all(matches(group, r.value(group.name), values) for group, values in active)
    ]


def filter_options(category: Category, records: Iterable[ResultRecord]) -> List[Dict[str, Any]]:
    records = list(records)
    options = []
    for group in category.results.filters:
        if group.is_range:
            choices = [{"label": label, "value": value} for label, value in group.buckets]
        else:
            seen: List[str] = []
            for r in records:
                v = str(r.value(group.name))
                if v not in seen:
                    seen.append(v)
            choices = [{"label": v, "value": v} for v in seen]
        options.append({"name": group.name, "label": group.label, "options": choices})
    return options


def parse_filter_args(category: Category, args) -> Dict[str, List[str]]:
    selected = {}
    for group in category.results.filters:
        values = [v for v in args.getlist(f"filter.{group.name}") if v]
        if values:
            selected[group.name] = values
    return selected


def sort_records(category: Category, records: Iterable[ResultRecord], descending: bool = False) -> List[ResultRecord]:
    primary = category.results.primary
    # sorted() is stable in both directions, so ties keep their order
    return sorted(records, key=lambda r: to_number(r.value(primary)), reverse=descending)


class ResultsAggregator:
    def __init__(self, category: Category, identity: Identity, repository: Optional[SubmissionRepository] = None):
        self.category = category
        self.identity = identity
        self.repository = repository or SubmissionRepository()

    def list(self, descending: bool = False) -> List[ResultRecord]:
        slug = self.category.slug
        account_rows = self.repository.account_rows(slug)
        visitor_rows = self.repository.unclaimed_visitor_rows(slug)
        names = self.repository.profile_names(r.user_id for r in account_rows)

        records: List[ResultRecord] = []
        for row in account_rows:
            answers = row.form_data or {}
            values = normalize(self.category, answers)
            if values is None:
                continue
            records.append(ResultRecord(
                id=row.id,
                source=SOURCE_USER,
                owner_name=names.get(row.user_id) or answers.get("visitor_name") or ANONYMOUS,
                fields=values,
                is_own=self.identity.is_account and self.identity.account_id == row.user_id,
                created_at=row.created_at,
            ))

        for row in visitor_rows:
            if row.is_claimed:
                continue
            answers = row.form_data or {}
            values = normalize(self.category, answers)
            if values is None:
                continue
            records.append(ResultRecord(
                id=row.id,
                source=SOURCE_VISITOR,
                owner_name=answers.get("visitor_name") or VISITOR_PLACEHOLDER,
                fields=values,
                is_own=not self.identity.is_account and self.identity.id == row.visitor_id,
                created_at=row.created_at,
            ))

        return sort_records(self.category, records, descending)

    def clear_all(self, user) -> int:
        """Delete every submission in the category. Administrators only."""
        if user is None or not user.is_admin():
            raise NotAuthorizedError("Only administrators can clear results.")
        with self.repository.transaction():
            removed = self.repository.clear_category(self.category.slug)
        logger.warning("User %s cleared %d %s submission(s)", user.id, removed, self.category.slug)
        return removed
