import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from ..errors import InvalidAnswerError, MissingRequiredFieldsError, StepOutOfRangeError
from .categories import TEXT, Category, FormField, options_for
from .form_state import FormStateStore

logger = logging.getLogger(__name__)

ADVANCE = "advance"
FINALIZE = "finalize"


@dataclass
class StepView:
    category: str
    step: int
    total: int
    field: str
    label: str
    kind: str
    required: bool
    options: List[str]
    answer: str
    edit_mode: bool
    # set when a dependent field cannot be answered yet
    needs_prerequisite: Optional[str] = None
    back_to_step: Optional[int] = None

    @property
    def progress(self) -> float:
        return round((self.step + 1) / self.total, 4)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["progress"] = self.progress
        return data


@dataclass
class StepOutcome:
    action: str
    step: int
    next_step: Optional[int]
    edit_mode: bool
    form_state: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class QuestionnaireEngine:
    def __init__(self, category: Category, store: FormStateStore, edit_mode: bool = False):
        self.category = category
        self.store = store
        self.edit_mode = edit_mode

    @property
    def fields(self) -> List[FormField]:
        return list(self.category.fields)

    def _field_at(self, step: int) -> FormField:
        if not 0 <= step < len(self.fields):
            raise StepOutOfRangeError(
                f"Step {step} is out of range for {self.category.slug}.",
                {"total": len(self.fields)},
            )
        return self.fields[step]

    def step_of(self, name: str) -> Optional[int]:
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i
        return None

    def options(self, f: FormField) -> List[str]:
        return options_for(f, self.store.state)

    def render(self, step: int) -> StepView:
        f = self._field_at(step)
        options = self.options(f)
        view = StepView(
            category=self.category.slug,
            step=step,
            total=len(self.fields),
            field=f.name,
            label=f.label,
            kind=f.kind,
            required=f.required,
            options=options,
            answer=self.store.state.get(f.name, ""),
            edit_mode=self.edit_mode,
        )
        if f.depends_on and not options:
            view.needs_prerequisite = f.depends_on
            view.back_to_step = self.step_of(f.depends_on)
        return view

    def missing_required(self) -> List[str]:
        state = self.store.state
        return [f.name for f in self.fields if f.required and not str(state.get(f.name) or "").strip()]

    def _checked_answer(self, f: FormField, answer: Optional[str]) -> str:
        value = (answer or "").strip()
        if not value:
            raise InvalidAnswerError(f"An answer is required for {f.name}.", {"field": f.name})
        if f.kind == TEXT:
            return value

        options = self.options(f)
        if f.depends_on and not options:
            raise InvalidAnswerError(
                f"Answer {f.depends_on} before {f.name}.",
                {"field": f.name, "needs_prerequisite": f.depends_on},
            )
        if value not in options:
            raise InvalidAnswerError(f"'{value}' is not an option for {f.name}.", {"field": f.name})
        return value

    def _drop_stale_dependents(self, changed: str) -> None:
        for f in self.fields:
            if f.depends_on != changed or f.name not in self.store.state:
                continue
            if self.store.state[f.name] not in self.options(f):
                del self.store.state[f.name]

    def select(self, step: int, answer: Optional[str]) -> StepOutcome:
        """Record ``answer`` for ``step``, save, then say where to go next.

        The outcome is only produced once the save has succeeded; a failed
        save raises and leaves the collected answers in the store.
        """
        f = self._field_at(step)
        value = self._checked_answer(f, answer)

        self.store.update(f.name, value)
        self._drop_stale_dependents(f.name)
        self.store.save()

        if step < len(self.fields) - 1:
            return StepOutcome(ADVANCE, step, step + 1, self.edit_mode, dict(self.store.state))

        missing = self.missing_required()
        if missing:
            raise MissingRequiredFieldsError(missing, self.store.state)

        logger.info("Completed %s questionnaire for %s", self.category.slug, self.store.identity.kind)
        return StepOutcome(FINALIZE, step, None, self.edit_mode, dict(self.store.state))
