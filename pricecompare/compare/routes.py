import logging

from flask import jsonify, redirect, request, session, url_for

from . import compare_bp
from .categories import Category
from .form_state import FormStateStore, is_loaded, mark_loaded, session_state, store_session_state
from .forms import AnswerForm
from .questionnaire import ADVANCE, QuestionnaireEngine
from .results import ResultsAggregator, apply_filters, filter_options, parse_filter_args
from ..identity import authenticated_user, current_identity

logger = logging.getLogger(__name__)

SKIPPED_KEY = "skipped_categories"


def _edit_mode() -> bool:
    return request.args.get("edit", "").lower() == "true"


def _store(category: Category) -> FormStateStore:
    store = FormStateStore(current_identity(), category, state=session_state(category))
    # persisted answers are pulled in once per category per session
    if not is_loaded(category):
        store.load()
        mark_loaded(category)
        store_session_state(category, store.state)
    return store


def _step_url(category: Category, step: int, edit_mode: bool) -> str:
    if edit_mode:
        return url_for("compare.step", slug=category.slug, step=step, edit="true")
    return url_for("compare.step", slug=category.slug, step=step)


def _results_payload(category: Category, descending: bool) -> dict:
    aggregator = ResultsAggregator(category, current_identity())
    records = aggregator.list(descending=descending)
    selected = parse_filter_args(category, request.args)
    shown = apply_filters(category, records, selected)
    user = authenticated_user()
    return {
        "category": category.slug,
        "name": category.display_name,
        "order": "desc" if descending else "asc",
        "primary": category.results.primary,
        "records": [r.to_dict() for r in shown],
        "count": len(shown),
        "total": len(records),
        "filters": filter_options(category, records),
        "selected": selected,
        "is_admin": bool(user is not None and user.is_admin()),
    }


@compare_bp.get("/<slug>")
def start(slug):
    category = Category.from_slug(slug)
    return redirect(_step_url(category, 0, _edit_mode()))


@compare_bp.get("/<slug>/<int:step>")
def step(slug, step):
    category = Category.from_slug(slug)
    engine = QuestionnaireEngine(category, _store(category), edit_mode=_edit_mode())
    view = engine.render(step)
    return jsonify({"category": category.display_name, "step": view.to_dict()})


@compare_bp.post("/<slug>/<int:step>")
def answer(slug, step):
    category = Category.from_slug(slug)
    edit_mode = _edit_mode()

    form = AnswerForm()
    if not form.validate():
        return jsonify(form.error_payload()), 400

    store = _store(category)
    engine = QuestionnaireEngine(category, store, edit_mode=edit_mode)
    try:
        outcome = engine.select(step, form.answer.data)
    finally:
        store_session_state(category, store.state)

    if outcome.action == ADVANCE:
        next_url = _step_url(category, outcome.next_step, edit_mode)
    else:
        next_url = url_for("compare.results", slug=category.slug)

    body = outcome.to_dict()
    body["next_url"] = next_url
    return jsonify(body)


@compare_bp.get("/<slug>/results")
def results(slug):
    category = Category.from_slug(slug)
    skipped = (
        request.args.get("skip", "").lower() == "true"
        or category.slug in (session.get(SKIPPED_KEY) or [])
    )

    if not skipped:
        store = _store(category)
        if not store.state:
            return jsonify({"redirect": _step_url(category, 0, False)})

    descending = request.args.get("order", "").lower() == "desc"
    return jsonify(_results_payload(category, descending))


@compare_bp.post("/<slug>/skip")
def skip(slug):
    category = Category.from_slug(slug)
    skipped = list(session.get(SKIPPED_KEY) or [])
    if category.slug not in skipped:
        skipped.append(category.slug)
    session[SKIPPED_KEY] = skipped
    return jsonify({"next_url": url_for("compare.results", slug=category.slug, skip="true")})


@compare_bp.post("/<slug>/results/clear")
def clear_results(slug):
    category = Category.from_slug(slug)
    removed = ResultsAggregator(category, current_identity()).clear_all(authenticated_user())
    payload = _results_payload(category, descending=False)
    payload["removed"] = removed
    return jsonify(payload)
