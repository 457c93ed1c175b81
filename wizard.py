"""
Step state machine shared by the two onboarding wizards.

A WizardState is immutable; every transition returns a new state so page
code can keep the current one in ``st.session_state`` and tests can drive
the flow without Streamlit.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

from forms import OTHER_DOCUMENTS_SLOT, FieldRule, UploadedFile, first_error_step, validate

PERSONAL_WIZARD = "personal"
ACADEMIC_WIZARD = "academic"

EDITING = "editing"
SUBMITTING = "submitting"
SUBMITTED = "submitted"
SKIPPED = "skipped"

DEFAULT_DIAL_CODE = "+90"

READ_ONLY_FIELDS: dict[str, set[str]] = {
    PERSONAL_WIZARD: {"email"},
    ACADEMIC_WIZARD: set(),
}


@dataclass(frozen=True)
class WizardState:
    name: str
    total_steps: int
    step: int = 1
    values: dict[str, Any] = field(default_factory=dict)
    files: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    status: str = EDITING
    failure: Optional[str] = None
    # set once a script run has started the writes for the pending submission
    writing: bool = False

    @property
    def is_first_step(self) -> bool:
        return self.step == 1

    @property
    def is_last_step(self) -> bool:
        return self.step == self.total_steps

    @property
    def in_flight(self) -> bool:
        return self.status == SUBMITTING

    @property
    def is_stale_submission(self) -> bool:
        return self.in_flight and self.writing

    @property
    def progress(self) -> int:
        return int(self.step / self.total_steps * 100)


def start_personal_wizard(email: str) -> WizardState:
    return WizardState(
        name=PERSONAL_WIZARD,
        total_steps=4,
        values={
            "email": email,
            "country_code": DEFAULT_DIAL_CODE,
            "has_dual_nationality": False,
        },
    )


def start_academic_wizard() -> WizardState:
    return WizardState(
        name=ACADEMIC_WIZARD,
        total_steps=3,
        values={"exams": []},
        files={OTHER_DOCUMENTS_SLOT.key: []},
    )


def is_read_only(state: WizardState, name: str) -> bool:
    return name in READ_ONLY_FIELDS.get(state.name, set())


def _without_error(errors: dict[str, str], *names: str) -> dict[str, str]:
    return {key: message for key, message in errors.items() if key not in names}


def next_step(state: WizardState) -> WizardState:
    if state.status != EDITING or state.is_last_step:
        return state
    return replace(state, step=state.step + 1)


def previous_step(state: WizardState) -> WizardState:
    if state.status != EDITING or state.is_first_step:
        return state
    return replace(state, step=state.step - 1)


def set_value(state: WizardState, name: str, value: Any) -> WizardState:
    if is_read_only(state, name) or state.status != EDITING:
        return state
    if state.values.get(name) == value:
        return state
    return replace(state, values={**state.values, name: value}, errors=_without_error(state.errors, name))


def attach_file(state: WizardState, slot_key: str, upload: Optional[UploadedFile]) -> WizardState:
    if state.status != EDITING:
        return state
    files = dict(state.files)
    if upload is None:
        files.pop(slot_key, None)
    else:
        files[slot_key] = upload
    return replace(state, files=files, errors=_without_error(state.errors, slot_key))


def add_other_file(state: WizardState, upload: UploadedFile) -> WizardState:
    if state.status != EDITING:
        return state
    others = list(state.files.get(OTHER_DOCUMENTS_SLOT.key, []))
    others.append(upload)
    return replace(state, files={**state.files, OTHER_DOCUMENTS_SLOT.key: others})


def remove_other_file(state: WizardState, index: int) -> WizardState:
    others = list(state.files.get(OTHER_DOCUMENTS_SLOT.key, []))
    if state.status != EDITING or not 0 <= index < len(others):
        return state
    del others[index]
    return replace(
        state,
        files={**state.files, OTHER_DOCUMENTS_SLOT.key: others},
        errors=_without_error(state.errors, OTHER_DOCUMENTS_SLOT.key),
    )


def add_exam(state: WizardState) -> WizardState:
    if state.status != EDITING:
        return state
    exams = list(state.values.get("exams", []))
    exams.append({"exam_type": "", "custom_name": "", "score": "", "exam_date": None, "document": None})
    return replace(state, values={**state.values, "exams": exams})


def remove_exam(state: WizardState, index: int) -> WizardState:
    exams = list(state.values.get("exams", []))
    if state.status != EDITING or not 0 <= index < len(exams):
        return state
    del exams[index]
    # Exam errors are keyed by position, so they no longer line up after a removal
    errors = {key: message for key, message in state.errors.items() if not key.startswith("exams.")}
    return replace(state, values={**state.values, "exams": exams}, errors=errors)


def update_exam(state: WizardState, index: int, **changes: Any) -> WizardState:
    exams = list(state.values.get("exams", []))
    if state.status != EDITING or not 0 <= index < len(exams):
        return state
    exams[index] = {**exams[index], **changes}
    cleared = [f"exams.{index}.{name}" for name in changes]
    if "custom_name" in changes:
        cleared.append(f"exams.{index}.exam_type")
    return replace(state, values={**state.values, "exams": exams}, errors=_without_error(state.errors, *cleared))


def request_submit(state: WizardState, rules: list[FieldRule], today: date | None = None) -> WizardState:
    """Validate the whole form and move to ``submitting`` when it is clean.

    Only the final step can submit. On failure every entered value is kept,
    the field errors are recorded and the wizard jumps back to the earliest
    step that has one.
    """
    if state.status != EDITING or not state.is_last_step:
        return state
    errors = validate(rules, state.values, state.files, today)
    if errors:
        return replace(state, errors=errors, step=first_error_step(rules, errors) or state.step, failure=None)
    return replace(state, status=SUBMITTING, errors={}, failure=None, writing=False)


def begin_writes(state: WizardState) -> WizardState:
    """Claim a pending submission for the current run; no-op unless one is waiting."""
    if not state.in_flight or state.writing:
        return state
    return replace(state, writing=True)


def mark_submitted(state: WizardState) -> WizardState:
    return replace(state, status=SUBMITTED, failure=None, writing=False)


def mark_failed(state: WizardState, message: str) -> WizardState:
    return replace(state, status=EDITING, failure=message, writing=False)


def skip(state: WizardState) -> WizardState:
    if state.status == SUBMITTING:
        return state
    return replace(state, status=SKIPPED)
