from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Any, Callable

import pandas as pd
import streamlit as st

from applications import (
    APPLICATION_CHECKLIST,
    STATUS_TABS,
    apply_to_program,
    attach_document,
    filter_by_status,
    list_applications,
    status_counts,
    submit_application,
)
from auth import UserSession
from catalog import (
    SORT_OPTIONS,
    STUDY_LEVELS,
    catalog_countries,
    filter_programs,
    filter_universities,
    format_tuition,
    list_programs,
    list_universities,
    quick_search,
)
from completion import evaluate_profile_completion, needs_completion_prompt
from config import get_settings
from countries import COUNTRIES, COUNTRY_CODES, country_name
from db import db_session, get_session_factory, init_schema
from errors import (
    ApplicationError,
    AuthError,
    GatewayError,
    MessagingError,
    OnboardingError,
    ProfileIncompleteError,
    ValidationError,
)
from export import build_application_summary, build_json_summary, build_pdf_summary
from forms import (
    ACADEMIC_DOCUMENT_SLOTS,
    DOB_FLOOR,
    EXAM_DOCUMENT_SLOT,
    EXAM_FLOOR,
    EXAM_TYPES,
    GRADUATION_FLOOR,
    OTHER_DOCUMENTS_SLOT,
    PROFILE_PICTURE_SLOT,
    REGISTRY_DOCUMENT_NATIONALITY,
    REGISTRY_DOCUMENT_SLOT,
    UploadedFile,
    academic_rules,
    personal_rules,
)
from gateway import Gateway
from logging_config import get_logger, log_with_context, setup_logging
from messaging import (
    ensure_support_conversation,
    list_conversations,
    read_messages,
    send_message,
    submit_contact_form,
)
from models import Student
from onboarding import (
    guard_academic_onboarding,
    guard_personal_onboarding,
    skip_academic_onboarding,
    skip_personal_onboarding,
    submit_academic_info,
    submit_personal_info,
)
from routing import (
    ACADEMIC_ONBOARDING,
    DASHBOARD,
    DASHBOARD_PAGES,
    LANDING,
    LOGIN,
    ONBOARDING,
    ROUTES,
    AuthRedirectHandler,
    Redirect,
)
from seed import seed_all
from storage import LocalStorage
from student_profile import LANGUAGES, STUDY_LEVELS as PROFILE_STUDY_LEVELS, load_profile, save_profile
from ui import (
    inject_portal_css,
    render_chat_bubble,
    render_chips,
    render_completion_prompt,
    render_meter,
    render_progress,
    render_status_badge,
    t,
)
from wizard import (
    ACADEMIC_WIZARD,
    PERSONAL_WIZARD,
    WizardState,
    add_exam,
    add_other_file,
    attach_file,
    begin_writes,
    is_read_only,
    mark_failed,
    mark_submitted,
    next_step,
    previous_step,
    remove_exam,
    remove_other_file,
    request_submit,
    set_value,
    skip,
    start_academic_wizard,
    start_personal_wizard,
    update_exam,
)


st.set_page_config(page_title="Student Portal", layout="wide")
inject_portal_css()

logger = get_logger("portal")

COUNTRY_OPTIONS = [code for code, _ in COUNTRIES]
DIAL_CODE_OPTIONS = [code for code, _ in COUNTRY_CODES]
NAV_ICONS = {
    "home": "nav_home",
    "profile": "nav_profile",
    "universities": "nav_universities",
    "programs": "nav_programs",
    "applications": "nav_applications",
    "chat": "nav_chat",
}


@st.cache_resource
def bootstrap() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    init_schema()
    with db_session() as db:
        seed_all(db)
    log_with_context(logger, "INFO", "Portal started", extra_data={"database": settings.database_url.split("://", 1)[0]})


@st.cache_resource
def get_storage() -> LocalStorage:
    settings = get_settings()
    return LocalStorage(settings.storage_dir, settings.public_storage_url)


def get_gateway() -> Gateway:
    # One gateway per browser session so auth listeners never cross users
    if "gateway" not in st.session_state:
        settings = get_settings()
        st.session_state["gateway"] = Gateway(
            get_session_factory(),
            get_storage(),
            session_ttl=timedelta(hours=settings.session_ttl_hours),
        )
    return st.session_state["gateway"]


def get_router() -> AuthRedirectHandler:
    if "auth_router" not in st.session_state:
        router = AuthRedirectHandler(get_gateway())
        router.attach()
        st.session_state["auth_router"] = router
    return st.session_state["auth_router"]


def _query_get(key: str, default: str | None = None) -> str | None:
    value = st.query_params.get(key, default)
    if isinstance(value, list):
        return value[0] if value else default
    return value


def _query_set(**kwargs: str | None) -> None:
    for key, value in kwargs.items():
        current = _query_get(key)
        if value is None:
            if current is not None:
                if key in st.query_params:
                    del st.query_params[key]
        else:
            if current != value:
                st.query_params[key] = value


def _wizard_state_key(prefix: str, field: str) -> str:
    return f"{prefix}_{field}"


def navigate(page: str, section: str | None = None) -> None:
    st.session_state["page"] = page
    st.session_state["section"] = section if page == DASHBOARD else None
    _query_set(page=page, section=st.session_state["section"])
    st.rerun()


def _store_session(session: UserSession | None) -> None:
    # The access token is a bearer credential: it lives in session state only
    _query_set(session=None)
    if session is None:
        st.session_state.pop("access_token", None)
        return
    st.session_state["access_token"] = session.access_token


def current_session() -> UserSession | None:
    token = st.session_state.get("access_token")
    if not token:
        _query_set(session=None)
        return None
    try:
        session = get_gateway().get_session(token)
    except AuthError as exc:
        st.warning(str(exc))
        session = None
    except GatewayError:
        st.error("We could not verify your session. Please sign in again.")
        session = None
    _store_session(session)
    return session


def apply_redirect(redirect: Redirect) -> None:
    for key in redirect.clear_params:
        if key in st.query_params:
            del st.query_params[key]
    if redirect.session is not None:
        _store_session(redirect.session)
    navigate(redirect.route, "home" if redirect.route == DASHBOARD else None)


def run_auth_router() -> None:
    router = get_router()
    redirect = router.handle_callback(dict(st.query_params))
    if redirect is not None:
        apply_redirect(redirect)
    pending = router.take_pending()
    if pending is not None:
        apply_redirect(pending)


def _language() -> str:
    return st.session_state.get("language", "en")


def _render_language_picker(key: str) -> None:
    language = _language()
    selected = st.selectbox(
        t(language, "language"),
        ["en", "tr"],
        index=0 if language == "en" else 1,
        format_func=lambda code: "English" if code == "en" else "Türkçe",
        key=key,
        label_visibility="collapsed",
    )
    if selected != language:
        st.session_state["language"] = selected
        _query_set(language=selected)
        st.rerun()


def _field_error(state: WizardState, name: str) -> None:
    if name in state.errors:
        st.caption(f":red[{state.errors[name]}]")


# ---- landing & login ----------------------------------------------------


def render_landing(language: str) -> None:
    top_left, top_right = st.columns([5, 1])
    with top_right:
        _render_language_picker("landing_language")
    st.markdown(
        f"<div class='portal-hero'><h1>{t(language, 'app_title')}</h1><p>{t(language, 'subtitle')}</p></div>",
        unsafe_allow_html=True,
    )
    c1, c2, _ = st.columns([1, 1, 3])
    with c1:
        if st.button(t(language, "get_started"), key="landing_get_started", type="primary", use_container_width=True):
            st.session_state["login_tab"] = "sign_up"
            navigate(LOGIN)
    with c2:
        if st.button(t(language, "sign_in"), key="landing_sign_in", use_container_width=True):
            navigate(LOGIN)

    st.markdown(f"### {t(language, 'contact_title')}")
    with st.form("contact_form", clear_on_submit=True):
        name_col, email_col = st.columns(2)
        with name_col:
            full_name = st.text_input("Full name")
        with email_col:
            email = st.text_input("Email")
        phone = st.text_input("Phone (optional)")
        interest = st.text_area("What would you like to study?", height=90)
        sent = st.form_submit_button(t(language, "send"))
    if sent:
        try:
            submit_contact_form(get_gateway(), full_name, email, phone, interest)
        except ValidationError as exc:
            for message in exc.errors.values():
                st.error(message)
        except GatewayError:
            st.error("Something went wrong. Please try again.")
        else:
            st.success(t(language, "contact_sent"))


def render_login(language: str) -> None:
    gateway = get_gateway()
    router = get_router()
    st.markdown(f"## {t(language, 'app_title')}")
    if st.button(f"← {t(language, 'back')}", key="login_back"):
        navigate(LANDING)

    sign_in_tab, sign_up_tab = st.tabs([t(language, "sign_in"), t(language, "sign_up")])
    with sign_in_tab:
        with st.form("sign_in_form"):
            email = st.text_input(t(language, "email"))
            password = st.text_input(t(language, "password"), type="password")
            submitted = st.form_submit_button(t(language, "sign_in"), type="primary")
        if submitted:
            try:
                session = gateway.sign_in(email, password)
            except AuthError as exc:
                st.error(str(exc))
            except GatewayError:
                st.error("Sign in is unavailable right now. Please try again.")
            else:
                apply_redirect(router.take_pending() or Redirect(DASHBOARD, (), session))

    with sign_up_tab:
        with st.form("sign_up_form"):
            c1, c2 = st.columns(2)
            with c1:
                first_name = st.text_input(t(language, "first_name"))
            with c2:
                last_name = st.text_input(t(language, "last_name"))
            email = st.text_input(t(language, "email"), key="sign_up_email")
            password = st.text_input(t(language, "password"), type="password", key="sign_up_password", help="At least 8 characters.")
            submitted = st.form_submit_button(t(language, "sign_up"), type="primary")
        if submitted:
            try:
                session = gateway.sign_up(email, password, first_name.strip() or None, last_name.strip() or None)
            except AuthError as exc:
                st.error(str(exc))
            except GatewayError:
                st.error("Registration is unavailable right now. Please try again.")
            else:
                apply_redirect(router.take_pending() or Redirect(ONBOARDING, (), session))


# ---- wizard plumbing ----------------------------------------------------


def _load_wizard(name: str, session: UserSession) -> WizardState:
    key = _wizard_state_key(name, "state")
    state = st.session_state.get(key)
    if state is None:
        state = start_personal_wizard(session.email) if name == PERSONAL_WIZARD else start_academic_wizard()
    if state.is_stale_submission:
        # A rerun interrupted the writes before they reported back
        state = mark_failed(state, "The previous submission was interrupted. Please submit again.")
    st.session_state[key] = state
    return state


def _save_wizard(state: WizardState) -> None:
    st.session_state[_wizard_state_key(state.name, "state")] = state


def _reset_wizard(name: str) -> None:
    prefix = f"{name}_"
    for key in [k for k in st.session_state.keys() if str(k).startswith(prefix)]:
        del st.session_state[key]


def _bound(state: WizardState, field: str, default: Any = None) -> str:
    key = _wizard_state_key(state.name, f"w_{field}")
    if key not in st.session_state:
        value = state.values.get(field)
        st.session_state[key] = default if value is None else value
    return key


def _bind_text(state: WizardState, field: str, label: str, **kwargs: Any) -> WizardState:
    key = _bound(state, field, "")
    st.text_input(label, key=key, disabled=is_read_only(state, field), **kwargs)
    _field_error(state, field)
    return set_value(state, field, st.session_state[key])


def _bind_select(state: WizardState, field: str, label: str, options: list[Any], **kwargs: Any) -> WizardState:
    key = _bound(state, field)
    if st.session_state[key] not in options:
        st.session_state[key] = None
    st.selectbox(label, options, key=key, **kwargs)
    _field_error(state, field)
    return set_value(state, field, st.session_state[key])


def _bind_date(state: WizardState, field: str, label: str, floor: date) -> WizardState:
    key = _bound(state, field)
    st.date_input(label, key=key, min_value=floor, max_value=date.today(), format="YYYY-MM-DD")
    _field_error(state, field)
    return set_value(state, field, st.session_state[key])


def _bind_file(state: WizardState, slot_key: str, label: str, accept: tuple[str, ...], help_text: str | None = None) -> WizardState:
    attached = state.files.get(slot_key)
    if attached is not None:
        c1, c2 = st.columns([4, 1])
        with c1:
            st.write(f"{label}: **{attached.name}** ({attached.size / 1024:.0f} KB)")
        with c2:
            if st.button("Remove", key=_wizard_state_key(state.name, f"rm_{slot_key}"), use_container_width=True):
                state = attach_file(state, slot_key, None)
    else:
        upload = st.file_uploader(label, type=list(accept), key=_wizard_state_key(state.name, f"up_{slot_key}"), help=help_text)
        if upload is not None:
            state = attach_file(state, slot_key, UploadedFile.from_upload(upload))
    _field_error(state, slot_key)
    return state


def _render_wizard_buttons(state: WizardState, language: str, on_submit, on_skip) -> WizardState:
    left, mid, right = st.columns([1, 1, 1])
    with left:
        if st.button(
            t(language, "back"),
            disabled=state.is_first_step or state.in_flight,
            key=_wizard_state_key(state.name, "btn_back"),
            use_container_width=True,
            type="secondary",
        ):
            _save_wizard(previous_step(state))
            st.rerun()
    with mid:
        if not state.is_last_step:
            if st.button(
                t(language, "next"),
                key=_wizard_state_key(state.name, "btn_next"),
                use_container_width=True,
                type="primary",
            ):
                _save_wizard(next_step(state))
                st.rerun()
        else:
            if st.button(
                t(language, "submitting") if state.in_flight else t(language, "submit"),
                key=_wizard_state_key(state.name, "btn_submit"),
                disabled=state.in_flight,
                use_container_width=True,
                type="primary",
            ):
                on_submit(state)
    with right:
        if st.button(
            t(language, "skip"),
            key=_wizard_state_key(state.name, "btn_skip"),
            disabled=state.in_flight,
            use_container_width=True,
            type="secondary",
        ):
            on_skip(state)
    return state


def _run_pending_submission(
    state: WizardState,
    language: str,
    submit: Callable[[WizardState], str],
    saved_message: str,
    section: str | None = None,
) -> None:
    """Second phase of a submit click: the buttons are already drawn disabled."""
    state = begin_writes(state)
    _save_wizard(state)
    with st.spinner(t(language, "submitting")):
        try:
            next_route = submit(state)
        except ValidationError as exc:
            _save_wizard(replace(mark_failed(state, t(language, "fix_errors")), errors=exc.errors))
            st.rerun()
        except OnboardingError as exc:
            _save_wizard(mark_failed(state, str(exc)))
            st.rerun()
    _save_wizard(mark_submitted(state))
    st.toast(saved_message)
    _reset_wizard(state.name)
    navigate(next_route, section)


# ---- personal onboarding ------------------------------------------------


def _render_personal_identity(state: WizardState) -> WizardState:
    state = _bind_file(state, PROFILE_PICTURE_SLOT.key, "Profile picture (optional)", PROFILE_PICTURE_SLOT.accept, "JPG or PNG up to 5 MB")
    state = _bind_date(state, "date_of_birth", "Date of birth", DOB_FLOOR)
    state = _bind_select(state, "nationality", "Nationality", COUNTRY_OPTIONS, format_func=country_name)
    dual_key = _bound(state, "has_dual_nationality", False)
    st.checkbox("I have dual nationality", key=dual_key)
    state = set_value(state, "has_dual_nationality", st.session_state[dual_key])
    if state.values.get("has_dual_nationality"):
        state = _bind_select(state, "second_nationality", "Second nationality", COUNTRY_OPTIONS, format_func=country_name)
        if state.values.get("second_nationality") == REGISTRY_DOCUMENT_NATIONALITY:
            state = _bind_file(
                state,
                REGISTRY_DOCUMENT_SLOT.key,
                f"{REGISTRY_DOCUMENT_SLOT.label} (required)",
                REGISTRY_DOCUMENT_SLOT.accept,
                "PDF or image up to 10 MB",
            )
    return state


def _render_personal_contact(state: WizardState) -> WizardState:
    state = _bind_text(state, "email", "Email", help="Taken from your account")
    code_col, phone_col = st.columns([1, 3])
    with code_col:
        state = _bind_select(state, "country_code", "Code", DIAL_CODE_OPTIONS)
    with phone_col:
        state = _bind_text(state, "phone_number", "Phone number", placeholder="555 123 4567")
    state = _bind_text(state, "passport_number", "Passport number")
    return state


def _render_personal_address(state: WizardState) -> WizardState:
    state = _bind_text(state, "street", "Street address")
    c1, c2 = st.columns(2)
    with c1:
        state = _bind_text(state, "city", "City")
        state = _bind_text(state, "postal_code", "Postal code")
    with c2:
        state = _bind_text(state, "state", "State/Province")
        state = _bind_select(state, "country", "Country", COUNTRY_OPTIONS, format_func=country_name)
    return state


def _render_personal_review(state: WizardState) -> None:
    values = state.values
    rows = [
        ("Date of birth", values.get("date_of_birth")),
        ("Nationality", country_name(values.get("nationality"))),
        ("Second nationality", country_name(values.get("second_nationality")) if values.get("has_dual_nationality") else "-"),
        ("Email", values.get("email")),
        ("Phone", f"{values.get('country_code') or ''} {values.get('phone_number') or ''}".strip()),
        ("Passport number", values.get("passport_number")),
        ("Address", ", ".join(str(values.get(k)) for k in ["street", "city", "state", "postal_code"] if values.get(k))),
        ("Country", country_name(values.get("country"))),
    ]
    with st.container(border=True):
        for label, value in rows:
            st.write(f"**{label}:** {value or '-'}")
    files = [f.name for f in (state.files.get(PROFILE_PICTURE_SLOT.key), state.files.get(REGISTRY_DOCUMENT_SLOT.key)) if f]
    if files:
        render_chips(files)


def render_personal_onboarding(language: str, session: UserSession | None) -> None:
    gateway = get_gateway()
    route = guard_personal_onboarding(gateway, session)
    if route is not None:
        navigate(route, "home" if route == DASHBOARD else None)

    state = _load_wizard(PERSONAL_WIZARD, session)
    st.markdown(f"## {t(language, 'personal_title')}")
    labels = [t(language, k) for k in ["step_identity", "step_contact", "step_address", "step_review"]]
    render_progress(state.step, state.total_steps, labels)
    if state.failure:
        st.error(state.failure)
    if state.errors:
        st.warning(t(language, "fix_errors"))

    with st.container(border=True):
        st.markdown(f"#### {labels[state.step - 1]}")
        if state.step == 1:
            state = _render_personal_identity(state)
        elif state.step == 2:
            state = _render_personal_contact(state)
        elif state.step == 3:
            state = _render_personal_address(state)
        else:
            _render_personal_review(state)
    _save_wizard(state)

    def on_submit(current: WizardState) -> None:
        _save_wizard(request_submit(current, personal_rules(current.values)))
        st.rerun()

    def on_skip(current: WizardState) -> None:
        _save_wizard(skip(current))
        next_route = skip_personal_onboarding(gateway, session)
        st.toast(t(language, "skip_personal"))
        _reset_wizard(PERSONAL_WIZARD)
        navigate(next_route, "home")

    _render_wizard_buttons(state, language, on_submit, on_skip)
    if state.in_flight:
        _run_pending_submission(
            state,
            language,
            lambda pending: submit_personal_info(gateway, session, pending),
            t(language, "personal_saved"),
        )


# ---- academic onboarding ------------------------------------------------


def _render_academic_education(state: WizardState) -> WizardState:
    state = _bind_text(state, "graduated_school_name", "Graduated school / university")
    state = _bind_date(state, "graduation_date", "Graduation date", GRADUATION_FLOOR)
    state = _bind_text(state, "graduation_grade", "Graduation grade", placeholder="e.g. 3.75, 85/100, First Class")
    return state


def _clear_exam_widgets(state: WizardState) -> None:
    prefix = _wizard_state_key(state.name, "exam_")
    for key in [k for k in st.session_state.keys() if str(k).startswith(prefix)]:
        del st.session_state[key]


def _render_academic_exams(state: WizardState) -> WizardState:
    exams = state.values.get("exams", [])
    if not exams:
        st.caption("No exams added. Add the standardized tests you have taken, if any.")
    for index, exam in enumerate(exams):
        with st.container(border=True):
            head, remove = st.columns([5, 1])
            with head:
                st.markdown(f"**Exam {index + 1}**")
            with remove:
                if st.button("Remove", key=_wizard_state_key(state.name, f"exam_rm_{index}"), use_container_width=True):
                    _clear_exam_widgets(state)
                    _save_wizard(remove_exam(state, index))
                    st.rerun()
            c1, c2, c3 = st.columns(3)
            with c1:
                exam_type = st.selectbox(
                    "Exam type",
                    EXAM_TYPES,
                    index=EXAM_TYPES.index(exam["exam_type"]) if exam.get("exam_type") in EXAM_TYPES else None,
                    key=_wizard_state_key(state.name, f"exam_type_{index}"),
                )
                _field_error(state, f"exams.{index}.exam_type")
            with c2:
                score = st.text_input("Score", value=exam.get("score") or "", key=_wizard_state_key(state.name, f"exam_score_{index}"))
                _field_error(state, f"exams.{index}.score")
            with c3:
                exam_date = st.date_input(
                    "Exam date",
                    value=exam.get("exam_date"),
                    min_value=EXAM_FLOOR,
                    max_value=date.today(),
                    format="YYYY-MM-DD",
                    key=_wizard_state_key(state.name, f"exam_date_{index}"),
                )
                _field_error(state, f"exams.{index}.exam_date")
            changes: dict[str, Any] = {}
            if exam_type == "Other":
                custom = st.text_input("Exam name", value=exam.get("custom_name") or "", key=_wizard_state_key(state.name, f"exam_custom_{index}"))
                if custom != exam.get("custom_name"):
                    changes["custom_name"] = custom
            for name, value in [("exam_type", exam_type), ("score", score), ("exam_date", exam_date)]:
                if value != exam.get(name):
                    changes[name] = value
            if exam.get("document") is not None:
                st.write(f"Score report: **{exam['document'].name}**")
            else:
                upload = st.file_uploader(
                    "Score report (optional)",
                    type=list(EXAM_DOCUMENT_SLOT.accept),
                    key=_wizard_state_key(state.name, f"exam_doc_{index}"),
                )
                if upload is not None:
                    changes["document"] = UploadedFile.from_upload(upload)
            _field_error(state, f"exams.{index}.document")
            if changes:
                state = update_exam(state, index, **changes)

    if st.button("+ Add exam", key=_wizard_state_key(state.name, "exam_add")):
        _save_wizard(add_exam(state))
        st.rerun()
    return state


def _render_academic_documents(state: WizardState) -> WizardState:
    for slot in ACADEMIC_DOCUMENT_SLOTS:
        label = f"{slot.label} ({'required' if slot.required else 'optional'})"
        state = _bind_file(state, slot.key, label, slot.accept, f"{', '.join(slot.accept).upper()} up to {slot.max_mb} MB")

    st.markdown(f"**{OTHER_DOCUMENTS_SLOT.label}**")
    for index, upload in enumerate(state.files.get(OTHER_DOCUMENTS_SLOT.key, [])):
        c1, c2 = st.columns([4, 1])
        with c1:
            st.write(f"{upload.name} ({upload.size / 1024:.0f} KB)")
        with c2:
            if st.button("Remove", key=_wizard_state_key(state.name, f"other_rm_{index}"), use_container_width=True):
                _save_wizard(remove_other_file(state, index))
                st.rerun()
    counter_key = _wizard_state_key(state.name, "other_counter")
    counter = st.session_state.get(counter_key, 0)
    uploads = st.file_uploader(
        "Add more documents",
        type=list(OTHER_DOCUMENTS_SLOT.accept),
        accept_multiple_files=True,
        key=_wizard_state_key(state.name, f"other_up_{counter}"),
    )
    if uploads and st.button("Attach selected files", key=_wizard_state_key(state.name, "other_add")):
        for upload in uploads:
            state = add_other_file(state, UploadedFile.from_upload(upload))
        st.session_state[counter_key] = counter + 1
        _save_wizard(state)
        st.rerun()
    _field_error(state, OTHER_DOCUMENTS_SLOT.key)
    return state


def render_academic_onboarding(language: str, session: UserSession | None) -> None:
    gateway = get_gateway()
    route = guard_academic_onboarding(gateway, session)
    if route is not None:
        navigate(route)

    state = _load_wizard(ACADEMIC_WIZARD, session)
    st.markdown(f"## {t(language, 'academic_title')}")
    labels = [t(language, k) for k in ["step_education", "step_exams", "step_documents"]]
    render_progress(state.step, state.total_steps, labels)
    if state.failure:
        st.error(state.failure)
    if state.errors:
        st.warning(t(language, "fix_errors"))

    with st.container(border=True):
        st.markdown(f"#### {labels[state.step - 1]}")
        if state.step == 1:
            state = _render_academic_education(state)
        elif state.step == 2:
            state = _render_academic_exams(state)
        else:
            state = _render_academic_documents(state)
    _save_wizard(state)

    def on_submit(current: WizardState) -> None:
        _save_wizard(request_submit(current, academic_rules(current.values)))
        st.rerun()

    def on_skip(current: WizardState) -> None:
        _save_wizard(skip(current))
        next_route = skip_academic_onboarding(gateway, session)
        st.toast(t(language, "skip_academic"))
        _reset_wizard(ACADEMIC_WIZARD)
        navigate(next_route, "home")

    _render_wizard_buttons(state, language, on_submit, on_skip)
    if state.in_flight:
        _run_pending_submission(
            state,
            language,
            lambda pending: submit_academic_info(gateway, session, pending),
            t(language, "academic_saved"),
            "home",
        )


# ---- dashboard ----------------------------------------------------------


def _completion_for(session: UserSession):
    student = get_gateway().fetch_one(Student, user_id=session.user_id)
    return evaluate_profile_completion(student)


def _render_completion_gate(language: str, key: str) -> None:
    if not st.session_state.get("show_completion_prompt"):
        return
    completion = st.session_state.get("completion_snapshot")
    if completion is None:
        return
    choice = render_completion_prompt(language, completion, key)
    if choice == "complete":
        st.session_state["show_completion_prompt"] = False
        navigate(ONBOARDING)
    elif choice == "later":
        st.session_state["show_completion_prompt"] = False
        st.session_state["completion_prompt_dismissed"] = True
        st.rerun()


def _render_dashboard_nav(language: str, section: str, session: UserSession) -> None:
    nav_shell = st.container(border=True)
    with nav_shell:
        cols = st.columns(len(DASHBOARD_PAGES) + 2, gap="small")
        for idx, page in enumerate(DASHBOARD_PAGES):
            with cols[idx]:
                if st.button(
                    t(language, NAV_ICONS[page]),
                    key=f"dash_nav_{page}",
                    use_container_width=True,
                    type="primary" if page == section else "secondary",
                ):
                    navigate(DASHBOARD, page)
        with cols[-2]:
            _render_language_picker("dashboard_language")
        with cols[-1]:
            if st.button(t(language, "sign_out"), key="dash_sign_out", use_container_width=True):
                try:
                    get_gateway().sign_out(session.access_token)
                except GatewayError as exc:
                    log_with_context(logger, "WARNING", "Sign out failed", context={"user_id": str(session.user_id)}, extra_data={"error": str(exc)})
                _store_session(None)
                st.session_state.pop("completion_prompt_dismissed", None)
                navigate(LANDING)


def render_home(language: str, session: UserSession) -> None:
    gateway = get_gateway()
    profile = load_profile(gateway, session)
    st.markdown(f"## Welcome back, {profile.display_name}")
    completion = profile.completion
    if needs_completion_prompt(completion, st.session_state.get("completion_prompt_dismissed", False)):
        st.session_state["completion_snapshot"] = completion
        st.session_state["show_completion_prompt"] = True
    _render_completion_gate(language, "home_prompt")
    render_meter("Profile completion", completion.completion_percentage / 100)

    views = list_applications(gateway, session)
    counts = status_counts(views)
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Applications", counts["all"])
    m2.metric("Under review", counts.get("under_review", 0))
    m3.metric("Accepted", counts.get("accepted", 0))
    m4.metric("Drafts", counts.get("draft", 0))

    st.markdown("### Quick search")
    q_col, k_col = st.columns([3, 1])
    with q_col:
        query = st.text_input("Search programs or universities", key="home_query", placeholder="e.g. Computer Science")
    with k_col:
        kind = st.selectbox("In", ["programs", "universities"], key="home_kind")
    results = quick_search(gateway, query, kind)
    for item in results:
        if kind == "universities":
            st.write(f"- **{item.name}** ({item.country})")
        else:
            st.write(
                f"- **{item.program.name}** @ {item.university_name} · "
                f"{format_tuition(item.program.tuition_fee, item.program.currency)} · {item.program.duration_text or '-'}"
            )

    if views:
        st.markdown("### Recent applications")
        for view in views[:3]:
            st.write(f"- {view.program.name if view.program else '-'} @ {view.university.name if view.university else '-'}")
            render_status_badge(view.application.status)


def render_universities(language: str, session: UserSession) -> None:
    universities = list_universities(get_gateway())
    st.markdown("## Universities")
    q_col, c_col = st.columns([3, 1])
    with q_col:
        query = st.text_input("Search universities", key="uni_query")
    with c_col:
        country = st.selectbox("Country", ["all"] + catalog_countries(universities), key="uni_country")
    filtered = filter_universities(universities, {"query": query, "country": country})
    st.caption(f"{len(filtered)} universit{'y' if len(filtered) == 1 else 'ies'} found.")
    for uni in filtered:
        with st.container(border=True):
            st.markdown(f"### {uni.name}")
            st.caption(f"{uni.city or '-'}, {uni.country}")
            st.write(uni.description or "")
            if uni.website_url:
                st.markdown(f"[Visit website]({uni.website_url})")
            if st.button("View programs", key=f"uni_programs_{uni.id}"):
                st.session_state["prog_query"] = uni.name
                navigate(DASHBOARD, "programs")


def render_programs(language: str, session: UserSession) -> None:
    gateway = get_gateway()
    listings = list_programs(gateway)
    st.markdown("## Programs")
    _render_completion_gate(language, "programs_prompt")

    q_col, l_col, c_col, s_col = st.columns([2.4, 1, 1.2, 1.2])
    with q_col:
        query = st.text_input("Search programs", key="prog_query")
    with l_col:
        level = st.selectbox("Level", ["all"] + STUDY_LEVELS, key="prog_level")
    with c_col:
        country = st.selectbox("Country", ["all"] + sorted({item.country for item in listings}), key="prog_country")
    with s_col:
        sort_by = st.selectbox("Sort by", SORT_OPTIONS, key="prog_sort")
    filtered = filter_programs(listings, {"query": query, "study_level": level, "country": country, "sort_by": sort_by})

    if filtered:
        preview = pd.DataFrame(
            [
                {
                    "Program": item.program.name,
                    "University": item.university_name,
                    "Country": item.country,
                    "Level": item.program.study_level,
                    "Tuition/year": format_tuition(item.program.tuition_fee, item.program.currency),
                    "Deadline": item.program.application_deadline,
                }
                for item in filtered
            ]
        )
        st.dataframe(preview, use_container_width=True, hide_index=True)

    for item in filtered:
        p = item.program
        with st.expander(f"{p.name} @ {item.university_name} ({item.country})"):
            st.write(p.description or "")
            st.write(f"Level: {p.study_level} · Duration: {p.duration_text or '-'}")
            st.write(f"Tuition: {format_tuition(p.tuition_fee, p.currency)} per year")
            st.write(f"Application deadline: {p.application_deadline or '-'}")
            render_chips(list(p.languages or []) + [f"{intake} intake" for intake in (p.intake_dates or [])])
            if st.button(t(language, "apply_now"), key=f"apply_{p.id}", type="primary"):
                try:
                    apply_to_program(gateway, session, p.id)
                except ProfileIncompleteError as exc:
                    if st.session_state.get("completion_prompt_dismissed"):
                        st.warning(f"Your profile is {exc.completion_percentage}% complete. Finish onboarding to apply.")
                    else:
                        st.session_state["completion_snapshot"] = _completion_for(session)
                        st.session_state["show_completion_prompt"] = True
                        st.rerun()
                except ApplicationError as exc:
                    st.error(str(exc))
                except GatewayError:
                    st.error("Your application could not be created. Please try again.")
                else:
                    st.success("Draft application created. Add your documents from the Applications page.")


def render_applications(language: str, session: UserSession) -> None:
    gateway = get_gateway()
    st.markdown("## My Applications")
    views = list_applications(gateway, session)
    if not views:
        st.info("No applications yet. Browse programs and press Apply Now to start one.")
        return
    counts = status_counts(views)
    profile = load_profile(gateway, session)
    tabs = st.tabs([f"{tab.replace('_', ' ').title()} ({counts.get(tab, 0)})" for tab in STATUS_TABS])
    for tab, container in zip(STATUS_TABS, tabs):
        with container:
            for view in filter_by_status(views, tab):
                _render_application_card(language, session, view, profile, tab)


def _render_application_card(language: str, session: UserSession, view, profile, tab: str) -> None:
    gateway = get_gateway()
    app_id = view.application.id
    program_name = view.program.name if view.program else "-"
    university_name = view.university.name if view.university else "-"
    with st.container(border=True):
        st.markdown(f"**{program_name}** @ {university_name}")
        render_status_badge(view.application.status)
        render_meter("Checklist", view.progress / 100)
        st.caption(f"Submitted: {view.application.submitted_at.date() if view.application.submitted_at else 'not yet'}")
        if view.document_names:
            render_chips(sorted(view.document_names))
        if view.missing_documents:
            st.caption(f"Missing: {', '.join(view.missing_documents)}")

        with st.expander("Add a document"):
            doc_type = st.selectbox("Document type", list(APPLICATION_CHECKLIST), key=f"doc_type_{tab}_{app_id}")
            upload = st.file_uploader("File", key=f"doc_file_{tab}_{app_id}")
            if upload is not None and st.button("Upload", key=f"doc_upload_{tab}_{app_id}"):
                try:
                    attach_document(gateway, session, app_id, doc_type, UploadedFile.from_upload(upload))
                except ApplicationError as exc:
                    st.error(str(exc))
                except GatewayError:
                    st.error("The document could not be saved. Please try again.")
                else:
                    st.success("Document uploaded.")
                    st.rerun()

        c1, c2, c3 = st.columns(3)
        with c1:
            if view.application.status == "draft" and st.button("Submit application", key=f"submit_{tab}_{app_id}", type="primary"):
                try:
                    submit_application(gateway, session, app_id)
                except (ApplicationError, GatewayError) as exc:
                    st.error(str(exc))
                else:
                    st.rerun()
        summary = build_application_summary(view, profile)
        with c2:
            st.download_button(
                t(language, "download_pdf"),
                data=build_pdf_summary(summary),
                file_name=f"application_{app_id}.pdf",
                mime="application/pdf",
                key=f"pdf_{tab}_{app_id}",
            )
        with c3:
            st.download_button(
                t(language, "download_json"),
                data=build_json_summary(summary),
                file_name=f"application_{app_id}.json",
                mime="application/json",
                key=f"json_{tab}_{app_id}",
            )


def render_profile(language: str, session: UserSession) -> None:
    gateway = get_gateway()
    profile = load_profile(gateway, session)
    student = profile.student
    st.markdown("## Profile")
    render_meter("Profile completion", profile.completion.completion_percentage / 100)
    if profile.completion.missing_fields:
        st.caption(f"Missing: {', '.join(name.replace('_', ' ') for name in profile.completion.missing_fields)}")
        if st.button(t(language, "complete_now"), key="profile_complete_now"):
            navigate(ACADEMIC_ONBOARDING if student and student.date_of_birth else ONBOARDING)
    if profile.user.profile_picture_url:
        st.image(profile.user.profile_picture_url, width=120)

    with st.form("profile_form"):
        c1, c2 = st.columns(2)
        with c1:
            first_name = st.text_input("First name", value=profile.user.first_name or "")
            language_pref = st.selectbox(
                "Preferred language",
                list(LANGUAGES),
                index=list(LANGUAGES).index(profile.user.language_preference) if profile.user.language_preference in LANGUAGES else 0,
                format_func=LANGUAGES.get,
            )
            country_of_origin = st.selectbox(
                "Country of origin",
                COUNTRY_OPTIONS,
                index=COUNTRY_OPTIONS.index(student.country_of_origin) if student and student.country_of_origin in COUNTRY_OPTIONS else None,
                format_func=country_name,
            )
            dual = st.checkbox("Dual citizenship", value=bool(student and student.has_dual_citizenship))
        with c2:
            last_name = st.text_input("Last name", value=profile.user.last_name or "")
            levels = list(PROFILE_STUDY_LEVELS)
            study_level = st.selectbox(
                "Current study level",
                levels,
                index=levels.index(student.current_study_level) if student and student.current_study_level in levels else None,
                format_func=PROFILE_STUDY_LEVELS.get,
            )
            current_country = st.selectbox(
                "Current country",
                COUNTRY_OPTIONS,
                index=COUNTRY_OPTIONS.index(student.current_country) if student and student.current_country in COUNTRY_OPTIONS else None,
                format_func=country_name,
            )
            second = st.selectbox(
                "Second nationality",
                COUNTRY_OPTIONS,
                index=COUNTRY_OPTIONS.index(student.second_nationality) if student and student.second_nationality in COUNTRY_OPTIONS else None,
                format_func=country_name,
            )
        average_grade = st.text_input("Average grade/score", value="" if not student or student.average_grade is None else str(student.average_grade))
        saved = st.form_submit_button(t(language, "save"), type="primary")
    if saved:
        try:
            save_profile(
                gateway,
                session,
                {
                    "first_name": first_name,
                    "last_name": last_name,
                    "language_preference": language_pref,
                    "current_study_level": study_level,
                    "country_of_origin": country_of_origin,
                    "current_country": current_country,
                    "has_dual_citizenship": dual,
                    "second_nationality": second,
                    "average_grade": average_grade,
                },
            )
        except ValidationError as exc:
            for message in exc.errors.values():
                st.error(message)
        except GatewayError:
            st.error("Your profile could not be saved. Please try again.")
        else:
            st.success("Your profile has been successfully updated.")
            if language_pref in {"en", "tr"}:
                st.session_state["language"] = language_pref

    if profile.address or profile.phone:
        st.markdown("### Contact")
        if profile.phone:
            st.write(f"Phone: {profile.phone.country_code} {profile.phone.phone_number}")
        if profile.address:
            a = profile.address
            st.write(f"Address: {a.street}, {a.city}, {a.state} {a.postal_code}, {country_name(a.country)}")
    if profile.exams:
        st.markdown("### Exams")
        st.dataframe(
            pd.DataFrame([{"Exam": e.exam_name, "Score": e.exam_score, "Date": e.exam_date, "Verified": e.is_verified} for e in profile.exams]),
            use_container_width=True,
            hide_index=True,
        )
    if profile.documents:
        st.markdown("### Documents")
        st.dataframe(
            pd.DataFrame(
                [{"Type": type_name, "File": doc.file_name, "Verified": doc.is_verified, "Link": doc.file_url} for doc, type_name in profile.documents]
            ),
            use_container_width=True,
            hide_index=True,
            column_config={"Link": st.column_config.LinkColumn("Link")},
        )


def render_chat(language: str, session: UserSession) -> None:
    gateway = get_gateway()
    st.markdown("## Messages")
    ensure_support_conversation(gateway, session)
    left, right = st.columns([1.3, 3])
    with left:
        query = st.text_input("Search conversations", key="chat_query")
        summaries = list_conversations(gateway, session, query)
        selected = st.session_state.get("chat_selected")
        if selected is None and summaries:
            selected = summaries[0].conversation.id
        for item in summaries:
            c = item.conversation
            label = f"{c.title}" + (f" ({item.unread_count})" if item.unread_count else "")
            if st.button(label, key=f"conv_{c.id}", use_container_width=True, type="primary" if c.id == selected else "secondary"):
                st.session_state["chat_selected"] = c.id
                st.rerun()
            st.caption((c.last_message or "")[:60])
    with right:
        if selected is None:
            st.info("Select a conversation.")
            return
        try:
            messages = read_messages(gateway, session, selected)
        except MessagingError as exc:
            st.session_state.pop("chat_selected", None)
            st.error(str(exc))
            return
        with st.container(border=True, height=420):
            for message in messages:
                render_chat_bubble(
                    message.sender_name,
                    message.content,
                    message.sent_at.strftime("%Y-%m-%d %H:%M"),
                    message.sender_user_id == session.user_id,
                )
        with st.form("chat_send", clear_on_submit=True):
            text = st.text_area("Message", height=80, label_visibility="collapsed", placeholder="Type your message...")
            sent = st.form_submit_button(t(language, "send"), type="primary")
        if sent:
            profile = load_profile(gateway, session)
            try:
                send_message(gateway, session, selected, text, profile.display_name)
            except MessagingError as exc:
                st.warning(str(exc))
            except GatewayError:
                st.error("Your message could not be sent. Please try again.")
            else:
                st.rerun()


DASHBOARD_RENDERERS = {
    "home": render_home,
    "profile": render_profile,
    "universities": render_universities,
    "programs": render_programs,
    "applications": render_applications,
    "chat": render_chat,
}


def render_dashboard(language: str, session: UserSession | None) -> None:
    if session is None:
        navigate(LOGIN)
    section = st.session_state.get("section") or "home"
    if section not in DASHBOARD_RENDERERS:
        section = "home"
    _render_dashboard_nav(language, section, session)
    try:
        DASHBOARD_RENDERERS[section](language, session)
    except GatewayError as exc:
        log_with_context(logger, "ERROR", "Dashboard page failed", context={"user_id": str(session.user_id)}, extra_data={"section": section, "error": str(exc)})
        st.error("We could not load this page. Please try again.")


def restore_navigation_state() -> None:
    query_language = _query_get("language")
    query_page = _query_get("page")
    query_section = _query_get("section")
    if query_language in {"en", "tr"}:
        st.session_state["language"] = query_language
    if query_page in ROUTES:
        st.session_state["page"] = query_page
    if query_section in DASHBOARD_PAGES:
        st.session_state["section"] = query_section


def main() -> None:
    bootstrap()
    restore_navigation_state()
    run_auth_router()
    language = _language()
    session = current_session()
    page = st.session_state.get("page", LANDING)

    if page == LOGIN:
        if session is not None:
            navigate(DASHBOARD, "home")
        render_login(language)
    elif page == ONBOARDING:
        render_personal_onboarding(language, session)
    elif page == ACADEMIC_ONBOARDING:
        render_academic_onboarding(language, session)
    elif page == DASHBOARD:
        render_dashboard(language, session)
    else:
        render_landing(language)


if __name__ == "__main__":
    main()
