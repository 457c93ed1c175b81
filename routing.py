from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from auth import UserSession
from errors import GatewayError
from gateway import SIGNED_IN, Gateway, Subscription
from logging_config import get_logger, log_with_context
from models import CompletionStatus, Student

LANDING = "landing"
LOGIN = "login"
ONBOARDING = "onboarding"
ACADEMIC_ONBOARDING = "academic-onboarding"
DASHBOARD = "dashboard"

ROUTES = {LANDING, LOGIN, ONBOARDING, ACADEMIC_ONBOARDING, DASHBOARD}
DASHBOARD_PAGES = ["home", "profile", "universities", "programs", "applications", "chat"]

# Query parameters carried by an email-confirmation callback link.
SESSION_FRAGMENT_PARAMS = ("access_token", "refresh_token", "type", "expires_in")

logger = get_logger("router")


@dataclass(frozen=True)
class Redirect:
    route: str
    clear_params: tuple[str, ...] = ()
    session: Optional[UserSession] = None


def route_for_status(status: str | None) -> str:
    if status == CompletionStatus.COMPLETE.value:
        return DASHBOARD
    # Missing records, incomplete, partial and unknown values all resume onboarding
    return ONBOARDING


def _param(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if isinstance(value, list):
        return value[0] if value else None
    return value


def has_session_fragment(params: Mapping[str, Any]) -> bool:
    return bool(_param(params, "access_token"))


class AuthRedirectHandler:
    """Decides where a freshly authenticated session should land.

    Runs for confirmation callbacks (an ``access_token`` in the URL) and for
    ``SIGNED_IN`` events from the gateway. Overlapping invocations on the same
    handler are ignored.
    """

    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway
        self.pending: Optional[Redirect] = None
        self._processing = False
        self._subscription: Optional[Subscription] = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    def _landing_for(self, session: UserSession) -> str:
        try:
            student = self.gateway.fetch_one(Student, user_id=session.user_id)
        except GatewayError as exc:
            log_with_context(
                logger,
                "ERROR",
                "Could not read completion status",
                context={"user_id": str(session.user_id)},
                extra_data={"error": str(exc)},
            )
            student = None
        status = student.profile_completion_status if student else None
        route = route_for_status(status)
        log_with_context(logger, "INFO", "Routing authenticated session", context={"user_id": str(session.user_id)}, extra_data={"status": status, "route": route})
        return route

    def handle_callback(self, params: Mapping[str, Any]) -> Optional[Redirect]:
        if not has_session_fragment(params) or self._processing:
            return None
        self._processing = True
        clear = tuple(key for key in SESSION_FRAGMENT_PARAMS if key in params)
        try:
            try:
                session = self.gateway.get_session(_param(params, "access_token"))
            except GatewayError as exc:
                log_with_context(logger, "WARNING", "Callback session rejected", extra_data={"error": str(exc), "code": exc.code})
                return Redirect(LOGIN, clear)
            if session is None:
                log_with_context(logger, "WARNING", "Callback carried an unknown session token")
                return Redirect(LOGIN, clear)
            return Redirect(self._landing_for(session), clear, session)
        finally:
            self._processing = False

    def handle_auth_event(self, event: str, session: Optional[UserSession]) -> Optional[Redirect]:
        if event != SIGNED_IN or session is None or self._processing:
            return None
        self._processing = True
        try:
            return Redirect(self._landing_for(session), (), session)
        finally:
            self._processing = False

    def _on_event(self, event: str, session: Optional[UserSession]) -> None:
        redirect = self.handle_auth_event(event, session)
        if redirect is not None:
            self.pending = redirect

    def attach(self) -> None:
        if self._subscription is None or not self._subscription.active:
            self._subscription = self.gateway.on_auth_state_change(self._on_event)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def take_pending(self) -> Optional[Redirect]:
        redirect, self.pending = self.pending, None
        return redirect
