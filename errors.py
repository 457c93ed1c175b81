from __future__ import annotations


class GatewayError(Exception):
    """A remote call (auth, table or storage) failed."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class AuthError(GatewayError):
    pass


class StorageError(GatewayError):
    pass


class ValidationError(Exception):
    """Field-scoped validation failures; `errors` maps field name to message."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = dict(errors)


class OnboardingError(Exception):
    """The single user-visible failure of a wizard submission."""


class ProfileIncompleteError(Exception):
    def __init__(self, completion_percentage: int) -> None:
        super().__init__(f"Profile is {completion_percentage}% complete")
        self.completion_percentage = completion_percentage


class ApplicationError(Exception):
    pass


class MessagingError(Exception):
    pass
