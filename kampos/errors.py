from typing import List, Optional


USER_MESSAGES = {
    "permission-denied": "You do not have permission to perform this action. Make sure you are signed in.",
    "network-error": "Connection problem. Check your network connection.",
    "service-unavailable": "The service is temporarily unavailable. Try again later.",
    "unknown-error": "An unexpected error occurred. Please try again.",
}


class KamposError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(KamposError):
    """Missing or inconsistent data: duplicate enrollment, subject without config..."""

    status_code = 400


class NotFoundError(KamposError):
    status_code = 404


class DeleteBlockedError(KamposError):
    """A delete was refused because other records still reference the target."""

    status_code = 409

    def __init__(self, message: str, blocking: Optional[List[str]] = None):
        super().__init__(message)
        self.blocking = blocking or []


class StoreError(KamposError):
    """Failure reported by the persistence backend."""

    status_code = 503

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code if code in USER_MESSAGES else "unknown-error"

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.code]
