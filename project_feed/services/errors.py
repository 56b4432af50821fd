"""
Feed error hierarchy.

Every error carries a technical ``message``, a stable ``code`` and a
``user_message`` suitable for display. Only the transport boundary raises
``TransportError``; taxonomy and merge functions never raise it.
"""

from typing import Optional


class FeedError(Exception):
    """Base class for project feed errors."""

    code = "feed_error"
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.default_user_message


class UnknownStatusError(FeedError):
    """Backend returned a status code absent from the taxonomy."""

    code = "unknown_status"

    def __init__(self, status_code: str):
        self.status_code = status_code
        super().__init__(f"Unknown project status: {status_code!r}")

    @property
    def user_message(self) -> str:
        return "Status updated"


POLICY_MESSAGES = {
    "phone": "Phone numbers cannot be shared in chat for your safety. This conversation may be flagged.",
    "email": "Email addresses cannot be shared in chat for your safety. This conversation may be flagged.",
    "link": "External links cannot be shared in chat for your safety. This conversation may be flagged.",
    "address": "Personal addresses cannot be shared in chat for your safety. This conversation may be flagged.",
    "social_media": "Social media handles cannot be shared in chat for your safety. This conversation may be flagged.",
    "messaging_app": "Messaging app references cannot be shared in chat. Please use in-app communication.",
}


class ContentPolicyViolation(FeedError):
    """Outgoing message failed content policy validation."""

    code = "content_policy_violation"

    def __init__(
        self,
        reason: str,
        message: Optional[str] = None,
        violations: Optional[list[str]] = None,
    ):
        self.reason = reason
        self.violations = violations or []
        super().__init__(message or POLICY_MESSAGES.get(reason, "This content is not allowed."))

    @property
    def user_message(self) -> str:
        return POLICY_MESSAGES.get(self.reason, self.message)


class InvalidMessage(FeedError):
    """Outgoing message is empty or longer than allowed."""

    code = "invalid_message"

    @property
    def user_message(self) -> str:
        return self.message


class AttachmentRejected(FeedError):
    """Attachment is too large or of a type that cannot be sent."""

    code = "attachment_rejected"

    @property
    def user_message(self) -> str:
        return self.message


class TransportError(FeedError):
    """The backend fetch/send call failed (network, auth or server)."""

    code = "transport_error"
    default_user_message = "We couldn't reach the server. Check your connection and retry."

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original: Optional[BaseException] = None,
    ):
        self.status_code = status_code
        self.original = original
        super().__init__(message)

    @property
    def user_message(self) -> str:
        if self.status_code in (401, 403):
            return "Your session has expired. Please sign in again."
        if self.status_code == 404:
            return "This conversation could not be found."
        return self.default_user_message


class StaleFetchDiscarded(FeedError):
    """A superseded fetch resolved after a newer one. Never user-visible."""

    code = "stale_fetch"

    def __init__(self, token: int, latest: int):
        self.token = token
        self.latest = latest
        super().__init__(f"Fetch {token} superseded by {latest}")


class ControllerDisposed(FeedError):
    """Operation attempted on a disposed feed controller."""

    code = "controller_disposed"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Feed controller for project {project_id} is disposed")
