"""Error types shared by the storage, service and AI layers.

Every error carries a message that is safe to show to the user as-is.
"""


class GoalTrackerError(Exception):
    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GoalTrackerError):
    status_code = 400
    default_message = "Please check the submitted fields."


class NotFoundError(GoalTrackerError):
    status_code = 404
    default_message = "The requested record was not found."


class AuthorizationError(GoalTrackerError):
    status_code = 401
    default_message = "Invalid or expired credentials. Please sign in again."


class ForbiddenError(AuthorizationError):
    status_code = 403
    default_message = "You are not allowed to act on behalf of another user."


class RateLimitError(GoalTrackerError):
    status_code = 429
    default_message = "Too many requests. Please wait a moment and try again."


class ConnectivityError(GoalTrackerError):
    status_code = 503
    default_message = "The service is unavailable. Please check your connection and try again."


class AIConfigurationError(GoalTrackerError):
    status_code = 503
    default_message = (
        "The AI service is not properly configured. "
        "Please set GOOGLE_API_KEY in the server environment."
    )


class PaymentConfigurationError(GoalTrackerError):
    status_code = 503
    default_message = "Payments are not configured. Please contact support."


def user_message(exc: Exception) -> str:
    """Human-readable text for any exception reaching an action boundary."""
    if isinstance(exc, GoalTrackerError):
        return exc.message
    return GoalTrackerError.default_message


def describe_field_errors(errors, skip: int = 0) -> str:
    """'Invalid <field>: <reason>' for the first pydantic error; `skip` drops leading loc parts."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[skip:]) or "request"
    return f"Invalid {field}: {first.get('msg')}"
