"""Exception definitions for Formwright application"""


class FormwrightException(Exception):
    """Base exception for all Formwright application errors.

    All custom exceptions in the Formwright application inherit from this class.
    Use this as a catch-all for Formwright-specific errors when you don't need
    to handle specific exception types.
    """

    status_code = 500
    public_message = "Internal server error"


class ConfigException(FormwrightException):
    """Raised when configuration validation or loading fails.

    Use this exception when:
    - The configuration file cannot be found
    - The TOML syntax is invalid
    - Configuration validation fails (missing required fields, invalid values)
    """

    pass


class SubmissionValidationError(FormwrightException):
    """Raised when a payload does not satisfy a compiled submission schema.

    Carries one ``FieldError`` per failing field, in field order. The
    submitter can correct the input and retry.
    """

    status_code = 400
    public_message = "Validation failed"

    def __init__(self, errors):
        self.errors = list(errors)
        summary = ", ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Validation failed ({summary})")


class InvalidInputError(FormwrightException):
    """Raised when management input (titles, field lists, statuses) is malformed."""

    status_code = 400
    public_message = "Invalid input"

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message)
        self.public_message = message


class AuthorizationError(FormwrightException):
    """Raised when a management operation has no principal attached."""

    status_code = 401
    public_message = "Unauthorized"


class NotFoundError(FormwrightException):
    """Raised when a form is missing or not owned by the caller.

    Existence and ownership are checked in a single lookup so the error
    never reveals whether another user's form exists.
    """

    status_code = 404
    public_message = "Form not found"


class RateLimitExceeded(FormwrightException):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."


class UnpublishableFormError(FormwrightException):
    """Raised when publishing a form that has no fields."""

    status_code = 400
    public_message = "Cannot publish form without fields"


class FormClosedError(FormwrightException):
    """Raised when a public submission targets a form that is not accepting them."""

    status_code = 403
    public_message = "Form is not published"

    def __init__(self, message: str = "Form is not published", status_code: int = 403):
        super().__init__(message)
        self.public_message = message
        self.status_code = status_code


class StoreError(FormwrightException):
    """Raised when the record store rejects a read or write."""

    pass
