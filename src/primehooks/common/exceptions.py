"""primehooks exception hierarchy."""


class PrimeHooksError(Exception):
    """Base exception for all primehooks errors."""

    def __init__(self, message: str = "", code: str = "PRIMEHOOKS_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(PrimeHooksError):
    """Raised when a webhook or assignment definition is malformed."""

    def __init__(self, message: str = "Invalid definition", errors: list[str] | None = None):
        self.errors = errors or [message]
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(PrimeHooksError):
    """Raised when a referenced webhook, assignment or organization does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class ConflictError(PrimeHooksError):
    """Raised when a delete is blocked by references or an assign loses a race."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, code="CONFLICT")


class NotConfiguredError(PrimeHooksError):
    """Raised when no active webhook is assigned to a page position."""

    def __init__(self, message: str = "No webhook configured for this position"):
        super().__init__(message, code="NOT_CONFIGURED")


class PersistenceError(PrimeHooksError):
    """Raised when an execution record cannot be written."""

    def __init__(self, message: str = "Failed to persist execution record"):
        super().__init__(message, code="PERSISTENCE_ERROR")
