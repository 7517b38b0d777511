"""Error taxonomy for the scheduling core.

``ValidationError``, ``ConflictError`` and ``NotFoundError`` surface to the
caller of ``InspectionService.bind``. ``ProviderError`` is recovered per
recipient inside the delivery services. ``SchedulingError`` is logged and
swallowed by the job scheduler.
"""


class OnScheduleError(Exception):
    """Base class for scheduling core errors."""
    pass


class ValidationError(OnScheduleError):
    """Input failed a scheduling rule (missing template, short message, ...)."""
    pass


class ConflictError(OnScheduleError):
    """An inspection already exists for the same key."""
    pass


class NotFoundError(OnScheduleError):
    """A referenced record does not exist."""

    def __init__(self, resource: str, identifier: object | None = None):
        self.resource = resource
        self.identifier = identifier
        if identifier is None:
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} {identifier} not found")


class ProviderError(OnScheduleError):
    """A notification provider refused or failed a single send."""

    def __init__(
        self,
        message: str,
        recipient: str | None = None,
        status_code: int | None = None,
        rejected: bool = False,
    ):
        super().__init__(message)
        self.recipient = recipient
        self.status_code = status_code
        self.rejected = rejected


class ProviderConfigurationError(OnScheduleError):
    """Provider credentials are missing at construction time."""
    pass


class SchedulingError(OnScheduleError):
    """A fired job's callback raised."""

    def __init__(self, job_id: str, cause: BaseException):
        super().__init__(f"Job '{job_id}' failed: {cause}")
        self.job_id = job_id
        self.cause = cause
