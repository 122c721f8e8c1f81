"""Domain errors raised by the stores and the scheduling service."""


class SchedulingError(Exception):
    pass


class NotFoundError(SchedulingError):
    pass


class InvalidStateError(SchedulingError):
    pass


class ConflictError(SchedulingError):
    pass


class DateHasAppointmentsError(ConflictError):
    def __init__(self, date_value, message: str | None = None) -> None:
        self.date = date_value
        super().__init__(
            message
            or f"Cannot make {date_value} unavailable: date has active appointments"
        )


class ValidationFailure(SchedulingError):
    pass


class InvalidCredentialError(ValidationFailure):
    pass


__all__ = [
    "SchedulingError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "DateHasAppointmentsError",
    "ValidationFailure",
    "InvalidCredentialError",
]
