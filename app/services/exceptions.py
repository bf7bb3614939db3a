class EventServiceError(Exception):
    """Base class for failures the API reports to clients as-is."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EventValidationError(EventServiceError):
    status_code = 400


class NoChangesError(EventServiceError):
    status_code = 400

    def __init__(self, message: str = "No changes to apply"):
        super().__init__(message)


class AlreadyJoinedError(EventServiceError):
    status_code = 400

    def __init__(self, message: str = "You have already joined this event"):
        super().__init__(message)


class EventForbiddenError(EventServiceError):
    status_code = 403

    def __init__(self, message: str = "Only the event creator can update this event"):
        super().__init__(message)


class EventNotFoundError(EventServiceError):
    status_code = 404

    def __init__(self, message: str = "Event not found"):
        super().__init__(message)


class EventBusyError(EventServiceError):
    status_code = 409

    def __init__(self, message: str = "Event is busy, please try again"):
        super().__init__(message)
