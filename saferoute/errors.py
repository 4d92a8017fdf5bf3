class RoutingError(Exception):
    """Base class for route fetch failures. `message` and `hint` are user-facing."""

    message = "Route calculation failed"
    hint = "Check your connection and try again"
    retryable = True

    def __init__(self, message: str = "", hint: str = "", detail: str = ""):
        if message:
            self.message = message
        if hint:
            self.hint = hint
        self.detail = detail
        super().__init__(detail or self.message)

    def to_dict(self) -> dict:
        return {"message": self.message, "hint": self.hint, "retry": self.retryable}


class ProviderUnavailable(RoutingError):
    message = "Routing server error"
    hint = "Check your connection and try again"


class ProviderTimeout(ProviderUnavailable):
    message = "Request timed out"
    hint = "The routing server is slow, tap \"Get the Route\" again"


class EmptyResultSet(RoutingError):
    message = "No walking route found"
    hint = "Try a closer destination"


class RouteFetchSuperseded(RoutingError):
    message = "Route request replaced by a newer one"
    hint = ""
    retryable = False
