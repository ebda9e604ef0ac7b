"""Error types rendered by the API as `{"error": ..., "details": ...}` bodies."""


class ApiError(Exception):
    status_code = 500

    def __init__(self, error: str, details: str | None = None):
        super().__init__(error if details is None else f"{error}: {details}")
        self.error = error
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class ClientInputError(ApiError):
    status_code = 400


class NotFoundError(ApiError):
    status_code = 404

    def __init__(self, error: str = "Not found", details: str | None = None):
        super().__init__(error, details)


class ConfigurationError(ApiError):
    pass


class UpstreamError(ApiError):
    """Timeout, network failure or unexpected status from a third-party API."""

    def __init__(self, error: str, details: str | None = None, status_code: int | None = None):
        super().__init__(error, details)
        self.upstream_status = status_code


class PersistenceError(ApiError):
    pass
