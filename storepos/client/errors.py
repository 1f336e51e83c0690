class ClientError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClientError):
    """Bad input caught before any request is sent."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NetworkError(ClientError):
    pass


class NotAuthenticated(ClientError):
    pass


class SessionExpired(ClientError):
    pass


class ApiError(ClientError):
    def __init__(self, status: int, message: str, payload=None):
        super().__init__(message)
        self.status = status
        self.payload = payload or {}

    @property
    def reason(self):
        return self.payload.get("reason")

    def __str__(self):
        return f"{self.status}: {self.message}"
