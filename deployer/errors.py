from typing import Optional


class DeployError(Exception):
    pass


class InvalidRequest(DeployError):
    pass


class GenerationFailure(DeployError):
    pass


class ProviderFailure(DeployError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictFailure(ProviderFailure):
    """The version token sent with a write no longer matches the remote file."""


class NotFound(ProviderFailure):
    pass


class AlreadyExists(ProviderFailure):
    pass


class NotificationFailure(DeployError):
    pass


class MalformedResponse(ProviderFailure):
    """A 2xx answer whose body cannot be decoded or lacks the expected fields."""
