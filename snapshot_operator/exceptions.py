"""Exceptions related to the csi-snapshot-operator."""

__all__ = [
    "OperatorException",
    "ConfigException",
    "AssetException",
    "ClusterException",
    "ConflictError",
    "ObjectNotFoundError",
    "AlreadyExistsError",
    "TransientError",
    "PipelineError",
    "StoppedError",
]


class OperatorException(Exception):
    """Generic base exception used for this library."""


class ConfigException(OperatorException):
    """Raised when the operator configuration is not usable at startup."""


class AssetException(OperatorException):
    """Raised when an embedded manifest template cannot be read."""


class ClusterException(OperatorException):
    """Raised when a request against the cluster API fails."""


class ConflictError(ClusterException):
    """Raised when a write used a stale resourceVersion."""

    def __init__(self, resource_name: str, expected: str | None, actual: str) -> None:
        super().__init__(
            f"Conflict updating {resource_name}: resourceVersion {expected} "
            f"does not match current {actual}"
        )
        self.resource_name = resource_name
        self.expected = expected
        self.actual = actual


class ObjectNotFoundError(ClusterException):
    """Raised when an object does not exist in the cluster."""


class AlreadyExistsError(ClusterException):
    """Raised when creating an object that already exists."""


class TransientError(OperatorException):
    """Raised when a retried operation did not succeed within its budget."""


class PipelineError(OperatorException):
    """Raised when a manifest hook fails or a template cannot be rendered."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"Manifest hook {stage} failed: {message}")
        self.stage = stage
        self.message = message


class StoppedError(OperatorException):
    """Raised by the operator run loop once the stop signal fires."""
