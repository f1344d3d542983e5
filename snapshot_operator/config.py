"""Configuration objects for the csi-snapshot-operator."""

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import os

from .exceptions import ConfigException

_LOGGER = logging.getLogger(__name__)

TARGET_NAME = "csi-snapshot-controller"
TARGET_NAMESPACE = "openshift-cluster-storage-operator"
OPERATOR_NAMESPACE = "openshift-cluster-storage-operator"

OPERATOR_VERSION_ENV = "OPERATOR_IMAGE_VERSION"
OPERAND_VERSION_ENV = "OPERAND_IMAGE_VERSION"
OPERAND_IMAGE_ENV = "OPERAND_IMAGE"
WEBHOOK_IMAGE_ENV = "WEBHOOK_IMAGE"

# Periodic re-enqueue of every controller, guarding against missed events.
DEFAULT_RESYNC_SECONDS = 20 * 60

_ENV_FIELDS = {
    "operator_version": OPERATOR_VERSION_ENV,
    "operand_version": OPERAND_VERSION_ENV,
    "operand_image": OPERAND_IMAGE_ENV,
    "webhook_image": WEBHOOK_IMAGE_ENV,
}


@dataclass(frozen=True)
class OperatorConfig:
    """Values resolved once at startup and immutable for the process lifetime."""

    operator_version: str = ""
    """Version of the operator image, reported as the `operator` version."""

    operand_version: str = ""
    """Version of the snapshot controller image."""

    operand_image: str = ""
    """Image reference of the snapshot controller."""

    webhook_image: str = ""
    """Image reference of the snapshot validation webhook."""

    resync_seconds: float = DEFAULT_RESYNC_SECONDS
    """Interval of the periodic resync of every controller."""

    target_namespace: str = TARGET_NAMESPACE
    """Namespace of the operand Deployments."""

    operator_namespace: str = OPERATOR_NAMESPACE
    """Namespace the operator itself runs in."""

    removable: bool = False
    """Whether the operator honors the Removed management state."""

    def __post_init__(self) -> None:
        if self.resync_seconds <= 0:
            raise ConfigException(
                f"Resync interval must be positive, got {self.resync_seconds}"
            )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **kwargs: float | str | bool
    ) -> "OperatorConfig":
        """Build the configuration from environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for name, env_name in _ENV_FIELDS.items():
            if not (value := env.get(env_name, "")):
                _LOGGER.warning("Environment variable %s is not set", env_name)
            values[name] = value
        return cls(**values, **kwargs)  # type: ignore[arg-type]
