"""Representation of the cluster objects read and written by the operator.

Objects are exchanged with the cluster as plain kubernetes documents (nested
dictionaries). The typed dataclasses here cover the parts of those documents
the operator reasons about: the operator spec, conditions, versions and the
aggregated ClusterOperator status.
"""

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.codecs.yaml import yaml_decode, yaml_encode
from mashumaro.config import BaseConfig

from .exceptions import OperatorException

__all__ = [
    "NamedResource",
    "ConditionStatus",
    "LogLevel",
    "ManagementState",
    "ControlPlaneTopology",
    "OperatorCondition",
    "OperatorSpec",
    "OperatorStatus",
    "ObjectReference",
    "OperandVersion",
    "ClusterOperatorStatus",
    "resource_id",
]

_LOGGER = logging.getLogger(__name__)


OPERATOR_GROUP = "operator.openshift.io"
OPERATOR_KIND = "CSISnapshotController"
OPERATOR_RESOURCE = "csisnapshotcontrollers"
CLUSTER_OPERATOR_KIND = "ClusterOperator"
INFRASTRUCTURE_KIND = "Infrastructure"
NODE_KIND = "Node"
DEPLOYMENT_KIND = "Deployment"
PDB_KIND = "PodDisruptionBudget"
CRD_KIND = "CustomResourceDefinition"
WEBHOOK_CONFIG_KIND = "ValidatingWebhookConfiguration"

# Singleton objects are all named "cluster".
CLUSTER_NAME = "cluster"


class ConditionStatus(StrEnum):
    """Status of an operator condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class LogLevel(StrEnum):
    """Operator log levels, in increasing order of verbosity."""

    NORMAL = "Normal"
    DEBUG = "Debug"
    TRACE = "Trace"
    TRACE_ALL = "TraceAll"


class ManagementState(StrEnum):
    """Whether and how the operator should manage its operands."""

    MANAGED = "Managed"
    UNMANAGED = "Unmanaged"
    REMOVED = "Removed"
    FORCE = "Force"


class ControlPlaneTopology(StrEnum):
    """Shape of the cluster control plane reported by the Infrastructure."""

    HIGHLY_AVAILABLE = "HighlyAvailable"
    SINGLE_REPLICA = "SingleReplica"
    EXTERNAL = "External"


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all typed objects."""

    @classmethod
    def parse_yaml(cls, content: str) -> "BaseManifest":
        """Parse a serialized object."""
        return yaml_decode(content, cls)

    def yaml(self) -> str:
        """Return a YAML string representation of the object."""
        return yaml_encode(self, self.__class__)  # type: ignore[return-value]

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


def resource_id(doc: dict[str, Any]) -> NamedResource:
    """Return the identifier of a raw kubernetes object."""
    if not (kind := doc.get("kind")):
        raise OperatorException(f"Invalid object missing kind: {doc}")
    if not (metadata := doc.get("metadata")):
        raise OperatorException(f"Invalid object missing metadata: {doc}")
    if not (name := metadata.get("name")):
        raise OperatorException(f"Invalid object missing metadata.name: {doc}")
    return NamedResource(kind=kind, namespace=metadata.get("namespace"), name=name)


@dataclass
class OperatorCondition(BaseManifest):
    """A single condition reported on a status object."""

    type: str
    """Unique type of the condition, e.g. CSISnapshotControllerAvailable."""

    status: ConditionStatus
    """One of True, False or Unknown."""

    reason: str | None = None
    """Machine readable reason for the last transition."""

    message: str | None = None
    """Human readable details."""

    last_transition_time: str | None = field(
        metadata=field_options(alias="lastTransitionTime"), default=None
    )
    """RFC 3339 timestamp of the last status change."""


@dataclass
class OperatorSpec(BaseManifest):
    """Desired state of the operator, owned by the cluster administrator."""

    management_state: str = field(
        metadata=field_options(alias="managementState"),
        default=ManagementState.MANAGED.value,
    )
    """How the operator manages its operands, see ManagementState."""

    log_level: str | None = field(
        metadata=field_options(alias="logLevel"), default=None
    )
    """Verbosity of the operands, see LogLevel."""

    operator_log_level: str | None = field(
        metadata=field_options(alias="operatorLogLevel"), default=None
    )
    """Verbosity of the operator itself, see LogLevel."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "OperatorSpec":
        """Parse the spec of an operator custom resource."""
        return cls.from_dict(doc.get("spec") or {})


@dataclass
class OperatorStatus(BaseManifest):
    """Observed state of the operator written by the controllers."""

    conditions: list[OperatorCondition] = field(default_factory=list)
    """Conditions reported by every controller of the operator."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "OperatorStatus":
        """Parse the status of an operator custom resource."""
        return cls.from_dict(doc.get("status") or {})


@dataclass
class ObjectReference(BaseManifest):
    """Reference to an object related to the ClusterOperator."""

    resource: str
    name: str
    group: str = ""
    namespace: str | None = None


@dataclass
class OperandVersion(BaseManifest):
    """Version reported for one component."""

    name: str
    version: str


@dataclass
class ClusterOperatorStatus(BaseManifest):
    """The externally visible, aggregated status of the operator."""

    conditions: list[OperatorCondition] = field(default_factory=list)
    """Unioned Available, Progressing, Degraded and Upgradeable conditions."""

    versions: list[OperandVersion] = field(default_factory=list)
    """Reported versions of the operator and its operands."""

    related_objects: list[ObjectReference] = field(
        metadata=field_options(alias="relatedObjects"), default_factory=list
    )
    """Objects to collect when debugging the operator."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ClusterOperatorStatus":
        """Parse the status of a ClusterOperator object."""
        return cls.from_dict(doc.get("status") or {})

    def version_map(self) -> dict[str, str]:
        """Return the versions keyed by component name."""
        return {v.name: v.version for v in self.versions}
