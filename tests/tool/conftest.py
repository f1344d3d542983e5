"""Fixtures for the command line tool tests."""

from pathlib import Path
from typing import Any

import pytest
import yaml

from ..objects import (
    MASTER_LABELS,
    make_infrastructure,
    make_node,
    make_operator,
)


@pytest.fixture(name="topology")
def topology_fixture() -> str | None:
    """Control plane topology reported by the Infrastructure."""
    return "HighlyAvailable"


@pytest.fixture(name="cluster_path")
def cluster_path_fixture(tmp_path: Path, topology: str | None) -> Path:
    """Directory with the YAML files of a cluster state."""
    node_count = 1 if topology == "SingleReplica" else 3
    docs: list[dict[str, Any]] = [
        make_operator(),
        make_infrastructure(topology),
        *(make_node(f"master-{i}", MASTER_LABELS) for i in range(node_count)),
    ]
    (tmp_path / "cluster.yaml").write_text(yaml.dump_all(docs))
    return tmp_path


@pytest.fixture(autouse=True)
def images_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment of the operator Deployment."""
    monkeypatch.setenv("OPERATOR_IMAGE_VERSION", "4.16.0")
    monkeypatch.setenv("OPERAND_IMAGE_VERSION", "4.16.0")
    monkeypatch.setenv("OPERAND_IMAGE", "quay.io/snapshot-controller:4.16")
    monkeypatch.setenv("WEBHOOK_IMAGE", "quay.io/snapshot-webhook:4.16")
