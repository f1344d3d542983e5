"""Tests for the operator configuration."""

import pytest

from snapshot_operator.config import DEFAULT_RESYNC_SECONDS, OperatorConfig
from snapshot_operator.exceptions import ConfigException


def test_from_env() -> None:
    """Test reading the versions and images from the environment."""
    config = OperatorConfig.from_env(
        {
            "OPERATOR_IMAGE_VERSION": "4.16.0",
            "OPERAND_IMAGE_VERSION": "4.16.1",
            "OPERAND_IMAGE": "quay.io/snapshot-controller:4.16",
            "WEBHOOK_IMAGE": "quay.io/snapshot-webhook:4.16",
        }
    )
    assert config.operator_version == "4.16.0"
    assert config.operand_version == "4.16.1"
    assert config.operand_image == "quay.io/snapshot-controller:4.16"
    assert config.webhook_image == "quay.io/snapshot-webhook:4.16"
    assert config.resync_seconds == DEFAULT_RESYNC_SECONDS
    assert not config.removable


def test_from_env_missing_values(caplog: pytest.LogCaptureFixture) -> None:
    """Test that unset variables are empty and logged."""
    config = OperatorConfig.from_env({}, resync_seconds=5)
    assert config.operand_image == ""
    assert config.resync_seconds == 5
    assert "OPERAND_IMAGE is not set" in caplog.text


def test_invalid_resync() -> None:
    with pytest.raises(ConfigException, match="Resync interval"):
        OperatorConfig(resync_seconds=0)
