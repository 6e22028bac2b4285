"""Pulumi Infrastructure Tests Configuration."""

import os
import sys
from typing import Any
from unittest.mock import MagicMock

import pulumi
import pytest

# Set test environment variables
os.environ.setdefault("PULUMI_CONFIG_PASSPHRASE", "test-passphrase")
os.environ.setdefault("PULUMI_SKIP_UPDATE_CHECK", "true")

# Add the infrastructure directory to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from topology import Topology, build_topology  # noqa: E402


def fake_resource(resource_name: str, *args: Any, **kwargs: Any) -> MagicMock:
    """Stand-in for a provider resource that remembers its arguments."""
    resource = MagicMock(spec=pulumi.CustomResource)
    resource.resource_name = resource_name
    resource.id = f"{resource_name}-id"
    resource.name = kwargs.get("name", resource_name)
    resource.kwargs = kwargs
    return resource


@pytest.fixture(scope="session")
def project_id() -> str:
    """Test GCP project ID."""
    return "network-test"


@pytest.fixture(scope="session")
def region() -> str:
    """Test GCP region."""
    return "us-central1"


@pytest.fixture(scope="session")
def env() -> str:
    """Test environment."""
    return "test"


@pytest.fixture
def topology(region: str, env: str) -> Topology:
    """The declared network for the test environment."""
    return build_topology(region=region, env=env)
