"""Global pytest configuration and fixtures."""

import os

import pytest


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Keep the user's SESH_* settings out of the test run."""
    saved = {key: os.environ.pop(key) for key in list(os.environ) if key.startswith("SESH_")}

    yield

    os.environ.update(saved)


@pytest.fixture(scope="function", autouse=True)
def reset_global_state():
    """Reset global state between tests to avoid interference."""
    from sesh.core import orchestrator

    orchestrator._orchestrator = None
    yield
    orchestrator._orchestrator = None
