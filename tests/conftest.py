"""Shared pytest fixtures and configuration for all test suites.

This module provides common fixtures that can be used across all test files:
- Mock collaborators (store, DAOs, GitHub client, token provider)
- A tool registry with the built-in tools plus mocked host tools
- A ToolContext factory
"""

import os

# Settings are read at import time: keep tests off disk and off the network.
os.environ["ENABLE_FILE_LOGGING"] = "false"
os.environ["ENABLE_LLM_INTENT_FALLBACK"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import AsyncMock, Mock  # noqa: E402

import pytest  # noqa: E402

from src.fsm.models import StepData, ToolResult  # noqa: E402
from src.integrations.github import GitHubClient  # noqa: E402
from src.tools.builtin import create_default_registry  # noqa: E402
from src.tools.context import ToolContext  # noqa: E402

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (slow)"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (fast)")
    config.addinivalue_line("markers", "fsm: mark test as FSM-related test")


# ============================================================================
# Mock Collaborator Fixtures
# ============================================================================


@pytest.fixture
def mock_store():
    """Mock OnboardingStore recording every persistence callback."""
    store = Mock()
    store.get_step_data = AsyncMock(return_value={})
    store.update_step_data = AsyncMock(return_value=None)
    store.advance_step = AsyncMock(return_value=None)
    store.complete_onboarding = AsyncMock(return_value=None)
    store.skip_onboarding = AsyncMock(return_value=None)
    store.list_user_ids = AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_integration_dao():
    dao = Mock()
    dao.list_integrations = AsyncMock(return_value=[])
    dao.create_integration = AsyncMock(return_value={"id": 99})
    return dao


@pytest.fixture
def mock_installation_dao():
    dao = Mock()
    dao.list_installations = AsyncMock(return_value=[])
    return dao


@pytest.fixture
def mock_space_dao():
    dao = Mock()
    dao.get_space_by_slug = AsyncMock(return_value=None)
    dao.create_space = AsyncMock(return_value={"id": 2, "name": "docs"})
    dao.get_default_space = AsyncMock(return_value={"id": 1, "name": "Default"})
    dao.create_default_space_if_needed = AsyncMock(return_value={"id": 1, "name": "Default"})
    return dao


@pytest.fixture
def mock_github():
    """Mock GitHub client: no commits, empty tree."""
    client = Mock(spec=GitHubClient)
    client.fetch_latest_commit_sha = AsyncMock(return_value=None)
    client.fetch_repo_tree = AsyncMock(return_value=[])
    return client


@pytest.fixture
def mock_token_provider():
    return AsyncMock(return_value="mock-install-token")


@pytest.fixture
def host_tools():
    """Mocked host tools (bulk import, gap analysis, generation)."""
    return {
        "import_all_markdown": AsyncMock(
            return_value=ToolResult(success=True, content="Imported: 3\nSkipped (already imported): 1\nFailed: 0")
        ),
        "gap_analysis": AsyncMock(return_value=ToolResult(success=True, content="No gaps found")),
        "generate_from_code": AsyncMock(
            return_value=ToolResult(success=True, content="Generated 2 articles")
        ),
    }


@pytest.fixture
def registry(host_tools):
    """Built-in tools plus mocked host tools."""
    reg = create_default_registry()
    for name, handler in host_tools.items():
        reg.register(name, handler)
    return reg


@pytest.fixture
def active_integration():
    """An active GitHub integration for acme/docs."""
    return {
        "id": 7,
        "type": "github",
        "status": "active",
        "name": "acme/docs",
        "metadata": {"repo": "acme/docs", "branch": "main", "installation_id": 42},
    }


# ============================================================================
# Context Factory
# ============================================================================


@pytest.fixture
def make_context(
    mock_store,
    mock_integration_dao,
    mock_installation_dao,
    mock_space_dao,
    mock_github,
    mock_token_provider,
    registry,
):
    """Factory building a ToolContext for user 1 with the mock collaborators."""

    def _make(step_data=None, user_message=None, **overrides):
        data = StepData.from_persisted(step_data or {})
        data.user_message = user_message
        fields = {
            "user_id": 1,
            "step_data": data,
            "store": mock_store,
            "integration_dao": mock_integration_dao,
            "github_installation_dao": mock_installation_dao,
            "space_dao": mock_space_dao,
            "github": mock_github,
            "token_provider": mock_token_provider,
            "registry": registry,
        }
        fields.update(overrides)
        return ToolContext(**fields)

    return _make

