"""Shared pytest fixtures for manifest publisher tests.

Fixture Organization:
    - Mock fixtures: in-memory GitHub host, recorded backoff sleeps
    - Sample data fixtures: upstream manifest repository and submissions
    - Environment fixtures: config reset around each test

References:
    - pytest fixtures docs: https://docs.pytest.org/en/stable/how-to/fixtures.html
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add tests directory to sys.path so tests can import the mocks package
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from mocks.github_mock import MockGitHubHost  # noqa: E402

from manifest_publisher.config import reset_config  # noqa: E402
from manifest_publisher.github.models import ManifestSubmission  # noqa: E402

UPSTREAM = "microsoft/winget-pkgs"
PR_TEMPLATE = "- [ ] Have you signed the Contributor License Agreement?\n"


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def host() -> MockGitHubHost:
    """In-memory GitHub host seeded with an upstream manifest repository.

    Upstream layout:
        manifests/c/Contoso/App/1.9.0/...
        manifests/c/Contoso/App/1.10.0/...
        manifests/c/Contoso/App/2.0.0/Contoso.App.yaml
        manifests/c/Contoso/App/2.0.0/Contoso.App.installer.yaml
    """
    github = MockGitHubHost(login="contributor")
    github.seed_repository(
        UPSTREAM,
        {
            ".github/PULL_REQUEST_TEMPLATE.md": PR_TEMPLATE,
            "manifests/c/Contoso/App/1.9.0/Contoso.App.yaml": "PackageVersion: 1.9.0\n",
            "manifests/c/Contoso/App/1.10.0/Contoso.App.yaml": "PackageVersion: 1.10.0\n",
            "manifests/c/Contoso/App/2.0.0/Contoso.App.yaml": "PackageVersion: 2.0.0\n",
            "manifests/c/Contoso/App/2.0.0/Contoso.App.installer.yaml": "Installers: []\n",
            "manifests/c/Contoso/Tools/Cli/0.1.0/Contoso.Tools.Cli.yaml": "PackageVersion: 0.1.0\n",
        },
    )
    return github


@pytest.fixture
def sleep() -> AsyncMock:
    """Backoff sleep that records waits instead of sleeping."""
    return AsyncMock()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def submission() -> ManifestSubmission:
    """A two-file submission for Contoso.App 3.0.0."""
    return ManifestSubmission(
        package_id="Contoso.App",
        version="3.0.0",
        manifests={
            "Contoso.App": "PackageVersion: 3.0.0\n",
            "Contoso.App.installer": "Installers:\n- Architecture: x64\n",
        },
    )


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_config():
    """Clear the cached config before and after every test."""
    reset_config()
    yield
    reset_config()
