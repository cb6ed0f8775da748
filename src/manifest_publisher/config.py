"""Publisher settings loaded with pydantic-settings.

Covers the upstream repository coordinates, the manifest layout, how
submissions are staged (fork or direct), branch creation retries, GitHub
credentials (token or App key) and logging. Tokens and keys are SecretStr so
they never show up in reprs or logs. The loaded object is frozen.

References:
- Pydantic Settings: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

import logging
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("manifest_publisher.config")

__all__ = [
    "PublisherConfig",
    "get_config",
    "reset_config",
]


class PublisherConfig(BaseSettings):
    """Configuration for the manifest publisher.

    Loads from (in order of precedence):
    1. Environment variables (highest priority)
    2. .env file in the working directory
    3. Default values (lowest priority)

    Attributes:
        github_token: Token used for all GitHub calls (PAT or installation token)
        github_api_url: GitHub REST API base URL
        upstream_owner: Owner of the shared manifest repository
        upstream_repo: Name of the shared manifest repository
        manifest_root: Top-level manifest directory in the repository
        pr_template_path: Path of the pull request description template
        submit_to_fork: Stage submission branches on the caller's fork
        branch_create_attempts: Retries after the first branch creation attempt
        github_app_id: GitHub App id, for installation token auth
        github_app_private_key: GitHub App private key (PEM)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json for production, text for development)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    github_token: SecretStr = Field(
        default=SecretStr(""),
        description="GitHub token (fine-grained PAT or installation token)",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL (GitHub Enterprise: https://host/api/v3)",
    )

    upstream_owner: str = Field(
        default="microsoft",
        description="Owner of the upstream manifest repository",
    )

    upstream_repo: str = Field(
        default="winget-pkgs",
        description="Name of the upstream manifest repository",
    )

    manifest_root: str = Field(
        default="manifests",
        description="Top-level manifest directory",
    )

    pr_template_path: str = Field(
        default=".github/PULL_REQUEST_TEMPLATE.md",
        description="Upstream path of the pull request description template",
    )

    submit_to_fork: bool = Field(
        default=True,
        description="Create submission branches on a fork instead of upstream",
    )

    branch_create_attempts: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first branch creation attempt (linear backoff 1s, 2s, ...)",
    )

    github_app_id: int | None = Field(
        default=None,
        gt=0,
        description="GitHub App id for installation token authentication",
    )

    github_app_private_key: SecretStr | None = Field(
        default=None,
        description="GitHub App private key in PEM format",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: str = Field(
        default="json",
        description="Log output format: json or text",
    )

    @field_validator("upstream_owner", "upstream_repo")
    @classmethod
    def validate_repo_part(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v:
            raise ValueError(f"must be a single non-empty path segment, got {v!r}")
        return v

    @field_validator("manifest_root")
    @classmethod
    def validate_manifest_root(cls, v: str) -> str:
        v = v.strip().strip("/")
        if not v:
            raise ValueError("manifest_root must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {sorted(valid)}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    @model_validator(mode="after")
    def validate_app_credentials(self) -> "PublisherConfig":
        """GitHub App id and private key are only meaningful together."""
        has_id = self.github_app_id is not None
        has_key = (
            self.github_app_private_key is not None
            and bool(self.github_app_private_key.get_secret_value().strip())
        )
        if has_id != has_key:
            raise ValueError(
                "github_app_id and github_app_private_key must be set together"
            )
        return self

    @property
    def upstream(self) -> str:
        """Upstream repository in owner/name format."""
        return f"{self.upstream_owner}/{self.upstream_repo}"

    @property
    def uses_app_auth(self) -> bool:
        return self.github_app_id is not None


# Module-level singleton with lru_cache for thread-safety
@lru_cache(maxsize=1)
def get_config() -> PublisherConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return PublisherConfig()


def reset_config() -> None:
    """Reset configuration singleton for testing.

    Warning:
        Only use in test code. Production code should not reset config.
    """
    get_config.cache_clear()
