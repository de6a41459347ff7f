"""Configuration management for autoremedy."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """autoremedy configuration settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # GitHub Configuration
    github_token: Optional[str] = Field(
        default=None,
        description="GitHub token with repo and security_events scope"
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )
    github_api_version: str = Field(
        default="2022-11-28",
        description="Value of the X-GitHub-Api-Version header"
    )
    user_agent: str = Field(
        default="autoremedy/0.3.0",
        description="User-Agent sent with every request"
    )
    security_update_path: str = Field(
        default="/repos/{owner}/{repo}/dependabot/security-updates",
        description=(
            "Endpoint of the remote security update capability. GitHub has no "
            "public endpoint for this, so it must be configured to point at one; "
            "with the default every task ends skipped against api.github.com"
        )
    )
    
    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json", 
        description="Log format: json, console"
    )
    
    # Remote call behaviour
    request_timeout: float = Field(
        default=30,
        description="Per-request timeout in seconds"
    )
    retry_attempts: int = Field(
        default=4,
        ge=1,
        description="Attempts for a call failing with a rate limit or transient error"
    )
    retry_min_wait: float = Field(
        default=1,
        ge=0,
        description="Minimum backoff between retries in seconds"
    )
    retry_max_wait: float = Field(
        default=30,
        ge=0,
        description="Maximum backoff between retries in seconds"
    )
    retry_after_max_wait: float = Field(
        default=120,
        ge=0,
        description="Longest Retry-After delay honoured before a rate-limited retry"
    )
    
    # Pipeline Configuration
    alert_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Alerts requested per page"
    )
    alert_state: str = Field(
        default="open",
        description="Alert state filter sent to the alerts endpoint"
    )
    branch_prefix: str = Field(
        default="security-fix",
        description="First path segment of remediation branch names"
    )
    max_concurrent_tasks: int = Field(
        default=1,
        ge=1,
        description="Maximum remediation tasks executed concurrently"
    )
    
    # Security Settings
    dry_run_default: bool = Field(
        default=True, 
        description="Default to dry-run mode for safety"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
