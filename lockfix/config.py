"""
Runtime configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from LOCKFIX_* environment variables or a .env file.
    Command-line flags are passed as init kwargs and take precedence.
    """
    registry: str = "https://registry.npmjs.org/"
    dry_run: bool = False
    global_mode: bool = False

    # Seconds to wait for the audit endpoint
    audit_timeout: float = 45.0

    npm_command: str = "npm"

    model_config = SettingsConfigDict(
        env_prefix="LOCKFIX_",
        env_file=".env",
        extra="ignore",
    )
