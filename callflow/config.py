"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("callflow.config")


class Settings(BaseSettings):
    # Agent persona
    agent_name: str = "Alex"
    company_name: str = "Acme Appointments"      # used when a call has no company
    agent_voice: str = "Mark"

    # Append the full state/action listing to the system prompt
    include_state_listing: bool = False

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"LOG_LEVEL {self.log_level!r} is not a logging level.")

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.agent_name.strip():
            warnings.append("AGENT_NAME is empty; the system prompt will not name the agent.")

        return warnings


settings = Settings()
