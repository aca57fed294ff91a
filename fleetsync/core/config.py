"""
Configuration settings for the fleet console
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Host agent
    agent_host: str = "127.0.0.1"
    agent_port: int = 8787
    agent_base_url: str = ""
    agent_events_url: str = ""
    agent_request_timeout: float = 30.0  # seconds

    # Event channel
    event_reconnect_delay: float = 3.0  # seconds
    event_queue_size: int = 1024

    # Device store
    command_history_limit: int = 20
    progress_clear_delay: float = 2.0  # seconds
    notification_history_limit: int = 100

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Build agent URLs from components unless given explicitly
        if not self.agent_base_url:
            self.agent_base_url = f"http://{self.agent_host}:{self.agent_port}"
        if not self.agent_events_url:
            self.agent_events_url = f"ws://{self.agent_host}:{self.agent_port}/events"


# Global settings instance
settings = Settings()
