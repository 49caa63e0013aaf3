from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

load_dotenv()  # Pick up a local .env if there is one


class Config(BaseSettings):
    """Server and client settings, read from the environment.

    Credentials have no defaults: when AUTH_USER or AUTH_PASS is unset
    nobody can log in.
    """

    data_dir: Path = Field(default_factory=lambda: Path.cwd() / 'data')
    auth_user: Optional[str] = None
    auth_pass: Optional[str] = None
    auth_name: str = 'Pascal'
    secret_key: Optional[str] = None
    session_lifetime_hours: int = 720
    host: str = '0.0.0.0'
    port: int = 5000
    log_level: str = 'INFO'
    log_dir: Optional[Path] = None
    server_url: str = Field(default='http://localhost:5000', validation_alias='PERSONAL_LOG_URL')

    model_config = SettingsConfigDict(
        env_file='.env',
        env_ignore_empty=True,
        extra='ignore',
        frozen=True,
        populate_by_name=True,
    )

    @field_validator('log_level')
    @classmethod
    def _upper_level(cls, value):
        return value.upper()

    @property
    def entries_file(self):
        return self.data_dir / 'entries.json'

    @property
    def media_dir(self):
        return self.data_dir / 'media'

    @property
    def session_lifetime(self):
        return timedelta(hours=self.session_lifetime_hours)

    @classmethod
    def from_env(cls):
        try:
            return cls()
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
