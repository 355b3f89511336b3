"""
Configuration loading and validation.

Loads notifier configuration from a YAML file. Secrets (SMS gateway key,
application id, origination number) are resolved from environment variables
named in the file and never stored in it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


class AvailabilityConfig(BaseModel):
    base_url: str = "https://findvax-data.s3.amazonaws.com"
    request_timeout_seconds: int = 30


class StoreConfig(BaseModel):
    db_path: str = "./data/notify.db"


class MessagingConfig(BaseModel):
    url: str = "http://localhost:8081/v1/apps/{application_id}/messages"
    api_key_env: str = "FINDVAX_SMS_API_KEY"
    application_id_env: str = "FINDVAX_APPLICATION_ID"
    origination_number_env: str = "FINDVAX_ORIGINATION_NUMBER"
    message_type: Literal["TRANSACTIONAL", "PROMOTIONAL"] = "TRANSACTIONAL"
    request_timeout_seconds: int = 30

    @property
    def api_key(self) -> str | None:
        return os.environ.get(self.api_key_env)

    @property
    def application_id(self) -> str:
        return os.environ.get(self.application_id_env, "")

    @property
    def origination_number(self) -> str:
        return os.environ.get(self.origination_number_env, "")


class NotificationsConfig(BaseModel):
    default_language: str = "en"

    @field_validator("default_language")
    @classmethod
    def two_char_language(cls, v: str) -> str:
        v = v.strip().lower()
        if len(v) != 2:
            raise ValueError("default_language must be a two character language id")
        return v


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class MetricsConfig(BaseModel):
    enabled: bool = True


class NotifyConfig(BaseModel):
    availability: AvailabilityConfig = Field(default_factory=AvailabilityConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    messaging: MessagingConfig = Field(default_factory=MessagingConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def load_config(path: str | Path) -> NotifyConfig:
    """Load and validate notifier configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return NotifyConfig.model_validate(raw)
