"""Configuration loader and validation for bright_mqtt_exporter.

Settings come from an optional YAML file overlaid with environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "BRIGHT_EXPORTER_CONFIG"

DEFAULT_HOST = "192.168.0.50"
DEFAULT_PORT = 1883
DEFAULT_USER = "admin"
DEFAULT_EXPORTER_PORT = 9999
DEFAULT_NAMESPACE = "uk_riviera_monitoring"

# MQTT_HOST is handled separately, it carries host and port.
ENV_FIELDS: dict[str, tuple[str | None, str]] = {
    "MQTT_USER": ("broker", "username"),
    "MQTT_PASS": ("broker", "password"),
    "MQTT_TLS": ("broker", "tls"),
    "MQTT_TOPIC": (None, "topic"),
    "PORT": ("exporter", "port"),
    "METRICS_NAMESPACE": ("exporter", "namespace"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FILE": ("logging", "file"),
}


class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


class BrokerConfig(BaseModel):
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    username: str = DEFAULT_USER
    password: str
    tls: bool = False
    client_id: str = "bright_mqtt_exporter"
    keepalive: int = 60
    connect_attempts: int = Field(5, ge=1)
    connack_timeout: float = Field(10.0, gt=0)


class ExporterConfig(BaseModel):
    port: int = Field(DEFAULT_EXPORTER_PORT, ge=1, le=65535)
    address: str = "0.0.0.0"
    namespace: str = DEFAULT_NAMESPACE


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level '{v}'. Must be one of {allowed}")
        return v_upper


class AppConfig(BaseModel):
    broker: BrokerConfig
    topic: str = Field(min_length=1)
    exporter: ExporterConfig = ExporterConfig()
    logging: LoggingConfig = LoggingConfig()


def split_host(value: str) -> dict:
    """Split ``[tcp://]host[:port]`` into broker fields."""
    for scheme in ("tcp://", "mqtt://"):
        if value.startswith(scheme):
            value = value[len(scheme):]
    host, sep, port = value.rpartition(":")
    if not sep:
        return {"host": value}
    return {"host": host, "port": port}


def _read_file(config_path: Path) -> dict:
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    with config_path.open() as f:
        raw = yaml.safe_load(f)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")
    return raw


def _apply_environment(raw: dict, environ: Mapping[str, str]) -> dict:
    sections = {name: dict(raw.get(name) or {}) for name in ("broker", "exporter", "logging")}
    merged = {**raw, **sections}

    host = environ.get("MQTT_HOST")
    if host:
        sections["broker"].update(split_host(host))

    for env_name, (section, key) in ENV_FIELDS.items():
        value = environ.get(env_name)
        if not value:
            continue
        if section is None:
            merged[key] = value
        else:
            sections[section][key] = value
    return merged


def load_config(config_path: Path | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    if environ is None:
        environ = os.environ
    if config_path is None and environ.get(CONFIG_FILE_ENV):
        config_path = Path(environ[CONFIG_FILE_ENV])

    raw = _read_file(config_path) if config_path is not None else {}
    raw = _apply_environment(raw, environ)

    if not raw["broker"].get("password"):
        raise ConfigError("the MQTT_PASS variable must be set to the connection password")
    if not raw.get("topic"):
        raise ConfigError("the MQTT_TOPIC variable must be set to the topic")

    try:
        return AppConfig(**raw)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
