from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Runner = Literal["local", "remote"]


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    runner: Runner = "local"
    # Where the metrics document is written once the job finishes, if anywhere.
    metrics_location: str | None = None

    @property
    def is_local_runner(self) -> bool:
        return self.runner == "local"


class RemoteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tracking_uri: str | None = None
    poll_interval_s: float = Field(default=5.0, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return normalized


class WatchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
