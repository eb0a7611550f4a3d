"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError


class StoreConfig(BaseModel):
    data_dir: str | None = None
    probe_ttl_seconds: float | None = None
    provisioned: dict[str, bool] | None = None


class ScreeningSettings(BaseModel):
    issue_penalty: float | None = None
    completeness_bonus: float | None = None
    default_completeness_fields: list[str] | None = None
    red_flag_terms: list[str] | None = None
    senior_min_experience_years: float | None = None


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    screening: ScreeningSettings = Field(default_factory=ScreeningSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    audit_log: str | None = None

    def to_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        store_settings = self.store.model_dump(exclude_none=True)
        if store_settings:
            settings["store"] = store_settings
        screening_settings = self.screening.model_dump(exclude_none=True)
        if screening_settings:
            settings["screening"] = screening_settings
        if self.audit_log:
            settings["audit_log"] = self.audit_log
        return settings


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
