from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from starlette.requests import Request

from wemadeit.core.config import get_settings


logger = logging.getLogger("wemadeit.settings")

THEMES = ("sand", "ocean", "forest", "graphite", "rose")
Provider = Literal["openai", "anthropic", "ollama"]


def normalize_theme(value: Any) -> str:
    candidate = str(value or "").strip().lower()
    return candidate if candidate in THEMES else "sand"


class UiSettings(BaseModel):
    theme: str = "sand"
    provider: Provider = "openai"
    openai_key: str = ""
    anthropic_key: str = ""
    ollama_base_url: str = "http://localhost:11434"
    model: str = "gpt-4o-mini"
    max_tokens: int = 400
    temperature: float = 0.4
    verbose: bool = False
    use_ansi: bool = True
    auto_summary: bool = True
    ollama_header_timeout_seconds: int = 10
    ollama_overall_timeout_seconds: int = 180
    ollama_max_attempts: int = 5
    ollama_backoff_base_ms: int = 0

    @field_validator("theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value: Any) -> str:
        return normalize_theme(value)

    def public_view(self) -> dict[str, Any]:
        payload = self.model_dump(exclude={"openai_key", "anthropic_key"})
        payload["has_openai_key"] = bool(self.openai_key)
        payload["has_anthropic_key"] = bool(self.anthropic_key)
        return payload


class UiSettingsUpdate(BaseModel):
    """Partial update; unset, blank or non-positive values keep the current setting."""

    theme: str | None = None
    provider: Provider | None = None
    model: str | None = None
    ollama_base_url: str | None = None
    ollama_header_timeout_seconds: int | None = Field(default=None, ge=0)
    ollama_overall_timeout_seconds: int | None = Field(default=None, ge=0)
    ollama_max_attempts: int | None = Field(default=None, ge=0)
    ollama_backoff_base_ms: int | None = Field(default=None, ge=0)
    max_tokens: int | None = None
    temperature: float | None = None
    verbose: bool | None = None
    use_ansi: bool | None = None
    auto_summary: bool | None = None
    openai_key: str | None = None
    anthropic_key: str | None = None

    def changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, str) and not value.strip():
                continue
            if key in {"max_tokens", "temperature"} and value <= 0:
                continue
            changes[key] = value
        return changes


class UiSettingsStore:
    """Process-wide UI settings guarded by one lock.

    Readers get a copy; writers hold the lock while applying and persisting,
    so the file on disk never lags behind what readers observe.
    """

    def __init__(self, path: str | Path, initial: UiSettings | None = None) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._current = initial if initial is not None else UiSettings()

    @classmethod
    def load(cls, path: str | Path) -> UiSettingsStore:
        settings_path = Path(path)
        if not settings_path.exists():
            return cls(settings_path)
        try:
            raw = json.loads(settings_path.read_text(encoding="utf-8"))
            initial = UiSettings.model_validate(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("settings.load_failed", extra={"path": str(settings_path), "error": str(exc)})
            initial = UiSettings()
        return cls(settings_path, initial)

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> UiSettings:
        with self._lock:
            return self._current.model_copy(deep=True)

    def update(self, dto: UiSettingsUpdate) -> UiSettings:
        changes = dto.changes()
        with self._lock:
            updated = UiSettings.model_validate({**self._current.model_dump(), **changes})
            self._persist(updated)
            self._current = updated
            return updated.model_copy(deep=True)

    def _persist(self, settings: UiSettings) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        tmp_path.write_text(json.dumps(settings.model_dump(), indent=2), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)


def get_ui_settings_store(request: Request) -> UiSettingsStore:
    store = getattr(request.app.state, "ui_settings", None)
    if store is None:
        store = UiSettingsStore.load(get_settings().ui_settings_path)
        request.app.state.ui_settings = store
    return store
