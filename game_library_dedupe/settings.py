from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .dedupe import DEFAULT_PRIORITY
from .models import Store
from .utils.utilities import load_yaml


def resolve_path(raw: str | None) -> Path | None:
    """Expand `~` and a Windows-style `%AppData%` prefix; blank values become None."""
    s = str(raw or "").strip()
    if not s:
        return None
    lower = s.lower()
    idx = lower.find("%appdata%")
    if idx != -1:
        appdata = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        s = s[:idx] + appdata + s[idx + len("%appdata%") :]
    return Path(os.path.expanduser(s))


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Expected a boolean, got {raw!r}")


@dataclass(frozen=True)
class IgdbSettings:
    client_id: str = ""
    client_secret: str = ""
    enabled: bool = True

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.client_id.strip()) and bool(self.client_secret.strip())

    @staticmethod
    def from_dict(raw: Any) -> IgdbSettings:
        if not isinstance(raw, dict):
            return IgdbSettings()
        return IgdbSettings(
            client_id=str(raw.get("client_id") or ""),
            client_secret=str(raw.get("client_secret") or ""),
            enabled=_as_bool(raw.get("enabled"), True),
        )


@dataclass(frozen=True)
class AppSettings:
    heroic_config_path: Path | None = None
    legendary_library_path: Path | None = None
    gog_library_path: Path | None = None
    nile_library_path: Path | None = None
    priority: tuple[Store, ...] = DEFAULT_PRIORITY
    dry_run: bool = True
    prefer_enhanced_editions: bool = True
    igdb: IgdbSettings = field(default_factory=IgdbSettings)

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> AppSettings:
        priority_raw = raw.get("priority") or []
        if isinstance(priority_raw, str):
            priority_raw = [p for p in priority_raw.split(",") if p.strip()]
        priority = tuple(Store.parse(p) for p in priority_raw) or DEFAULT_PRIORITY
        return AppSettings(
            heroic_config_path=resolve_path(raw.get("heroic_config_path")),
            legendary_library_path=resolve_path(raw.get("legendary_library_path")),
            gog_library_path=resolve_path(raw.get("gog_library_path")),
            nile_library_path=resolve_path(raw.get("nile_library_path")),
            priority=priority,
            dry_run=_as_bool(raw.get("dry_run"), True),
            prefer_enhanced_editions=_as_bool(raw.get("prefer_enhanced_editions"), True),
            igdb=IgdbSettings.from_dict(raw.get("igdb")),
        )

    def validate(self) -> list[str]:
        """Return human-readable problems; an empty list means the settings are usable."""
        errors: list[str] = []
        if self.heroic_config_path is None:
            errors.append("heroic_config_path is not configured")
        if not any((self.legendary_library_path, self.gog_library_path, self.nile_library_path)):
            errors.append(
                "No library paths configured. Set at least one of: "
                "legendary_library_path, gog_library_path, nile_library_path"
            )
        return errors


def load_settings(path: str | Path) -> AppSettings:
    return AppSettings.from_dict(load_yaml(path))
