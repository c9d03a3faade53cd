import os
from typing import List, Literal, Optional

import structlog
import tomlkit
from pydantic import BaseModel, Field

log = structlog.get_logger()

CONFIG_FILENAME = "triagegrid.toml"


class GridSettings(BaseModel):
    page_size: int = Field(25, ge=1)
    page_size_options: List[int] = Field(default_factory=lambda: [10, 25, 50, 100])
    default_sort_field: Literal[
        "severity", "status", "cve_id", "pkg_name", "project", "created_at"
    ] = "severity"
    default_sort_order: Literal["asc", "desc"] = "asc"
    search_fields: List[str] = Field(
        default_factory=lambda: ["cve_id", "pkg_name", "title", "project"]
    )


class RefreshSettings(BaseModel):
    enabled: bool = False
    interval_sec: int = Field(60, ge=1)


class ExportSettings(BaseModel):
    csv_quoting: bool = True
    filename_prefix: str = "vulnerabilities"


class Settings(BaseModel):
    grid: GridSettings = Field(default_factory=GridSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)


def default_paths() -> List[str]:
    paths: List[str] = []
    cwd = os.getcwd()
    paths.append(os.path.join(cwd, CONFIG_FILENAME))
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    paths.append(os.path.join(xdg, "triagegrid", CONFIG_FILENAME))
    return paths


def locate_config(explicit: Optional[str] = None) -> Optional[str]:
    """Return the first existing config path, the explicit one taking priority."""
    if explicit:
        return explicit if os.path.exists(explicit) else None
    for p in default_paths():
        if os.path.exists(p):
            return p
    return None


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from TOML, falling back to defaults on any problem.

    Args:
        path: Optional explicit config path

    Returns:
        Settings object
    """
    cfg_path = locate_config(path)
    if not cfg_path:
        return Settings()
    try:
        with open(cfg_path, "r") as f:
            data = tomlkit.parse(f.read()).unwrap()
        return Settings(
            grid=GridSettings(**data.get("grid", {})),
            refresh=RefreshSettings(**data.get("refresh", {})),
            export=ExportSettings(**data.get("export", {})),
        )
    except Exception as e:
        log.error("settings.load_error", path=cfg_path, error=str(e))
        return Settings()


def save_settings(path: Optional[str], s: Settings) -> str:
    cfg_path = path or default_paths()[0]
    parent = os.path.dirname(cfg_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    doc = tomlkit.document()
    doc.add("grid", tomlkit.table())
    doc["grid"]["page_size"] = s.grid.page_size
    doc["grid"]["page_size_options"] = s.grid.page_size_options
    doc["grid"]["default_sort_field"] = s.grid.default_sort_field
    doc["grid"]["default_sort_order"] = s.grid.default_sort_order
    doc["grid"]["search_fields"] = s.grid.search_fields
    doc.add("refresh", tomlkit.table())
    doc["refresh"]["enabled"] = s.refresh.enabled
    doc["refresh"]["interval_sec"] = s.refresh.interval_sec
    doc.add("export", tomlkit.table())
    doc["export"]["csv_quoting"] = s.export.csv_quoting
    doc["export"]["filename_prefix"] = s.export.filename_prefix
    with open(cfg_path, "w") as f:
        f.write(tomlkit.dumps(doc))
    log.info("settings.saved", path=cfg_path)
    return cfg_path
