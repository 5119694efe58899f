"""Alembic helpers for bringing the attributor schema up to date."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from attributor.config.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

log = logging.getLogger(__name__)


def _pyproject_options() -> dict[str, str]:
    """Return ``[tool.alembic]`` values from a source checkout, if there is one."""

    try:
        with PYPROJECT_PATH.open("rb") as pyproject_file:
            document = tomllib.load(pyproject_file)
    except FileNotFoundError:
        return {}
    section = document.get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def build_config(*, database_uri: str | None = None) -> Config:
    """Alembic config pointing at the packaged migration scripts.

    The script location always resolves to this package so upgrades work from an
    installed wheel as well as a checkout.
    """

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _pyproject_options().items():
        if key in {"script_location", "prepend_sys_path"}:
            continue
        config.set_main_option(key, value.replace("%", "%%"))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri.replace("%", "%%"))
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""

    if engine is not None:
        config = build_config()
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return
    uri = database_uri or get_database_uri()
    log.info("Upgrading schema at %s", uri)
    command.upgrade(build_config(database_uri=uri), "head")
