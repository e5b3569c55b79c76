"""Alembic helpers used at startup: report the schema revision and upgrade to head."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from app.core.config import settings

logger = logging.getLogger(__name__)

ALEMBIC_VERSION_TABLE = "alembic_version"
# Serializes upgrades when several API replicas boot at once (Postgres only)
UPGRADE_LOCK_ID = 7311042


@dataclass(frozen=True)
class SchemaRevision:
    current: tuple[str, ...]
    heads: tuple[str, ...]

    @property
    def is_current(self) -> bool:
        return set(self.current) == set(self.heads)


class MigrationError(RuntimeError):
    """The schema is still behind head after an upgrade."""


def alembic_config() -> Config:
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    if not alembic_ini.is_file():
        raise FileNotFoundError(f"Alembic config not found at {alembic_ini}")
    config = Config(str(alembic_ini))
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    return config


def schema_revision(engine: Engine) -> SchemaRevision:
    heads = tuple(ScriptDirectory.from_config(alembic_config()).get_heads())
    with engine.connect() as connection:
        if ALEMBIC_VERSION_TABLE not in inspect(connection).get_table_names():
            current: tuple[str, ...] = ()
        else:
            current = tuple(MigrationContext.configure(connection).get_current_heads())
    return SchemaRevision(current=current, heads=heads)


def upgrade_to_head(engine: Engine) -> SchemaRevision:
    """
    Bring the database to the latest revision if it is behind.

    Raises:
        MigrationError: the upgrade ran but the schema is still not at head
    """
    revision = schema_revision(engine)
    if revision.is_current:
        return revision

    logger.info("Upgrading database schema", extra={"from": list(revision.current), "to": list(revision.heads)})
    config = alembic_config()
    if engine.dialect.name != "postgresql":
        command.upgrade(config, "head")
    else:
        with engine.connect() as connection:
            connection.execute(text("SELECT pg_advisory_lock(:id)"), {"id": UPGRADE_LOCK_ID})
            connection.commit()
            try:
                config.attributes["connection"] = connection
                command.upgrade(config, "head")
                connection.commit()
            finally:
                connection.execute(text("SELECT pg_advisory_unlock(:id)"), {"id": UPGRADE_LOCK_ID})
                connection.commit()

    revision = schema_revision(engine)
    if not revision.is_current:
        raise MigrationError("Database migrations did not reach head")
    return revision
