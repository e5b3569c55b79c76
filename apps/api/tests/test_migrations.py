"""The alembic baseline builds the same schema as the ORM models."""
from sqlalchemy import create_engine, inspect

from app.core.config import settings
from app.core.migrations import schema_revision, upgrade_to_head
from app.db.base import Base


def test_upgrade_to_head_creates_every_table(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'schema.db'}"
    monkeypatch.setattr(settings, "DATABASE_URL", url)
    engine = create_engine(url)

    assert schema_revision(engine).current == ()
    revision = upgrade_to_head(engine)
    assert revision.is_current
    assert revision.current == ("0001_baseline",)

    inspector = inspect(engine)
    tables = set(inspector.get_table_names()) - {"alembic_version"}
    assert tables == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        migrated = {c["name"] for c in inspector.get_columns(name)}
        assert migrated == {c.name for c in table.columns}, name

    # Already at head: nothing to do
    assert upgrade_to_head(engine).current == ("0001_baseline",)
    engine.dispose()
