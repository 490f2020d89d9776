from pathlib import Path

from sqlalchemy import create_engine, inspect

from satsession.database import upgrade_db


def test_migrations_create_session_tables(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    upgrade_db(url)

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert {"kv_entries", "attempts", "attempt_answers", "alembic_version"} <= tables
        columns = {column["name"] for column in inspector.get_columns("attempts")}
        assert {"id", "test_id", "client_id", "coins_earned", "finished_at"} <= columns
    finally:
        engine.dispose()


def test_migrations_are_repeatable(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'twice.db'}"
    upgrade_db(url)
    upgrade_db(url)
