import pytest
from sqlalchemy import inspect, text

from devflow_api.config import DatabaseSettings
from devflow_api.database import build_engine, connect, init_schema, ping, transaction
from devflow_api.errors import DatabaseError


def test_schema_creates_every_table(engine):
    names = set(inspect(engine).get_table_names())

    assert {
        "projects",
        "prd_documents",
        "user_flows",
        "rfc_documents",
        "epics",
        "tasks",
        "story_user_flows",
        "coding_sessions",
    } <= names


def test_init_schema_is_repeatable(engine):
    init_schema(engine)

    assert ping(engine) is True


def test_memory_engine_shares_one_database():
    engine = build_engine(DatabaseSettings(url="sqlite://"))
    init_schema(engine)

    with connect(engine) as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM projects")).scalar_one()

    assert count == 0


def test_query_errors_become_database_errors(engine):
    with pytest.raises(DatabaseError) as exc_info:
        with connect(engine) as conn:
            conn.execute(text("SELECT * FROM no_such_table"))

    assert "no_such_table" in str(exc_info.value)


def test_failed_write_rolls_back(engine):
    with pytest.raises(DatabaseError):
        with transaction(engine) as conn:
            conn.execute(
                text("INSERT INTO projects (id, name, base_path, created_at, updated_at) "
                     "VALUES ('p1', 'Demo', '/srv', '2024-01-01', '2024-01-01')")
            )
            conn.execute(text("INSERT INTO no_such_table VALUES (1)"))

    with connect(engine) as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM projects")).scalar_one() == 0
