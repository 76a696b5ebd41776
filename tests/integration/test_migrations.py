"""Test Alembic migrations: upgrade, downgrade and structural checks.

Runs against a throwaway SQLite file through the async driver, the same way
the application connects.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

pytestmark = [pytest.mark.integration]

ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "..", "..", "alembic.ini")

EXPECTED_TABLES = {
    "users",
    "roles",
    "permissions",
    "user_roles",
    "user_permissions",
    "role_permissions",
}


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "migrations.sqlite"


@pytest.fixture
def alembic_cfg(db_path) -> Config:
    cfg = Config(ALEMBIC_INI)
    cfg.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    return cfg


@pytest.fixture
def inspector_for(db_path):
    engines = []

    def _inspect():
        engine = create_engine(f"sqlite:///{db_path}")
        engines.append(engine)
        return inspect(engine)

    yield _inspect
    for engine in engines:
        engine.dispose()


class TestMigrations:

    def test_upgrade_creates_tables(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")

        tables = set(inspector_for().get_table_names())
        assert EXPECTED_TABLES <= tables
        assert "alembic_version" in tables

    @pytest.mark.parametrize("table,columns", [
        ("user_roles", ["user_id", "role_id"]),
        ("user_permissions", ["user_id", "permission_id"]),
        ("role_permissions", ["role_id", "permission_id"]),
    ])
    def test_edge_uniqueness(self, alembic_cfg, inspector_for, table, columns):
        command.upgrade(alembic_cfg, "head")

        constraints = inspector_for().get_unique_constraints(table)
        assert columns in [c["column_names"] for c in constraints]

    def test_grant_columns(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")

        columns = {c["name"] for c in inspector_for().get_columns("user_roles")}
        assert {"id", "user_id", "role_id", "assigned_by", "assigned_at"} <= columns

    def test_downgrade_drops_tables(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")

        tables = set(inspector_for().get_table_names())
        assert not (EXPECTED_TABLES & tables)
