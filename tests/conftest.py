from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from cohortmigrate.adapters.sqlalchemy import start_mappers
from cohortmigrate.adapters.sqlalchemy.migrations import upgrade_head
from cohortmigrate.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from tests.helpers.stores import InMemoryStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MIGRATION_ENABLED",
        "MIGRATION_COHORT",
        "MIGRATION_SOURCE_FILE",
        "MIGRATION_TEMP_PASSWORD",
        "MIGRATION_SAMPLE_SIZE",
        "MIGRATION_BILLING_COLUMN",
        "MIGRATION_DELIMITER",
        "MIGRATION_ALLOWED_ACTORS",
        "MIGRATION_ACTOR",
        "MIGRATION_CONFIRMATION_PHRASE",
        "MIGRATION_LOCK_BACKEND",
        "MIGRATION_LOCK_TTL_SECONDS",
        "MIGRATION_QUARANTINED_OPERATIONS",
        "COHORTMIGRATE_DATA_DIR",
        "USER_EMAIL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()
