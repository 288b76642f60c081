"""Integration fixtures: file-backed SQLite schema per test."""

from pathlib import Path

import pytest

from opme_core.infrastructure.database.session import create_engine, create_schema, create_session_factory


@pytest.fixture
async def session_factory(tmp_path: Path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    await create_schema(engine)
    yield create_session_factory(engine)
    await engine.dispose()
