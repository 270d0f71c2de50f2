"""
Shared pytest fixtures.

Tests run against a throwaway SQLite database (aiosqlite) in the pytest
tmp_path, so no database server is needed.
"""

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import (
    close_db,
    create_db_and_tables,
    create_engine_from_settings,
    create_session_maker,
)
from app.main import create_app


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a temporary database and upload directory."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        upload_dir=str(tmp_path / "uploads"),
        log_level="WARNING",
        environment="test",
    )


@pytest.fixture
def client(test_settings) -> Generator[TestClient, None, None]:
    """HTTP client running the full application lifespan."""
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db_session(test_settings) -> AsyncGenerator[AsyncSession, None]:
    """A session on a freshly created schema."""
    engine = create_engine_from_settings(test_settings)
    await create_db_and_tables(engine)
    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        yield session
    await close_db(engine)


@pytest.fixture
def create_product(client):
    """Create a product through the API and return its JSON body."""

    def _create(slug: str, **fields) -> dict:
        data = {
            "name": fields.pop("name", slug.replace("-", " ").title()),
            "slug": slug,
            "price": fields.pop("price", "10.00"),
            "category": fields.pop("category", "kitchen"),
        }
        data.update(fields)
        response = client.post("/products", data=data)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
