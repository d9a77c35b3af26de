import os
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from reconciler.config.settings import Settings
from reconciler.database.connection import build_conninfo, close_pool, get_connection, init_pool

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "sql" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "reconciler_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        with psycopg.connect(build_conninfo(test_settings), connect_timeout=3) as conn:
            conn.execute(SCHEMA_PATH.read_text())
            conn.commit()
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to point at one.")
    init_pool(test_settings)
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[str], None, None]:
    """Document IDs to remove, with everything that references them, after the test."""
    document_ids: list[str] = []
    yield document_ids
    if not document_ids:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM payments WHERE document_id = ANY(%s::uuid[])", (document_ids,))
            cur.execute(
                "DELETE FROM payment_sessions WHERE document_id = ANY(%s::uuid[])", (document_ids,)
            )
            cur.execute(
                "DELETE FROM action_logs WHERE entity_id = ANY(%s) "
                "OR metadata->>'document_id' = ANY(%s)",
                (document_ids, document_ids),
            )
            cur.execute(
                "DELETE FROM translation_deliveries WHERE document_id = ANY(%s)", (document_ids,)
            )
            cur.execute("DELETE FROM documents WHERE id = ANY(%s::uuid[])", (document_ids,))
        conn.commit()


@pytest.fixture
def seed_document(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[str],
):  # type: ignore[no-untyped-def]
    """Factory inserting a document row. Returns its ID."""

    def _seed(status: str = "draft", pages: int = 3, file_url: str | None = None) -> str:
        document_id = str(uuid.uuid4())
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO documents (id, user_id, filename, original_filename, status,
                                       file_url, pages, total_cost)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    document_id,
                    str(uuid.uuid4()),
                    f"contract_{document_id[:8]}.pdf",
                    "contract.pdf",
                    status,
                    file_url,
                    pages,
                    "60.00",
                ),
            )
        db_conn.commit()
        integration_cleanup.append(document_id)
        return document_id

    return _seed


@pytest.fixture
def seed_session(db_conn: psycopg.Connection[Any]):  # type: ignore[no-untyped-def]
    """Factory inserting a payment session for a seeded document."""

    def _seed(document_id: str, status: str = "pending", age_minutes: int = 0) -> str:
        session_id = f"cs_test_{uuid.uuid4().hex}"
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO payment_sessions (session_id, document_id, payment_status,
                                              created_at, updated_at)
                VALUES (%s, %s, %s,
                        NOW() - make_interval(mins => %s),
                        NOW() - make_interval(mins => %s))
                """,
                (session_id, document_id, status, age_minutes, age_minutes),
            )
        db_conn.commit()
        return session_id

    return _seed
