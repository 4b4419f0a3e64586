"""
Neo4j driver and per-graph session management.

Every graph owns an isolated Neo4j database (its "namespace") named after the
graph id. Write sessions create the database on first use; reads never do.
"""
import logging
import re
from contextlib import contextmanager
from typing import Iterator, Optional

from neo4j import GraphDatabase, READ_ACCESS, WRITE_ACCESS, Driver, Session  # type: ignore[reportMissingImports]

from config import NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD, NEO4J_SYSTEM_DATABASE
from errors import BadInputError, NamespaceNotFound
from neo4j_utils import is_database_not_found

logger = logging.getLogger("graph_backend")

READ = "READ"
WRITE = "WRITE"

# Neo4j database naming rules: starts with a letter, 3-63 chars
_NAMESPACE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9.\-]{2,62}$")

# Lazy driver initialization - only create when first needed
_driver: Optional[Driver] = None


def _get_driver() -> Driver:
    """Get or create the Neo4j driver, with lazy validation."""
    global _driver
    if _driver is None:
        if not NEO4J_PASSWORD:
            raise ValueError(
                "NEO4J_PASSWORD environment variable is required. "
                "Please set it in your .env.local file (see .env.example for reference)."
            )
        _driver = GraphDatabase.driver(
            NEO4J_URI,
            auth=(NEO4J_USER, NEO4J_PASSWORD),
            max_connection_lifetime=3600,  # 1 hour
            max_connection_pool_size=50,
            connection_acquisition_timeout=30,
            keep_alive=True,
        )
        logger.info(f"[db_neo4j] Driver created for {NEO4J_URI}")
    return _driver


def get_neo4j_driver() -> Driver:
    """FastAPI dependency that returns the shared, pooled Neo4j driver."""
    return _get_driver()


def close_driver() -> None:
    global _driver
    if _driver is not None:
        _driver.close()
        _driver = None


def graph_namespace(graph_id: str) -> str:
    """Database name backing a graph. Neo4j normalizes database names to lowercase."""
    if not graph_id or not _NAMESPACE_RE.match(graph_id):
        raise BadInputError(f"Invalid graph id: {graph_id!r}")
    return graph_id.lower()


def create_namespace(driver: Driver, namespace: str) -> None:
    with driver.session(database=NEO4J_SYSTEM_DATABASE) as session:
        session.run("CREATE DATABASE $name IF NOT EXISTS WAIT", name=namespace).consume()
    logger.info(f"[db_neo4j] Created graph namespace {namespace}")


def destroy_namespace(driver: Driver, namespace: str) -> None:
    """Drop a graph's database. Dropping an absent database is a no-op."""
    with driver.session(database=NEO4J_SYSTEM_DATABASE) as session:
        session.run("DROP DATABASE $name IF EXISTS DESTROY DATA WAIT", name=namespace).consume()
    logger.info(f"[db_neo4j] Destroyed graph namespace {namespace}")


def _ping(session: Session) -> None:
    session.run("RETURN 1").consume()


@contextmanager
def open_session(driver: Driver, namespace: str, mode: str = READ) -> Iterator[Session]:
    """
    Yield a session bound to ``namespace`` and always close it.

    WRITE sessions lazily create a missing namespace. READ sessions raise
    NamespaceNotFound instead.
    """
    access_mode = WRITE_ACCESS if mode == WRITE else READ_ACCESS
    session = driver.session(database=namespace, default_access_mode=access_mode)
    try:
        try:
            _ping(session)
        except Exception as e:
            if not is_database_not_found(e):
                raise
            session.close()
            if mode != WRITE:
                raise NamespaceNotFound(namespace) from e
            create_namespace(driver, namespace)
            session = driver.session(database=namespace, default_access_mode=access_mode)
        yield session
    finally:
        session.close()
