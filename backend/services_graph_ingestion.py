"""
Upload coordinator: replaces the content of a graph's namespace with the
entries of an uploaded file, inside one Neo4j transaction.

CHECK_EXISTS -> OPEN_SESSION -> BEGIN_TX -> WIPE_PRIOR -> STREAM_AND_MERGE -> COMMIT
Any failure after BEGIN_TX rolls back, so the namespace is either fully
reloaded or left exactly as it was.
"""
import logging

import psycopg2
from neo4j import Driver  # type: ignore[reportMissingImports]
from neo4j.exceptions import DriverError, Neo4jError

from db_neo4j import WRITE, graph_namespace, open_session
from errors import GraphServiceError, NotFoundError, StoreError
from neo4j_utils import classify_neo4j_error
from services_csv_parser import EntryParser, parse_csv_entries
from services_graph_query import WIPE_GRAPH_QUERY, merge_statements
from services_graphs import graph_exists

logger = logging.getLogger("graph_backend")


def _rollback_quietly(tx, graph_id: str) -> None:
    # The original error is what the caller needs to see
    try:
        if not tx.closed():
            tx.rollback()
        logger.warning(f"[ingest] {graph_id}: transaction rolled back")
    except (Neo4jError, DriverError) as e:
        logger.error(f"[ingest] {graph_id}: rollback failed: {e}")


def ingest_graph_file(
    driver: Driver,
    graph_id: str,
    content: bytes,
    parser: EntryParser = parse_csv_entries,
) -> int:
    """
    Replace the graph's nodes and relationships with the parsed upload.

    Returns the number of entries merged. Raises NotFoundError when the graph
    has no metadata row (Neo4j is not touched), BadInputError for a malformed
    upload or a rejected statement, StoreError for other store failures.
    """
    try:
        exists = graph_exists(graph_id)
    except psycopg2.Error as e:
        raise StoreError(f"Looking up graph {graph_id} before upload failed: {e}") from e
    if not exists:
        raise NotFoundError(f"Graph {graph_id} not found")

    namespace = graph_namespace(graph_id)
    merged = 0
    logger.info(f"[ingest] {graph_id}: starting upload into namespace {namespace}")
    try:
        with open_session(driver, namespace, WRITE) as session:
            with session.begin_transaction() as tx:
                try:
                    tx.run(WIPE_GRAPH_QUERY).consume()
                    for query, params in merge_statements(parser(content)):
                        tx.run(query, params).consume()
                        merged += 1
                    tx.commit()
                except BaseException:
                    _rollback_quietly(tx, graph_id)
                    raise
    except GraphServiceError:
        raise
    except (Neo4jError, DriverError) as e:
        raise classify_neo4j_error(e, context=f"Upload into graph {graph_id} failed") from e

    logger.info(f"[ingest] {graph_id}: committed {merged} entries")
    return merged
