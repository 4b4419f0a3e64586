"""
Cross-store delete of graphs: Postgres metadata rows, then Neo4j namespaces.

The two engines share no transaction manager. The Postgres delete is
all-or-nothing and is the point of no return; namespace destruction follows
and any failure there is reported, never hidden.
"""
import logging
from typing import Dict, List

import psycopg2
from neo4j import Driver  # type: ignore[reportMissingImports]

from db_neo4j import destroy_namespace, graph_namespace
from db_postgres import db_transaction
from errors import BadInputError, ConflictError, NotFoundError, StoreError
from neo4j_utils import is_database_not_found
from services_graphs import delete_graph_rows

logger = logging.getLogger("graph_backend")


def _check_ids(graph_ids: List[str]) -> List[str]:
    ids = list(graph_ids or [])
    if not ids:
        raise BadInputError("At least one graph id is required")
    duplicates = sorted({gid for gid in ids if ids.count(gid) > 1})
    if duplicates:
        raise BadInputError(f"Graph ids must be unique; repeated: {', '.join(duplicates)}")
    return ids


def delete_graph_metadata(graph_ids: List[str]) -> None:
    """Delete every metadata row or none of them."""
    try:
        with db_transaction() as cur:
            deleted = delete_graph_rows(cur, graph_ids)
            if deleted < len(graph_ids):
                # Raising here rolls the delete back
                if len(graph_ids) == 1:
                    raise NotFoundError(f"Graph {graph_ids[0]} not found")
                raise ConflictError(
                    f"Only {deleted} of {len(graph_ids)} graphs exist; none were deleted"
                )
    except psycopg2.Error as e:
        raise StoreError(f"Deleting graph metadata failed: {e}") from e
    logger.info(f"[delete] Removed metadata for {len(graph_ids)} graph(s): {', '.join(graph_ids)}")


def destroy_graph_namespaces(driver: Driver, graph_ids: List[str]) -> None:
    """
    Destroy each graph's namespace independently.

    An already absent namespace counts as destroyed. Every id is attempted;
    failures are collected and raised together as one StoreError.
    """
    failures: Dict[str, str] = {}
    for graph_id in graph_ids:
        try:
            destroy_namespace(driver, graph_namespace(graph_id))
        except Exception as e:
            if is_database_not_found(e):
                continue
            logger.error(f"[delete] Namespace for graph {graph_id} could not be destroyed: {e}")
            failures[graph_id] = str(e)

    if failures:
        details = "; ".join(f"{gid}: {msg}" for gid, msg in failures.items())
        raise StoreError(
            "Graph metadata was deleted but these namespaces still need to be destroyed: " + details
        )


def delete_graphs(driver: Driver, graph_ids: List[str]) -> None:
    """
    Delete graphs from both stores.

    Raises BadInputError for an empty or repeating id list (no store is touched),
    NotFoundError when a single requested id does not exist, ConflictError
    when only some of several ids exist, StoreError when a namespace could
    not be destroyed after the metadata was already gone.
    """
    ids = _check_ids(graph_ids)

    delete_graph_metadata(ids)
    destroy_graph_namespaces(driver, ids)
    logger.info(f"[delete] Destroyed namespaces for {len(ids)} graph(s)")
