"""
Filtered reads of a graph: metadata from Postgres plus the matching subgraph
from the graph's Neo4j namespace.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from neo4j import Driver  # type: ignore[reportMissingImports]
from neo4j.exceptions import DriverError, Neo4jError

from db_neo4j import READ, graph_namespace, open_session
from errors import NamespaceNotFound, StoreError
from models import GraphDetail, GraphNode, GraphRelationship, QueryFilter
from neo4j_utils import classify_neo4j_error
from services_graph_query import build_subgraph_query
from services_graphs import get_graph

logger = logging.getLogger("graph_backend")


def _normalize_node(node: Any) -> GraphNode:
    return GraphNode(
        id=node.element_id,
        labels=sorted(node.labels),
        properties=dict(node.items()),
    )


def _normalize_relationship(rel: Any) -> GraphRelationship:
    return GraphRelationship(
        id=rel.element_id,
        type=rel.type,
        start=rel.start_node.element_id,
        end=rel.end_node.element_id,
        properties=dict(rel.items()),
    )


def query_subgraph(
    driver: Driver,
    graph_id: str,
    query_filter: Optional[QueryFilter] = None,
) -> Tuple[List[GraphNode], List[GraphRelationship]]:
    """Run the filtered read in a READ session. A never-written graph is empty."""
    query, params = build_subgraph_query(query_filter)
    try:
        with open_session(driver, graph_namespace(graph_id), READ) as session:
            record = session.run(query, params).single()
    except NamespaceNotFound:
        return [], []
    except (Neo4jError, DriverError) as e:
        raise classify_neo4j_error(e, context=f"Reading graph {graph_id} failed") from e

    if record is None:
        return [], []
    nodes = [_normalize_node(n) for n in record["nodes"] or []]
    relations = [_normalize_relationship(r) for r in record["relations"] or []]
    return nodes, relations


def find_graph_by_id(
    driver: Driver,
    graph_id: str,
    query_filter: Optional[QueryFilter] = None,
) -> GraphDetail:
    """Graph metadata with the nodes and relationships matching the filter."""
    try:
        graph = get_graph(graph_id)
    except psycopg2.Error as e:
        raise StoreError(f"Loading metadata of graph {graph_id} failed: {e}") from e
    nodes, relations = query_subgraph(driver, graph_id, query_filter)
    logger.debug(f"Graph {graph_id}: {len(nodes)} nodes, {len(relations)} relations")
    payload: Dict[str, Any] = graph.model_dump()
    return GraphDetail(**payload, nodes=nodes, relations=relations)
