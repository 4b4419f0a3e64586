"""
Graph metadata stored in Postgres (title, description, visibility, timestamps).

A row here is what makes a graph id valid; the Neo4j namespace of the same
id must never outlive it.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from db_postgres import execute_query
from errors import NotFoundError
from models import Graph, GraphPage
from pagination import page_count

logger = logging.getLogger("graph_backend")

_GRAPH_COLUMNS = "id, title, description, is_visible, created_at, updated_at"


def generate_graph_id() -> str:
    """'G' followed by 31 hex chars of a UUID4; also a valid Neo4j database name."""
    return "G" + uuid.uuid4().hex[1:]


def _to_graph(row: Dict[str, Any]) -> Graph:
    return Graph(**row)


def create_graph(title: str, description: Optional[str] = None) -> Graph:
    graph_id = generate_graph_id()
    rows = execute_query(
        f"""
        INSERT INTO graphs (id, title, description)
        VALUES (%s, %s, %s)
        RETURNING {_GRAPH_COLUMNS}
        """,
        (graph_id, title, description),
        commit=True,
    )
    logger.info(f"Graph created: {graph_id}")
    return _to_graph(rows[0])


def find_graph(graph_id: str) -> Optional[Graph]:
    rows = execute_query(f"SELECT {_GRAPH_COLUMNS} FROM graphs WHERE id = %s", (graph_id,))
    return _to_graph(rows[0]) if rows else None


def get_graph(graph_id: str) -> Graph:
    graph = find_graph(graph_id)
    if graph is None:
        raise NotFoundError(f"Graph {graph_id} not found")
    return graph


def graph_exists(graph_id: str) -> bool:
    rows = execute_query("SELECT EXISTS(SELECT 1 FROM graphs WHERE id = %s) AS found", (graph_id,))
    return bool(rows and rows[0]["found"])


def list_graphs(
    page: int = 1,
    size: int = 10,
    search: Optional[str] = None,
    include_non_visible: bool = False,
) -> GraphPage:
    """Newest-first page of graphs, optionally filtered by a title substring."""
    where: List[str] = []
    params: List[Any] = []
    if not include_non_visible:
        where.append("is_visible = TRUE")
    if search:
        where.append("title ILIKE %s")
        params.append(f"%{search}%")
    where_clause = f"WHERE {' AND '.join(where)}" if where else ""

    count_rows = execute_query(f"SELECT COUNT(*) AS count FROM graphs {where_clause}", tuple(params))
    count = int(count_rows[0]["count"]) if count_rows else 0

    rows = execute_query(
        f"""
        SELECT {_GRAPH_COLUMNS} FROM graphs
        {where_clause}
        ORDER BY created_at DESC, id
        LIMIT %s OFFSET %s
        """,
        tuple(params) + (size, (page - 1) * size),
    )
    return GraphPage(
        items=[_to_graph(r) for r in rows],
        pages=page_count(count, size),
        size=size,
        count=count,
    )


def update_graph(
    graph_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    is_visible: Optional[bool] = None,
) -> Graph:
    assignments: List[str] = []
    params: List[Any] = []
    for column, value in (("title", title), ("description", description), ("is_visible", is_visible)):
        if value is not None:
            assignments.append(f"{column} = %s")
            params.append(value)
    if not assignments:
        # Nothing to change; still report unknown ids
        return get_graph(graph_id)

    assignments.append("updated_at = NOW()")
    rows = execute_query(
        f"""
        UPDATE graphs SET {', '.join(assignments)}
        WHERE id = %s
        RETURNING {_GRAPH_COLUMNS}
        """,
        tuple(params) + (graph_id,),
        commit=True,
    )
    if not rows:
        raise NotFoundError(f"Graph {graph_id} not found")
    logger.info(f"Graph updated: {graph_id}")
    return _to_graph(rows[0])


def delete_graph_rows(cur, graph_ids: List[str]) -> int:
    """Delete metadata rows inside the caller's transaction; returns the affected count."""
    cur.execute("DELETE FROM graphs WHERE id = ANY(%s)", (list(graph_ids),))
    return cur.rowcount
