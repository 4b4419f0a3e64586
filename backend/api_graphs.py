from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from typing import Any, Dict, List, Optional
import logging

from neo4j import Driver  # type: ignore[reportMissingImports]
from pydantic import ValidationError

from auth import require_admin
from config import CSV_MAX_UPLOAD_BYTES
from db_neo4j import get_neo4j_driver
from errors import BadInputError
from models import (
    Graph,
    GraphCreateRequest,
    GraphDeleteRequest,
    GraphDetail,
    GraphPage,
    GraphUpdateRequest,
    Label,
    QueryFilter,
    Relation,
)
from pagination import PageParams
from services_csv_parser import get_parser
from services_graph import find_graph_by_id
from services_graph_delete import delete_graphs
from services_graph_ingestion import ingest_graph_file
from services_graph_query import normalize_selection
from services_graphs import create_graph, list_graphs, update_graph

router = APIRouter(prefix="/graph", tags=["graph"])
logger = logging.getLogger("graph_backend")


def query_filter_params(
    labels: Optional[List[str]] = Query(None, description="Node labels; repeat for several"),
    relations: Optional[List[str]] = Query(None, description="Relationship types; repeat for several"),
    node: Optional[str] = Query(None, description="Exact name of the start node"),
    pmcid: Optional[str] = Query(None, description="Source document id"),
    sentenceid: Optional[int] = Query(None, description="Sentence index within pmcid"),
    depth: Optional[int] = Query(None, description="Maximum path length"),
) -> QueryFilter:
    """Build the read filter from query parameters, mapping validation failures to 400."""
    try:
        return QueryFilter(
            labels=normalize_selection(labels, Label),
            relations=normalize_selection(relations, Relation),
            node=node or None,
            source_id=pmcid or None,
            sentence_index=sentenceid,
            depth=1 if depth is None else depth,
        )
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise BadInputError(f"Invalid graph query: {messages}") from e


@router.post("", response_model=Graph, status_code=status.HTTP_201_CREATED)
def create_graph_endpoint(payload: GraphCreateRequest, auth: Dict[str, Any] = Depends(require_admin)):
    return create_graph(payload.title, payload.description)


@router.get("", response_model=GraphPage)
def list_visible_graphs_endpoint(params: PageParams = Depends(PageParams.from_query)):
    return list_graphs(page=params.page, size=params.size, search=params.search)


@router.delete("")
def delete_graphs_endpoint(
    payload: GraphDeleteRequest,
    driver: Driver = Depends(get_neo4j_driver),
    auth: Dict[str, Any] = Depends(require_admin),
):
    delete_graphs(driver, payload.ids)
    return {"status": "ok"}


@router.get("/all", response_model=GraphPage)
def list_all_graphs_endpoint(
    params: PageParams = Depends(PageParams.from_query),
    auth: Dict[str, Any] = Depends(require_admin),
):
    return list_graphs(page=params.page, size=params.size, search=params.search, include_non_visible=True)


@router.get("/{graph_id}", response_model=GraphDetail)
def get_graph_endpoint(
    graph_id: str,
    query_filter: QueryFilter = Depends(query_filter_params),
    driver: Driver = Depends(get_neo4j_driver),
):
    return find_graph_by_id(driver, graph_id, query_filter)


@router.post("/{graph_id}")
def upload_graph_file_endpoint(
    graph_id: str,
    file: UploadFile = File(...),
    driver: Driver = Depends(get_neo4j_driver),
    auth: Dict[str, Any] = Depends(require_admin),
):
    """Replace the graph's content with the entries of an uploaded CSV file."""
    parser = get_parser(file.content_type)
    content = file.file.read(CSV_MAX_UPLOAD_BYTES + 1)
    if len(content) > CSV_MAX_UPLOAD_BYTES:
        raise BadInputError(
            f"Upload exceeds the {CSV_MAX_UPLOAD_BYTES} byte limit",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
    if not content.strip():
        raise BadInputError("Uploaded file is empty")

    logger.info(f"[upload] {graph_id}: {file.filename} ({len(content)} bytes)")
    entries = ingest_graph_file(driver, graph_id, content, parser=parser)
    return {"status": "ok", "entries": entries}


@router.put("/{graph_id}", response_model=Graph)
def update_graph_endpoint(
    graph_id: str,
    payload: GraphUpdateRequest,
    auth: Dict[str, Any] = Depends(require_admin),
):
    return update_graph(graph_id, payload.title, payload.description, payload.is_visible)


@router.delete("/{graph_id}")
def delete_graph_endpoint(
    graph_id: str,
    driver: Driver = Depends(get_neo4j_driver),
    auth: Dict[str, Any] = Depends(require_admin),
):
    delete_graphs(driver, [graph_id])
    return {"status": "ok"}
