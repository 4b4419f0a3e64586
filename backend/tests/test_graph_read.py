"""
Tests for filtered graph reads.
"""
import psycopg2
import pytest

import services_graph
from errors import BadInputError, NotFoundError, StoreError
from models import QueryFilter
from services_graph import find_graph_by_id, query_subgraph
from tests.mock_helpers import (
    GRAPH_ID,
    MockDriver,
    MockNeo4jError,
    MockNeo4jRecord,
    MockNode,
    MockRelationship,
)


def subgraph_record():
    cat = MockNode("4:db:1", ["Species"], {"name": "catA"})
    flu = MockNode("4:db:2", ["Disease"], {"name": "flu"})
    rel = MockRelationship(
        "5:db:1", "positive", cat, flu,
        {"score": 0.9, "PMC_ID": "PMC1", "sent_id": 1, "sentence": "catA is associated with flu."},
    )
    return MockNeo4jRecord({"nodes": [cat, flu], "relations": [rel]})


class TestQuerySubgraph:
    def test_nodes_and_relations_are_normalized(self, mock_driver):
        mock_driver.read_record = subgraph_record()

        nodes, relations = query_subgraph(mock_driver, GRAPH_ID, QueryFilter(labels=["Species", "Disease"]))

        assert [(n.id, n.labels, n.properties["name"]) for n in nodes] == [
            ("4:db:1", ["Species"], "catA"),
            ("4:db:2", ["Disease"], "flu"),
        ]
        assert len(relations) == 1
        rel = relations[0]
        assert (rel.type, rel.start, rel.end) == ("positive", "4:db:1", "4:db:2")
        assert rel.properties["PMC_ID"] == "PMC1"

    def test_runs_built_query_in_read_session(self, mock_driver):
        mock_driver.read_record = MockNeo4jRecord({"nodes": [], "relations": []})

        query_subgraph(mock_driver, GRAPH_ID, QueryFilter(node="catA"))

        query, params = mock_driver.read_queries[0]
        assert query.startswith("MATCH p = (n {name: $name})")
        assert params == {"name": "catA"}
        assert all(s.access_mode == "READ" for s in mock_driver.sessions)
        assert all(s.closed for s in mock_driver.sessions)

    def test_no_match_is_empty(self, mock_driver):
        mock_driver.read_record = MockNeo4jRecord({"nodes": [], "relations": []})
        assert query_subgraph(mock_driver, GRAPH_ID) == ([], [])

    def test_missing_record_is_empty(self, mock_driver):
        assert query_subgraph(mock_driver, GRAPH_ID) == ([], [])

    def test_never_written_graph_is_empty_and_not_created(self):
        driver = MockDriver()

        assert query_subgraph(driver, GRAPH_ID) == ([], [])
        assert driver.system_queries == []

    def test_engine_errors_are_classified(self, mock_driver):
        mock_driver.read_error = MockNeo4jError("Neo.ClientError.Statement.SemanticError", "bad pattern")
        with pytest.raises(BadInputError):
            query_subgraph(mock_driver, GRAPH_ID)

        mock_driver.read_error = MockNeo4jError("Neo.DatabaseError.General.UnknownError", "boom")
        with pytest.raises(StoreError):
            query_subgraph(mock_driver, GRAPH_ID)


class TestFindGraphById:
    def test_combines_metadata_and_subgraph(self, mock_driver, sample_graph, monkeypatch):
        monkeypatch.setattr(services_graph, "get_graph", lambda graph_id: sample_graph)
        mock_driver.read_record = subgraph_record()

        detail = find_graph_by_id(mock_driver, GRAPH_ID, QueryFilter())

        assert detail.id == GRAPH_ID
        assert detail.title == "Influenza literature"
        assert len(detail.nodes) == 2
        assert len(detail.relations) == 1

    def test_unknown_graph_skips_neo4j(self, mock_driver, monkeypatch):
        def get_graph(graph_id):
            raise NotFoundError(f"Graph {graph_id} not found")

        monkeypatch.setattr(services_graph, "get_graph", get_graph)

        with pytest.raises(NotFoundError):
            find_graph_by_id(mock_driver, GRAPH_ID)
        assert mock_driver.sessions == []

    def test_metadata_store_failure_is_store_error(self, mock_driver, monkeypatch):
        def get_graph(graph_id):
            raise psycopg2.OperationalError("connection lost")

        monkeypatch.setattr(services_graph, "get_graph", get_graph)

        with pytest.raises(StoreError) as exc_info:
            find_graph_by_id(mock_driver, GRAPH_ID)
        assert GRAPH_ID in exc_info.value.detail
        assert "connection lost" in exc_info.value.detail
        assert mock_driver.sessions == []
