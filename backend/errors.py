"""
Error taxonomy shared by the graph services.

Services raise these; main.py translates them into HTTP responses so the
service layer stays free of FastAPI imports.
"""
from typing import Optional


class GraphServiceError(Exception):
    """Base class for errors that carry an HTTP-equivalent status code."""
    status_code: int = 500

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class BadInputError(GraphServiceError):
    """Malformed upload, invalid CSV row, empty id list, bad query parameters."""
    status_code = 400


class NotFoundError(GraphServiceError):
    status_code = 404


class ConflictError(GraphServiceError):
    """Some of the requested ids matched and some did not; the batch is rejected."""
    status_code = 409


class StoreError(GraphServiceError):
    """Relational or graph engine failure that was not classified as a caller error."""
    status_code = 500


class NamespaceNotFound(Exception):
    """The Neo4j database backing a graph has not been created yet."""

    def __init__(self, namespace: str):
        super().__init__(f"Graph namespace {namespace} does not exist")
        self.namespace = namespace
