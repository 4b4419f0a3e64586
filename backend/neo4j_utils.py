"""
Helpers for interpreting Neo4j driver errors.
"""

import logging
from typing import Optional

from neo4j.exceptions import Neo4jError

from errors import BadInputError, GraphServiceError, StoreError

logger = logging.getLogger("graph_backend")

DATABASE_NOT_FOUND = "Neo.ClientError.Database.DatabaseNotFound"

# Statement-level client errors caused by what the caller sent us
BAD_STATEMENT_CODES = frozenset({
    "Neo.ClientError.Statement.ParameterMissing",
    "Neo.ClientError.Statement.SemanticError",
})


def neo4j_error_code(exc: BaseException) -> Optional[str]:
    """Return the Neo4j status code of an exception, if it has one."""
    return getattr(exc, "code", None) if isinstance(exc, Neo4jError) else None


def is_database_not_found(exc: BaseException) -> bool:
    return neo4j_error_code(exc) == DATABASE_NOT_FOUND


def classify_neo4j_error(exc: BaseException, context: str = "") -> GraphServiceError:
    """
    Map a driver exception onto the service error taxonomy.

    ParameterMissing / SemanticError become BadInputError; everything else is
    a StoreError. The caller is expected to raise the result ``from exc``.
    """
    if isinstance(exc, GraphServiceError):
        return exc

    code = neo4j_error_code(exc)
    message = getattr(exc, "message", None) or str(exc)
    prefix = f"{context}: " if context else ""

    if code in BAD_STATEMENT_CODES:
        logger.warning(f"Rejected graph statement ({code}): {message}")
        return BadInputError(f"{prefix}Missing parameter: {message}")

    logger.error(f"Graph store error ({code or type(exc).__name__}): {message}")
    return StoreError(f"{prefix}{message}")
