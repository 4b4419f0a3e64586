"""
Mock helper classes for Neo4j and Postgres testing.

MockDriver stands in for a neo4j.Driver holding one database per graph. It
records every statement, understands the "RETURN 1" ping and the CREATE/DROP DATABASE
statements on the system database, and keeps the merge statements of each
committed upload so tests can check what a namespace ended up containing.
"""
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from neo4j.exceptions import Neo4jError

DATABASE_NOT_FOUND = "Neo.ClientError.Database.DatabaseNotFound"

# A valid graph id: "G" followed by 31 hex characters
GRAPH_ID = "G0123456789abcdef0123456789abcde"


class MockNeo4jError(Neo4jError):
    """Neo4jError with a fixed status code, e.g. Neo.ClientError.Statement.SemanticError."""

    def __init__(self, code: str, message: str = "mock neo4j error"):
        super().__init__(message)
        self._mock_code = code
        self._mock_message = message

    @property
    def code(self) -> str:
        return self._mock_code

    @property
    def message(self) -> str:
        return self._mock_message

    def __str__(self) -> str:
        return f"{{code: {self._mock_code}}} {{message: {self._mock_message}}}"


def database_not_found(database: str) -> MockNeo4jError:
    return MockNeo4jError(DATABASE_NOT_FOUND, f"Database does not exist. Database name: '{database}'.")


class MockNeo4jRecord:
    """Mock Neo4j record that supports __getitem__ for dictionary-style access."""
    def __init__(self, data_dict: dict):
        self._data = data_dict

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def data(self) -> dict:
        return self._data

    def keys(self):
        return self._data.keys()


class MockNeo4jResult:
    """Mock Neo4j result that has a single() method and supports iteration."""
    def __init__(self, record: Optional[MockNeo4jRecord] = None, records: Optional[List[MockNeo4jRecord]] = None):
        self._record = record
        if records is not None:
            self._records = records
        elif record is not None:
            self._records = [record]
        else:
            self._records = []

    def single(self) -> Optional[MockNeo4jRecord]:
        return self._record

    def consume(self):
        return self

    def __iter__(self):
        return iter(self._records)


class MockNode:
    """Graph node as returned by the driver: element_id, labels and a property map."""
    def __init__(self, element_id: str, labels: List[str], properties: Optional[dict] = None):
        self.element_id = element_id
        self.labels = frozenset(labels)
        self._properties = dict(properties or {})

    def items(self):
        return self._properties.items()


class MockRelationship:
    def __init__(self, element_id: str, rel_type: str, start_node: MockNode, end_node: MockNode,
                 properties: Optional[dict] = None):
        self.element_id = element_id
        self.type = rel_type
        self.start_node = start_node
        self.end_node = end_node
        self._properties = dict(properties or {})

    def items(self):
        return self._properties.items()


class MockTransaction:
    """Explicit transaction. Writes become visible in the driver only on commit."""
    def __init__(self, session: "MockSession"):
        self.session = session
        self.queries: List[Tuple[str, dict]] = []
        self.committed = False
        self.rolled_back = False
        self._closed = False

    def run(self, query: str, parameters: Optional[dict] = None, **kwargs):
        params = {**(parameters or {}), **kwargs}
        driver = self.session.driver
        if driver.fail_on is not None:
            error = driver.fail_on(query, params)
            if error is not None:
                raise error
        self.queries.append((query, params))
        return MockNeo4jResult()

    def commit(self):
        self.committed = True
        self._closed = True
        self.session.driver._apply(self.session.database, self.queries)

    def rollback(self):
        self.rolled_back = True
        self._closed = True

    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        # Same contract as the real driver: commit on success, roll back otherwise
        if self._closed:
            return False
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False


class MockSession:
    def __init__(self, driver: "MockDriver", database: Optional[str], access_mode: Optional[str]):
        self.driver = driver
        self.database = database
        self.access_mode = access_mode
        self.closed = False
        self.transactions: List[MockTransaction] = []

    def run(self, query: str, parameters: Optional[dict] = None, **kwargs):
        params = {**(parameters or {}), **kwargs}
        driver = self.driver
        if self.database == "system":
            return driver._run_system(query, params)
        if self.database not in driver.databases:
            raise database_not_found(self.database)
        if query.strip() == "RETURN 1":
            return MockNeo4jResult(MockNeo4jRecord({"1": 1}))
        driver.read_queries.append((query, params))
        if driver.read_error is not None:
            raise driver.read_error
        return MockNeo4jResult(record=driver.read_record)

    def begin_transaction(self) -> MockTransaction:
        tx = MockTransaction(self)
        self.transactions.append(tx)
        self.driver.transactions.append(tx)
        return tx

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class MockDriver:
    """
    In-memory stand-in for neo4j.Driver.

    Attributes tests configure:
        databases: names of the existing graph databases
        read_record: record returned by non-ping session.run calls
        read_error: raised by non-ping session.run calls
        fail_on: callable(query, params) -> exception or None, checked on every transaction statement
        drop_errors: database name -> exception raised by DROP DATABASE
    """
    def __init__(self, databases: Optional[List[str]] = None):
        self.databases = set(databases or [])
        self.read_record: Optional[MockNeo4jRecord] = None
        self.read_error: Optional[Exception] = None
        self.fail_on: Optional[Callable[[str, dict], Optional[Exception]]] = None
        self.drop_errors: Dict[str, Exception] = {}

        self.sessions: List[MockSession] = []
        self.transactions: List[MockTransaction] = []
        self.system_queries: List[Tuple[str, dict]] = []
        self.read_queries: List[Tuple[str, dict]] = []
        # database name -> merge parameters of the last committed upload
        self.contents: Dict[str, List[dict]] = {}

    def session(self, database: Optional[str] = None, default_access_mode: Optional[str] = None, **kwargs):
        session = MockSession(self, database, default_access_mode)
        self.sessions.append(session)
        return session

    def close(self):
        pass

    def _run_system(self, query: str, params: dict):
        self.system_queries.append((query, params))
        name = params.get("name")
        if query.startswith("CREATE DATABASE"):
            self.databases.add(name)
        elif query.startswith("DROP DATABASE"):
            if name in self.drop_errors:
                raise self.drop_errors[name]
            self.databases.discard(name)
            self.contents.pop(name, None)
        return MockNeo4jResult()

    def _apply(self, database: str, queries: List[Tuple[str, dict]]):
        contents = list(self.contents.get(database, []))
        for query, params in queries:
            if query.startswith("MATCH (n) DETACH DELETE n"):
                contents = []
            elif query.startswith("MERGE"):
                if params not in contents:
                    contents.append(params)
        self.contents[database] = contents


class MockDbTransaction:
    """
    Replacement for db_postgres.db_transaction.

    Yields a cursor whose rowcount is fixed up front and records whether the
    block committed or rolled back.
    """
    def __init__(self, rowcount: int = 0, error: Optional[Exception] = None):
        self.cursor = MockCursor(rowcount, error)
        self.committed = False
        self.rolled_back = False
        self.calls = 0

    @contextmanager
    def __call__(self):
        self.calls += 1
        try:
            yield self.cursor
        except BaseException:
            self.rolled_back = True
            raise
        self.committed = True


class MockCursor:
    def __init__(self, rowcount: int = 0, error: Optional[Exception] = None):
        self.rowcount = rowcount
        self.error = error
        self.executed: List[Tuple[str, Any]] = []

    def execute(self, query: str, params: Any = None):
        self.executed.append((query, params))
        if self.error is not None:
            raise self.error


def make_user_row(role: str = "user", blocked: bool = False, **overrides: Any) -> Dict[str, Any]:
    """A users-table row as services_user returns it, password hash included."""
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    row = {
        "id": str(uuid.uuid4()),
        "firstname": "Ada",
        "lastname": "Lovelace",
        "email": f"{role}-{uuid.uuid4().hex[:8]}@example.com",
        "password_hash": "not-a-real-hash",
        "role": role,
        "blocked": blocked,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


def bearer(user_row: Dict[str, Any]) -> Dict[str, str]:
    from auth import create_token
    return {"Authorization": f"Bearer {create_token(user_row['id'], user_row['role'])}"}
