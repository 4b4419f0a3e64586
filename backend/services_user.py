import logging
import uuid
from typing import Any, Dict, List, Optional

import psycopg2
import psycopg2.errors
from passlib.context import CryptContext

from db_postgres import db_transaction, execute_query
from errors import BadInputError, ConflictError, NotFoundError, StoreError
from models import User, UserPage, UserRole
from pagination import page_count

logger = logging.getLogger("graph_backend")

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_USER_COLUMNS = "id, firstname, lastname, email, role, blocked, created_at, updated_at"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed one."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        return False


def get_password_hash(password: str) -> str:
    """Generate a hash for a password."""
    return pwd_context.hash(password)


def check_password_confirmation(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise BadInputError("Passwords do not match.")


def to_public_user(row: Dict[str, Any]) -> User:
    data = {k: row[k] for k in ("firstname", "lastname", "email", "blocked", "created_at", "updated_at")}
    return User(id=str(row["id"]), role=UserRole(row["role"]), **data)


def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    """Fetch a user row (including the password hash) by email."""
    results = execute_query("SELECT * FROM users WHERE email = %s", (email.lower(),))
    return results[0] if results else None


def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a user row (including the password hash) by id."""
    try:
        uuid.UUID(str(user_id))
    except ValueError:
        return None
    results = execute_query("SELECT * FROM users WHERE id = %s", (str(user_id),))
    return results[0] if results else None


def get_user(user_id: str) -> User:
    row = get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User not found")
    return to_public_user(row)


def create_user(
    firstname: str,
    lastname: str,
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
) -> User:
    """Create a user with a hashed password. Emails are unique (case-insensitive)."""
    user_id = str(uuid.uuid4())
    try:
        rows = execute_query(
            f"""
            INSERT INTO users (id, firstname, lastname, email, password_hash, role)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {_USER_COLUMNS}
            """,
            (user_id, firstname, lastname, email.lower(), get_password_hash(password), role.value),
            commit=True,
        )
    except psycopg2.errors.UniqueViolation as e:
        raise ConflictError("Email already exists") from e
    logger.info(f"User created: {user_id} ({role.value})")
    return to_public_user(rows[0])


def update_user(
    user_id: str,
    firstname: Optional[str] = None,
    lastname: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[UserRole] = None,
) -> User:
    assignments: List[str] = []
    params: List[Any] = []
    for column, value in (
        ("firstname", firstname),
        ("lastname", lastname),
        ("email", email.lower() if email else None),
        ("role", role.value if role else None),
    ):
        if value is not None:
            assignments.append(f"{column} = %s")
            params.append(value)
    if not assignments:
        return get_user(user_id)
    if get_user_by_id(user_id) is None:
        raise NotFoundError("User not found")

    assignments.append("updated_at = NOW()")
    try:
        rows = execute_query(
            f"UPDATE users SET {', '.join(assignments)} WHERE id = %s RETURNING {_USER_COLUMNS}",
            tuple(params) + (str(user_id),),
            commit=True,
        )
    except psycopg2.errors.UniqueViolation as e:
        raise ConflictError("Email already exists") from e
    if not rows:
        raise NotFoundError("User not found")
    return to_public_user(rows[0])


def update_password(user_id: str, old_password: str, password: str, confirm_password: str) -> None:
    row = get_user_by_id(user_id)
    if row is None:
        raise NotFoundError("User not found")
    if not verify_password(old_password, row["password_hash"]):
        raise BadInputError("Incorrect old password.")
    check_password_confirmation(password, confirm_password)
    execute_query(
        "UPDATE users SET password_hash = %s, updated_at = NOW() WHERE id = %s",
        (get_password_hash(password), str(user_id)),
        fetch=False,
    )
    logger.info(f"Password updated for user {user_id}")


def set_user_blocked(user_id: str, blocked: bool) -> User:
    if get_user_by_id(user_id) is None:
        raise NotFoundError("User not found")
    rows = execute_query(
        f"UPDATE users SET blocked = %s, updated_at = NOW() WHERE id = %s RETURNING {_USER_COLUMNS}",
        (blocked, str(user_id)),
        commit=True,
    )
    logger.info(f"User {user_id} {'blocked' if blocked else 'unblocked'}")
    return to_public_user(rows[0])


def list_users(page: int = 1, size: int = 10, search: Optional[str] = None) -> UserPage:
    where_clause = ""
    params: tuple = ()
    if search:
        where_clause = "WHERE firstname ILIKE %s OR lastname ILIKE %s OR email ILIKE %s"
        params = (f"%{search}%",) * 3

    count_rows = execute_query(f"SELECT COUNT(*) AS count FROM users {where_clause}", params)
    count = int(count_rows[0]["count"]) if count_rows else 0
    rows = execute_query(
        f"""
        SELECT {_USER_COLUMNS} FROM users
        {where_clause}
        ORDER BY created_at DESC, id
        LIMIT %s OFFSET %s
        """,
        params + (size, (page - 1) * size),
    )
    return UserPage(
        items=[to_public_user(r) for r in rows],
        pages=page_count(count, size),
        size=size,
        count=count,
    )


def delete_users(user_ids: List[str]) -> None:
    """All-or-nothing delete; same rules as deleting graphs."""
    ids = list(user_ids or [])
    if not ids:
        raise BadInputError("Array of user IDs is empty")
    if len(set(ids)) < len(ids):
        raise BadInputError("User IDs must be unique")
    for user_id in ids:
        try:
            uuid.UUID(str(user_id))
        except ValueError as e:
            raise BadInputError(f"Invalid user id {user_id!r}") from e

    try:
        with db_transaction() as cur:
            cur.execute("DELETE FROM users WHERE id = ANY(%s::uuid[])", (ids,))
            if cur.rowcount < len(ids):
                if len(ids) == 1:
                    raise NotFoundError("Specified user was not found for deletion.")
                raise ConflictError("Not all specified users were found for deletion.")
    except psycopg2.Error as e:
        raise StoreError(f"Deleting users failed: {e}") from e
    logger.info(f"Deleted {len(ids)} user(s)")
