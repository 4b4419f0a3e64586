import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class Label(str, Enum):
    """Node labels accepted in uploads and filters. Closed set: safe to inline into Cypher."""
    SPECIES = "Species"
    DISEASE = "Disease"
    CHEMICALS = "Chemicals"


class Relation(str, Enum):
    """Relationship types accepted in uploads and filters. Closed set: safe to inline into Cypher."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class GraphEntry(BaseModel):
    """
    One fact parsed from an uploaded CSV row.

    Field aliases are the CSV header names. All fields are required; strings
    must be non-empty once trimmed.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    label1: Label
    label2: Label
    relation: Relation
    entity1: str = Field(min_length=1)
    entity2: str = Field(min_length=1)
    score: float = Field(allow_inf_nan=False)
    source_id: str = Field(alias="PMC_ID", min_length=1)
    sentence_index: int = Field(alias="sent_id", ge=0)
    sentence: str = Field(min_length=1)


def _as_list(value: Any) -> Any:
    # Query strings deliver one value as a scalar and several as a list
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class QueryFilter(BaseModel):
    """Optional restrictions for a subgraph read. An empty filter matches the whole graph."""
    labels: List[Label] = Field(default_factory=list)
    relations: List[Relation] = Field(default_factory=list)
    node: Optional[str] = None
    source_id: Optional[str] = None
    sentence_index: Optional[int] = Field(default=None, ge=0)
    depth: int = Field(default=1, ge=1)

    @field_validator("labels", "relations", mode="before")
    @classmethod
    def normalize_selection(cls, v: Any) -> Any:
        return _as_list(v)

    @model_validator(mode="after")
    def check_sentence_scope(self) -> "QueryFilter":
        # A sentence index is only meaningful within one source document
        if self.sentence_index is not None and not self.source_id:
            raise ValueError("pmcid is required when sentenceid is provided")
        return self


class GraphCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class GraphUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_visible: Optional[bool] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "GraphUpdateRequest":
        if self.title is None and self.description is None and self.is_visible is None:
            raise ValueError("At least one of title, description or is_visible is required")
        return self


class GraphDeleteRequest(BaseModel):
    ids: List[str]


class Graph(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    is_visible: bool = True
    created_at: datetime
    updated_at: datetime


class GraphNode(BaseModel):
    id: str
    labels: List[str]
    properties: Dict[str, Any] = Field(default_factory=dict)


class GraphRelationship(BaseModel):
    id: str
    type: str
    start: str
    end: str
    properties: Dict[str, Any] = Field(default_factory=dict)


class GraphDetail(Graph):
    nodes: List[GraphNode] = Field(default_factory=list)
    relations: List[GraphRelationship] = Field(default_factory=list)


class GraphPage(BaseModel):
    items: List[Graph]
    pages: int
    size: int
    count: int


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """Public view of a user account; the password hash never leaves services_user."""
    id: str
    firstname: str
    lastname: str
    email: str
    role: UserRole = UserRole.USER
    blocked: bool = False
    created_at: datetime
    updated_at: datetime


class UserPage(BaseModel):
    items: List[User]
    pages: int
    size: int
    count: int


def _check_password_strength(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", value) or not re.search(r"[A-Z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain an uppercase letter, a lowercase letter and a digit")
    return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    firstname: str = Field(min_length=1, max_length=100)
    lastname: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserCreateRequest(SignUpRequest):
    """Admin-created account; the role may be chosen."""
    role: UserRole = UserRole.USER


class UserUpdateRequest(BaseModel):
    firstname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    lastname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None


class AdminUserUpdateRequest(UserUpdateRequest):
    role: Optional[UserRole] = None


class PasswordUpdateRequest(BaseModel):
    old_password: str
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserBlockRequest(BaseModel):
    blocked: bool = True


class UserDeleteRequest(BaseModel):
    ids: List[str]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User
