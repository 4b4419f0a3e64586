"""
Cypher composition for graph uploads and filtered subgraph reads.

Cypher cannot parameterize labels or relationship types, so those are
interpolated into the statement text. They only ever come from the Label and
Relation enums; every other value (names, ids, scores, sentences) is sent as
a bound parameter.
"""
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from config import GRAPH_QUERY_MAX_DEPTH
from errors import BadInputError
from models import GraphEntry, Label, QueryFilter, Relation

E = TypeVar("E", bound=Enum)

_PARAM_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Full-replace semantics: uploads start from an empty namespace
WIPE_GRAPH_QUERY = "MATCH (n) DETACH DELETE n"


def normalize_selection(value: Any, enum_cls: Type[E]) -> List[E]:
    """
    Canonicalize a label/relation selection.

    Accepts None, a single value, or a list/tuple of values (raw strings or
    enum members). Duplicates are dropped, first occurrence wins, so the
    output order is the input order.
    """
    if value is None:
        return []
    items = list(value) if isinstance(value, (list, tuple)) else [value]

    selected: List[E] = []
    for item in items:
        try:
            member = item if isinstance(item, enum_cls) else enum_cls(item)
        except ValueError as e:
            allowed = ", ".join(m.value for m in enum_cls)
            raise BadInputError(f"Unknown {enum_cls.__name__.lower()} {item!r}; expected one of: {allowed}") from e
        if member not in selected:
            selected.append(member)
    return selected


def build_label_filter(labels: Any) -> str:
    """':Species|Disease' for the given labels, '' when unfiltered."""
    selected = normalize_selection(labels, Label)
    if not selected:
        return ""
    return ":" + "|".join(label.value for label in selected)


def build_type_filter(relations: Any) -> str:
    """':positive|negative' for the given relation types, '' when unfiltered."""
    selected = normalize_selection(relations, Relation)
    if not selected:
        return ""
    return ":" + "|".join(relation.value for relation in selected)


def build_label_predicate(variable: str, labels: Any) -> str:
    """Boolean label test usable in WHERE, e.g. '(x:Species OR x:Disease)'."""
    selected = normalize_selection(labels, Label)
    if not selected:
        return ""
    return "(" + " OR ".join(f"{variable}:{label.value}" for label in selected) + ")"


def build_property_constraints(filters: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Build an inline equality block and its parameters.

    Only keys whose value is not None contribute, each as 'key: $key', in the
    mapping's iteration order. Returns ('', {}) when nothing is set.
    """
    clauses: List[str] = []
    params: Dict[str, Any] = {}
    for key, value in filters.items():
        if value is None:
            continue
        if not _PARAM_KEY_RE.match(key):
            raise ValueError(f"Invalid property key {key!r}")
        clauses.append(f"{key}: ${key}")
        params[key] = value
    if not clauses:
        return "", {}
    return " {" + ", ".join(clauses) + "}", params


def _resolve_depth(depth: Optional[int]) -> int:
    depth = 1 if depth is None else depth
    if depth < 1 or depth > GRAPH_QUERY_MAX_DEPTH:
        raise BadInputError(f"depth must be between 1 and {GRAPH_QUERY_MAX_DEPTH}, got {depth}")
    return depth


def build_subgraph_query(query_filter: Optional[QueryFilter] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Compose the read statement for a filtered subgraph.

    Matches paths between two endpoints carrying the selected labels over
    relationships of the selected types, then returns the distinct nodes and
    relationships on those paths. With no filter set the statement matches
    every relationship in the namespace.
    """
    query_filter = query_filter or QueryFilter()
    depth = _resolve_depth(query_filter.depth)

    label_filter = build_label_filter(query_filter.labels)
    type_filter = build_type_filter(query_filter.relations)
    node_constraints, node_params = build_property_constraints({"name": query_filter.node})
    rel_constraints, rel_params = build_property_constraints({
        "PMC_ID": query_filter.source_id,
        "sent_id": query_filter.sentence_index,
    })
    hops = f"*1..{depth}" if depth > 1 else ""

    lines = [
        f"MATCH p = (n{label_filter}{node_constraints})"
        f"-[{type_filter}{hops}{rel_constraints}]-"
        f"(m{label_filter})",
    ]
    # Intermediate nodes of longer paths must satisfy the label filter too
    if depth > 1 and label_filter:
        lines.append(f"WHERE all(x IN nodes(p) WHERE {build_label_predicate('x', query_filter.labels)})")
    lines += [
        "UNWIND relationships(p) AS rel",
        "UNWIND nodes(p) AS node",
        "RETURN collect(DISTINCT node) AS nodes, collect(DISTINCT rel) AS relations",
    ]
    return "\n".join(lines), {**node_params, **rel_params}


def build_merge_entry_query(entry: GraphEntry) -> Tuple[str, Dict[str, Any]]:
    """
    Idempotent merge of one fact: both entity nodes, then the relationship.

    Nodes are keyed by (label, name). The relationship is keyed by its type,
    endpoints and every per-fact property, so two sentences about the same
    pair stay two relationships while a repeated row merges into one.
    """
    query = (
        f"MERGE (e1:{entry.label1.value} {{name: $entity1}})\n"
        f"MERGE (e2:{entry.label2.value} {{name: $entity2}})\n"
        f"MERGE (e1)-[r:{entry.relation.value} "
        "{score: $score, PMC_ID: $PMC_ID, sent_id: $sent_id, sentence: $sentence}]-(e2)"
    )
    params = {
        "entity1": entry.entity1,
        "entity2": entry.entity2,
        "score": entry.score,
        "PMC_ID": entry.source_id,
        "sent_id": entry.sentence_index,
        "sentence": entry.sentence,
    }
    return query, params


def merge_statements(entries: Iterable[GraphEntry]) -> Iterable[Tuple[str, Dict[str, Any]]]:
    for entry in entries:
        yield build_merge_entry_query(entry)
