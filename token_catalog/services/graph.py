"""Relationship graph and grouped views for a family.

Read-only: nothing here touches the store. The canonical token is the hub of
a star graph; when the family has none, or the viewed token is itself the
hub, edges fan out from the viewed token instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, List, Optional, Sequence, TypeVar, Union
from uuid import UUID

from token_catalog.models.family import Family
from token_catalog.models.token import Token, VariantKind

T = TypeVar("T")


def group_by(items: Sequence[T], key: Callable[[T], Hashable]) -> Dict[Hashable, List[T]]:
    """Ordered mapping of key -> members; groups and members keep source order."""
    groups: Dict[Hashable, List[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def group_by_type(tokens: Sequence[Token]) -> Dict[str, List[Token]]:
    return group_by(tokens, lambda t: VariantKind(t.variant_kind).value)


def group_by_chain(tokens: Sequence[Token]) -> Dict[str, List[Token]]:
    return group_by(tokens, lambda t: t.chain)


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    variant_kind: VariantKind
    chain: str
    is_canonical: bool
    is_current: bool = False


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    variant_kind: VariantKind


@dataclass
class RelationshipGraph:
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    grouped_by_type: Dict[str, List[Token]] = field(default_factory=dict)
    grouped_by_chain: Dict[str, List[Token]] = field(default_factory=dict)
    hub_id: Optional[str] = None


def build_graph(
    current_token_id: Optional[Union[UUID, str]],
    family: Family,
    tokens: Sequence[Token],
) -> RelationshipGraph:
    """Build nodes, star edges and grouped views for ``family``.

    ``tokens`` are the family's members in display order. Pass
    ``current_token_id=None`` for the family-level view, in which grouping
    covers every member; otherwise the viewed token is left out of the groups.
    """
    current_id = str(current_token_id) if current_token_id is not None else None
    member_ids = {str(t.id) for t in tokens}

    canonical_id = str(family.canonical_token_id) if family.canonical_token_id is not None else None
    if canonical_id not in member_ids:
        canonical_id = None

    if canonical_id is not None and canonical_id != current_id:
        hub_id = canonical_id
    elif current_id is not None and current_id in member_ids:
        hub_id = current_id
    else:
        hub_id = None

    nodes = [
        GraphNode(
            id=str(t.id),
            label=f"{t.symbol} ({t.chain})",
            variant_kind=VariantKind(t.variant_kind),
            chain=t.chain,
            is_canonical=t.is_canonical,
            is_current=str(t.id) == current_id,
        )
        for t in tokens
    ]

    edges: List[GraphEdge] = []
    if hub_id is not None:
        edges = [
            GraphEdge(source=hub_id, target=str(t.id), variant_kind=VariantKind(t.variant_kind))
            for t in tokens
            if str(t.id) != hub_id
        ]

    members = [t for t in tokens if str(t.id) != current_id] if current_id is not None else list(tokens)

    return RelationshipGraph(
        nodes=nodes,
        edges=edges,
        grouped_by_type=group_by_type(members),
        grouped_by_chain=group_by_chain(members),
        hub_id=hub_id,
    )
