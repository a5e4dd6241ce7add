"""Relationship graph and grouping tests"""

import uuid
from datetime import datetime, timezone

import pytest

from token_catalog.models.family import Family
from token_catalog.models.token import Token, VariantKind
from token_catalog.services.graph import build_graph, group_by_chain, group_by_type
from token_catalog.services.identity import family_identifier

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def member(symbol, chain, kind, is_canonical=False):
    return Token(
        id=uuid.uuid4(),
        symbol=symbol,
        name=symbol,
        chain=chain,
        contract_address=f"0x{symbol.lower()}{chain}",
        decimals=18,
        family_id=family_identifier("ETH"),
        base_asset="ETH",
        variant_kind=kind,
        image_url="/tokens/default.png",
        is_canonical=is_canonical,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def members():
    return [
        member("ETH", "ethereum", VariantKind.CANONICAL, is_canonical=True),
        member("WETH", "ethereum", VariantKind.WRAPPED),
        member("WETH", "arbitrum", VariantKind.BRIDGED),
        member("stETH", "ethereum", VariantKind.DERIVATIVE),
        member("WETH", "optimism", VariantKind.BRIDGED),
    ]


def family_for(tokens, canonical=None):
    return Family(
        family_id=family_identifier("ETH"),
        base_asset="ETH",
        canonical_token_id=canonical.id if canonical is not None else None,
        name="Ethereum Family",
        description="",
        image_url="/tokens/default.png",
        total_variants=len(tokens),
        chains=sorted({t.chain for t in tokens}),
        version=1,
    )


class TestStarTopology:
    """Test edge layout"""

    def test_family_view_edges_from_canonical(self, members):
        """Test N tokens with a canonical give N-1 edges all starting at the canonical"""
        canonical = members[0]
        graph = build_graph(None, family_for(members, canonical), members)

        assert len(graph.nodes) == len(members)
        assert len(graph.edges) == len(members) - 1
        assert {e.source for e in graph.edges} == {str(canonical.id)}
        assert {e.target for e in graph.edges} == {str(t.id) for t in members[1:]}
        assert graph.hub_id == str(canonical.id)

    def test_edges_labeled_with_target_kind(self, members):
        """Test each edge carries its target's variant kind"""
        graph = build_graph(None, family_for(members, members[0]), members)
        kinds = {e.target: e.variant_kind for e in graph.edges}
        assert kinds == {str(t.id): t.variant_kind for t in members[1:]}

    def test_token_view_keeps_canonical_hub(self, members):
        """Test viewing a variant still draws edges from the canonical"""
        current = members[2]
        graph = build_graph(current.id, family_for(members, members[0]), members)

        assert graph.hub_id == str(members[0].id)
        assert len(graph.edges) == len(members) - 1
        assert [n.id for n in graph.nodes if n.is_current] == [str(current.id)]

    def test_viewed_token_is_hub_without_canonical(self, members):
        """Test the viewed token substitutes as hub when the family has no canonical"""
        current = members[1]
        graph = build_graph(current.id, family_for(members), members)

        assert graph.hub_id == str(current.id)
        assert len(graph.edges) == len(members) - 1
        assert all(e.source == str(current.id) for e in graph.edges)

    def test_viewing_canonical_is_hub(self, members):
        """Test viewing the canonical token itself keeps it as hub"""
        canonical = members[0]
        graph = build_graph(canonical.id, family_for(members, canonical), members)
        assert graph.hub_id == str(canonical.id)
        assert len(graph.edges) == len(members) - 1

    def test_family_view_without_canonical_has_no_edges(self, members):
        """Test no hub exists for a family view without a canonical token"""
        graph = build_graph(None, family_for(members), members)
        assert graph.hub_id is None
        assert graph.edges == []
        assert len(graph.nodes) == len(members)

    def test_single_token_family(self):
        """Test a one-token family has a node and no edges"""
        only = member("FOO", "ethereum", VariantKind.CANONICAL)
        graph = build_graph(only.id, family_for([only], only), [only])
        assert len(graph.nodes) == 1
        assert graph.edges == []


class TestGrouping:
    """Test grouped views"""

    def test_family_view_groups_everything(self, members):
        """Test the family view partitions all tokens"""
        graph = build_graph(None, family_for(members, members[0]), members)
        assert sum(len(g) for g in graph.grouped_by_type.values()) == len(members)
        assert list(graph.grouped_by_chain) == ["ethereum", "arbitrum", "optimism"]

    def test_token_view_excludes_current(self, members):
        """Test the viewed token is left out of the groups"""
        current = members[0]
        graph = build_graph(current.id, family_for(members, current), members)

        grouped = [t for g in graph.grouped_by_type.values() for t in g]
        assert current not in grouped
        assert len(grouped) == len(members) - 1
        assert "CANONICAL" not in graph.grouped_by_type

    def test_groups_preserve_source_order(self, members):
        """Test members keep their relative order within a group"""
        by_type = group_by_type(members)
        assert [t.chain for t in by_type["BRIDGED"]] == ["arbitrum", "optimism"]

        by_chain = group_by_chain(members)
        assert [t.symbol for t in by_chain["ethereum"]] == ["ETH", "WETH", "stETH"]
