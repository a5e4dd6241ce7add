"""API endpoint tests"""

import uuid

import pytest

from token_catalog.models import Token, VariantKind
from token_catalog.services.identity import family_identifier

ETH_FAMILY = family_identifier("ETH")

CHAINS = [
    {"chainId": "ethereum", "name": "Ethereum", "nativeCurrency": "ETH"},
    {"chainId": "arbitrum", "name": "Arbitrum One", "nativeCurrency": "ETH"},
]


@pytest.fixture
def seeded(client, eth_batch, token_record):
    """Catalog with an ETH family (3 tokens) and a USDC family (1 token)"""
    batch = eth_batch + [token_record("USDC", "arbitrum", "0xusdc", "USDC", "BRIDGED", decimals=6)]
    response = client.post("/ingest", json={"chains": CHAINS, "tokens": batch})
    assert response.status_code == 200
    return response.json()


class TestIngestEndpoint:
    """Test POST /ingest"""

    def test_ingest_reports_counts(self, client, eth_batch):
        """Test a clean batch reports inserted tokens and touched families"""
        response = client.post("/ingest", json={"tokens": eth_batch})
        assert response.status_code == 200

        body = response.json()
        assert body["success"] is True
        assert body["insertedCount"] == 3
        assert body["updatedCount"] == 0
        assert body["affectedFamilyIds"] == [ETH_FAMILY]
        assert body["message"] == "Successfully processed 3 tokens across 1 families"

    def test_missing_tokens_rejected(self, client):
        """Test a batch without tokens is a typed 400"""
        response = client.post("/ingest", json={"chains": CHAINS})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_non_object_body_rejected(self, client):
        """Test a bare array body is rejected"""
        response = client.post("/ingest", json=[1, 2, 3])
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_partial_failures_listed(self, client, eth_batch):
        """Test bad records come back in failures with their index"""
        response = client.post("/ingest", json={"tokens": [eth_batch[0], {"symbol": "BAD"}]})
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is False
        assert body["insertedCount"] == 1
        assert body["failures"][0]["index"] == 1
        assert body["failures"][0]["kind"] == "InvalidInput"

    def test_non_array_chains_reported(self, client, eth_batch):
        """Test a chains object is listed as a chain failure and the tokens still land"""
        response = client.post("/ingest", json={"tokens": eth_batch, "chains": {"chainId": "ethereum"}})
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is False
        assert body["insertedCount"] == 3
        assert body["chainFailures"][0]["index"] is None
        assert body["chainFailures"][0]["kind"] == "InvalidInput"


class TestTokenEndpoints:
    """Test GET /tokens and /tokens/{id}"""

    def test_chain_filter_with_has_more(self, client, seeded):
        """Test chain=arbitrum&limit=1 returns one token and signals more"""
        response = client.get("/tokens", params={"chain": "arbitrum", "limit": 1})
        assert response.status_code == 200

        body = response.json()
        assert len(body["tokens"]) == 1
        assert body["pagination"] == {"total": 2, "limit": 1, "skip": 0, "hasMore": True}

    def test_last_page_has_no_more(self, client, seeded):
        """Test the final page reports hasMore false"""
        body = client.get("/tokens", params={"chain": "arbitrum", "limit": 1, "skip": 1}).json()
        assert len(body["tokens"]) == 1
        assert body["pagination"]["hasMore"] is False

    def test_limit_is_capped(self, client, seeded):
        """Test limits above the cap are clamped"""
        body = client.get("/tokens", params={"limit": 500}).json()
        assert body["pagination"]["limit"] == 100
        assert body["pagination"]["total"] == 4

    def test_invalid_paging_rejected(self, client, seeded):
        """Test limit below 1 and negative skip are typed 400s"""
        assert client.get("/tokens", params={"limit": 0}).json()["error"] == "InvalidInput"
        assert client.get("/tokens", params={"skip": -1}).status_code == 400

    def test_substring_filters_case_insensitive(self, client, seeded):
        """Test symbol and baseAsset match case-insensitively by substring"""
        body = client.get("/tokens", params={"symbol": "wet"}).json()
        assert {t["symbol"] for t in body["tokens"]} == {"WETH"}

        body = client.get("/tokens", params={"baseAsset": "usd"}).json()
        assert [t["symbol"] for t in body["tokens"]] == ["USDC"]

    def test_type_filter(self, client, seeded):
        """Test filtering by variant kind"""
        body = client.get("/tokens", params={"type": "wrapped"}).json()
        assert [t["chain"] for t in body["tokens"]] == ["ethereum"]
        assert client.get("/tokens", params={"type": "LEVERAGED"}).status_code == 400

    def test_family_filter_and_name_enrichment(self, client, seeded):
        """Test familyId filter and familyName join"""
        body = client.get("/tokens", params={"familyId": ETH_FAMILY}).json()
        assert body["pagination"]["total"] == 3
        assert {t["familyName"] for t in body["tokens"]} == {"Ethereum Family"}

    def test_missing_family_shows_placeholder(self, client, db):
        """Test a token whose family record is absent is listed as Unknown"""
        db.add(
            Token(
                symbol="LOST",
                name="Lost",
                chain="ethereum",
                contract_address="0xlost",
                decimals=18,
                family_id=family_identifier("LOST"),
                base_asset="LOST",
                variant_kind=VariantKind.WRAPPED,
                image_url="/tokens/default.png",
            )
        )
        db.commit()

        body = client.get("/tokens").json()
        assert body["tokens"][0]["familyName"] == "Unknown"

    def test_token_detail(self, client, seeded):
        """Test token detail with family, related tokens, groups and graph"""
        eth = client.get("/tokens", params={"type": "CANONICAL"}).json()["tokens"][0]
        response = client.get(f"/tokens/{eth['id']}")
        assert response.status_code == 200

        body = response.json()
        assert body["token"]["symbol"] == "ETH"
        assert body["family"]["canonicalToken"]["id"] == eth["id"]
        assert len(body["relatedTokens"]) == 2
        assert set(body["groupedByType"]) == {"WRAPPED", "BRIDGED"}
        assert set(body["groupedByChain"]) == {"ethereum", "arbitrum"}
        assert len(body["graph"]["edges"]) == 2
        assert {e["from"] for e in body["graph"]["edges"]} == {eth["id"]}
        assert body["stats"] == {"totalVariants": 3, "chains": 2, "types": 3}

    def test_token_detail_counts_distinct_types(self, client, token_record):
        """Test stats.types counts the variant kinds present in the family"""
        batch = [
            token_record("FOO", "ethereum", "0xfoo", "FOO", "WRAPPED"),
            token_record("FOO", "arbitrum", "0xarbfoo", "FOO", "WRAPPED"),
        ]
        client.post("/ingest", json={"tokens": batch})
        token = client.get("/tokens", params={"symbol": "FOO"}).json()["tokens"][0]

        stats = client.get(f"/tokens/{token['id']}").json()["stats"]
        assert stats == {"totalVariants": 2, "chains": 2, "types": 1}

    def test_token_detail_bad_id(self, client):
        """Test a malformed token id is a typed 400"""
        response = client.get("/tokens/not-a-uuid")
        assert response.status_code == 400
        assert response.json() == {"error": "InvalidInput", "message": "Invalid token ID format"}

    def test_token_detail_unknown_id(self, client):
        """Test an unknown token id is a typed 404"""
        response = client.get(f"/tokens/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"error": "NotFound", "message": "Token not found"}


class TestFamilyEndpoints:
    """Test /families routes"""

    def test_list_sorted_by_size(self, client, seeded):
        """Test families come back largest first with canonical projections"""
        body = client.get("/families").json()

        assert [f["baseAsset"] for f in body["families"]] == ["ETH", "USDC"]
        eth = body["families"][0]
        assert eth["totalVariants"] == 3
        assert eth["chains"] == ["arbitrum", "ethereum"]
        assert set(eth["canonicalToken"]) == {"id", "symbol", "name", "chain", "contractAddress"}
        assert body["families"][1]["canonicalToken"] is None

    def test_base_asset_filter(self, client, seeded):
        """Test baseAsset substring filter on families"""
        body = client.get("/families", params={"baseAsset": "us"}).json()
        assert [f["baseAsset"] for f in body["families"]] == ["USDC"]
        assert body["pagination"]["hasMore"] is False

    def test_family_detail(self, client, seeded):
        """Test family detail with members, groups, graph and stats"""
        response = client.get(f"/families/{ETH_FAMILY}")
        assert response.status_code == 200

        body = response.json()
        assert body["family"]["name"] == "Ethereum Family"
        assert body["family"]["canonicalToken"]["symbol"] == "ETH"
        assert len(body["tokens"]) == 3
        assert [t["variantKind"] for t in body["tokens"]] == ["BRIDGED", "CANONICAL", "WRAPPED"]
        assert len(body["graph"]["nodes"]) == 3
        assert len(body["graph"]["edges"]) == 2
        assert body["stats"] == {
            "totalTokens": 3,
            "byType": {"BRIDGED": 1, "CANONICAL": 1, "WRAPPED": 1},
            "byChain": {"arbitrum": 1, "ethereum": 2},
            "chains": 2,
        }

    def test_family_detail_unknown(self, client):
        """Test an unknown family id is a typed 404"""
        response = client.get("/families/deadbeef")
        assert response.status_code == 404
        assert response.json() == {"error": "NotFound", "message": "Family not found"}

    def test_resolve_family(self, client, seeded):
        """Test explicit recompute returns the refreshed family"""
        body = client.post(f"/families/{ETH_FAMILY}/resolve").json()
        assert body["status"] == "resolved"
        assert body["family"]["totalVariants"] == 3
        assert body["family"]["version"] == 2

    def test_resolve_orphan(self, client):
        """Test recompute of a family with no members reports orphaned"""
        body = client.post(f"/families/{family_identifier('NONE')}/resolve").json()
        assert body == {"familyId": family_identifier("NONE"), "status": "orphaned", "family": None}


class TestSupportEndpoints:
    """Test index, chains, health and stats"""

    def test_index(self, client):
        """Test API index lists endpoints"""
        body = client.get("/").json()
        assert "tokens" in body["endpoints"]

    def test_chains(self, client, seeded):
        """Test registered chains are listed"""
        body = client.get("/chains").json()
        assert [c["chainId"] for c in body] == ["arbitrum", "ethereum"]

    def test_health(self, client, seeded):
        """Test health reports database and last ingest status"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"database": "ok", "lastIngestStatus": "success"}

    def test_ready(self, client):
        """Test readiness probe"""
        assert client.get("/health/ready").json()["status"] == "ready"

    def test_stats(self, client, seeded):
        """Test ingest run stats"""
        body = client.get("/stats").json()
        assert len(body) == 1
        assert body[0]["insertedCount"] == 4
        assert body[0]["status"] == "success"

    def test_invalid_endpoint(self, client):
        """Test invalid endpoint returns 404"""
        assert client.get("/invalid").status_code == 404
