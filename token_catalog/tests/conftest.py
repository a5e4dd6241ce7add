"""Shared fixtures: an isolated in-memory catalog per test."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_MIGRATE", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from token_catalog.core.db import get_db
from token_catalog.core.locks import KeyedLockRegistry
from token_catalog.main import app
from token_catalog.models import Base
from token_catalog.services.family_service import FamilyResolutionEngine


@pytest.fixture
def db_engine():
    """Fresh in-memory database with the full schema"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def engine(db):
    """Family resolution engine with its own lock registry"""
    return FamilyResolutionEngine(db, locks=KeyedLockRegistry(), timeout=2.0)


@pytest.fixture
def client(session_factory):
    """Test client bound to the per-test database"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(symbol, chain, address, base_asset, kind, **extra):
    """Wire-format token record"""
    record = {
        "symbol": symbol,
        "name": extra.pop("name", symbol),
        "chain": chain,
        "contractAddress": address,
        "decimals": extra.pop("decimals", 18),
        "baseAsset": base_asset,
        "type": kind,
    }
    record.update(extra)
    return record


@pytest.fixture
def token_record():
    return make_token


@pytest.fixture
def eth_batch():
    """ETH on ethereum plus WETH on ethereum and arbitrum"""
    return [
        make_token("ETH", "ethereum", "0x0", "ETH", "CANONICAL", imageUrl="/tokens/eth.png", isCanonicalFlag=True),
        make_token("WETH", "ethereum", "0xweth", "ETH", "WRAPPED", imageUrl="/tokens/weth.png"),
        make_token("WETH", "arbitrum", "0xarbweth", "ETH", "BRIDGED", imageUrl="/tokens/weth.png"),
    ]
