"""Error mapping, locking and paging helper tests"""

import threading

import pytest
from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError

from token_catalog.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TransientError,
    translate_store_errors,
)
from token_catalog.core.locks import KeyedLockRegistry, advisory_key
from token_catalog.services.identity import family_identifier
from token_catalog.services.query_service import make_page


class TestErrors:
    """Test typed errors"""

    def test_to_dict(self):
        """Test errors render as kind plus message"""
        assert NotFoundError("Token not found").to_dict() == {"error": "NotFound", "message": "Token not found"}
        assert NotFoundError.status_code == 404

    @pytest.mark.parametrize(
        "raised, expected",
        [
            (OperationalError("SELECT 1", {}, Exception("timeout")), TransientError),
            (DataError("INSERT", {}, Exception("bad value")), InvalidInputError),
            (IntegrityError("INSERT", {}, Exception("duplicate key")), ConflictError),
            (InterfaceError("SELECT 1", {}, Exception("connection already closed")), TransientError),
        ],
    )
    def test_store_errors_translated(self, raised, expected):
        """Test store exceptions become categorized catalog errors"""
        with pytest.raises(expected):
            with translate_store_errors("upsert token"):
                raise raised

    def test_other_errors_pass_through(self):
        """Test unrelated exceptions are not swallowed"""
        with pytest.raises(KeyError):
            with translate_store_errors("noop"):
                raise KeyError("x")


class TestKeyedLocks:
    """Test per-key mutual exclusion"""

    def test_same_key_times_out(self):
        """Test a second holder of the same key gives up as transient"""
        locks = KeyedLockRegistry()
        errors = []

        def contender():
            try:
                with locks.hold("eth", timeout=0.05):
                    pass
            except TransientError as exc:
                errors.append(exc)

        with locks.hold("eth", timeout=1):
            worker = threading.Thread(target=contender)
            worker.start()
            worker.join()

        assert len(errors) == 1
        assert locks.active_keys() == []

    def test_distinct_keys_do_not_block(self):
        """Test different keys are held independently"""
        locks = KeyedLockRegistry()
        with locks.hold("eth", timeout=1):
            with locks.hold("btc", timeout=0.05):
                assert sorted(locks.active_keys()) == ["btc", "eth"]

    def test_advisory_key_in_signed_range(self):
        """Test family ids map into PostgreSQL's bigint range"""
        for ticker in ("ETH", "BTC", "USDC", "SOL"):
            key = advisory_key(family_identifier(ticker))
            assert -(1 << 63) <= key < (1 << 63)
        assert advisory_key("f" * 64) == -1


class TestPaging:
    """Test pagination defaults"""

    def test_defaults(self):
        page = make_page()
        assert (page.limit, page.skip) == (50, 0)

    def test_cap(self):
        assert make_page(limit=1000).limit == 100

    @pytest.mark.parametrize("limit, skip", [(0, 0), (-5, 0), (10, -1)])
    def test_rejects_out_of_range(self, limit, skip):
        with pytest.raises(InvalidInputError):
            make_page(limit=limit, skip=skip)
