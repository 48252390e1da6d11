"""Pytest configuration and fixtures."""

import asyncio
import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from gelap.config import GelapSettings, reset_settings
from gelap.core.keys import KeyDerivation, NoncePolicy
from gelap.devnet import LocalChain, LocalSigner, MockProver
from gelap.storage.database import reset_db_manager
from gelap.storage.memory import MemoryKeyValueStore

TEST_DEPTH = 8
TOKEN = "0x" + "11" * 20
OTHER_TOKEN = "0x" + "22" * 20


@pytest.fixture(autouse=True)
def _isolated_globals():
    """Module-level singletons must not leak between tests."""
    reset_settings()
    reset_db_manager()
    yield
    reset_settings()
    reset_db_manager()


@pytest.fixture
def settings():
    """Settings with a shallow tree, ignoring any local .env file."""
    return GelapSettings(_env_file=None, merkle_tree_depth=TEST_DEPTH, storage_namespace="test")


@pytest.fixture
def token():
    return TOKEN


@pytest.fixture
def other_token():
    return OTHER_TOKEN


@pytest.fixture(scope="session")
def alice_keys():
    """Reproducible keys of a test wallet."""
    return asyncio.run(KeyDerivation.derive_keys(LocalSigner(b"alice"), NoncePolicy.FIXED))


@pytest.fixture(scope="session")
def bob_keys():
    return asyncio.run(KeyDerivation.derive_keys(LocalSigner(b"bob"), NoncePolicy.FIXED))


@pytest.fixture
def chain(settings):
    return LocalChain(depth=settings.merkle_tree_depth, max_block_range=settings.devnet_max_block_range)


@pytest.fixture
def prover():
    return MockProver()


@pytest.fixture
def store():
    return MemoryKeyValueStore()
