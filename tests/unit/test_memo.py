"""Tests for encrypted note memos."""

import pytest

from gelap.core.memo import NoteMemo, MEMO_SIZE
from gelap.core.stealth import StealthAddressEngine
from gelap.exceptions import MemoError


@pytest.fixture
def sealed(alice_keys, token):
    stealth, shared = StealthAddressEngine.generate_with_secret(
        alice_keys.view_public_key, alice_keys.spend_public_key
    )
    return stealth, NoteMemo.seal(shared, stealth, 42, 123456789, token)


class TestNoteMemo:

    def test_size(self, sealed):
        _, memo = sealed
        assert len(memo) == MEMO_SIZE

    def test_recipient_opens(self, sealed, alice_keys, token):
        stealth, memo = sealed
        opened = NoteMemo.open(memo, alice_keys.view_private_key, alice_keys.spend_public_key)
        assert opened is not None
        assert opened.amount == 42
        assert opened.blinding == 123456789
        assert opened.token == token
        assert opened.stealth == stealth

    def test_other_wallet_cannot_open(self, sealed, bob_keys):
        _, memo = sealed
        assert NoteMemo.open(memo, bob_keys.view_private_key, bob_keys.spend_public_key) is None

    def test_tampered_ciphertext(self, sealed, alice_keys):
        _, memo = sealed
        tampered = memo[:-1] + bytes([memo[-1] ^ 1])
        assert NoteMemo.open(tampered, alice_keys.view_private_key, alice_keys.spend_public_key) is None

    def test_empty_and_short(self, alice_keys):
        assert NoteMemo.open(b"", alice_keys.view_private_key, alice_keys.spend_public_key) is None
        assert NoteMemo.open(b"\x00" * 10, alice_keys.view_private_key, alice_keys.spend_public_key) is None

    def test_bad_token(self, alice_keys):
        stealth, shared = StealthAddressEngine.generate_with_secret(
            alice_keys.view_public_key, alice_keys.spend_public_key
        )
        with pytest.raises(MemoError):
            NoteMemo.seal(shared, stealth, 1, 1, "0x1234")
