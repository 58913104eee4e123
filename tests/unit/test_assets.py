"""
test_assets.py - Tests for the AssetLedger host ledger

Tests:
- Wallet registration
- Fungible transfers: success, rejection, no partial application
- Non-fungible ownership and transfers
- test_mode guard on set_balance
"""

import pytest

from lending import AssetLedger, AssetRegistry, TokenLedger, LendingError, UINT256_MAX


@pytest.fixture
def chain():
    assets = AssetLedger("chain", test_mode=True)
    assets.register_wallet("alice")
    assets.register_wallet("bob")
    assets.mint("USDC", "alice", 1_000)
    assets.mint_nft("PUNKS", "alice", 1)
    return assets


class TestRegistration:

    def test_implements_protocols(self, chain):
        assert isinstance(chain, TokenLedger)
        assert isinstance(chain, AssetRegistry)

    def test_duplicate_wallet(self, chain):
        with pytest.raises(ValueError, match="already registered"):
            chain.register_wallet("alice")

    def test_empty_wallet(self, chain):
        with pytest.raises(ValueError):
            chain.register_wallet("")


class TestTokenTransfers:

    def test_transfer(self, chain):
        assert chain.transfer("USDC", "alice", "bob", 400) is True
        assert chain.balance_of("alice", "USDC") == 600
        assert chain.balance_of("bob", "USDC") == 400
        assert chain.transfer_log[-1].amount == 400

    def test_insufficient_funds_changes_nothing(self, chain):
        assert chain.transfer("USDC", "alice", "bob", 1_001) is False
        assert chain.balance_of("alice", "USDC") == 1_000
        assert chain.balance_of("bob", "USDC") == 0
        assert chain.transfer_log == []

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_invalid_amounts(self, chain, amount):
        assert chain.transfer("USDC", "alice", "bob", amount) is False

    def test_unregistered_wallet(self, chain):
        assert chain.transfer("USDC", "alice", "mallory", 1) is False
        assert chain.balance_of("alice", "USDC") == 1_000

    def test_self_transfer(self, chain):
        assert chain.transfer("USDC", "alice", "alice", 1) is False

    def test_supply_conserved(self, chain):
        chain.transfer("USDC", "alice", "bob", 250)
        chain.transfer("USDC", "bob", "alice", 50)
        assert chain.total_supply("USDC") == 1_000

    def test_unknown_owner_has_zero_balance(self, chain):
        assert chain.balance_of("nobody", "USDC") == 0

    def test_mint_overflow(self, chain):
        from lending import ArithmeticOverflow
        with pytest.raises(ArithmeticOverflow):
            chain.mint("USDC", "alice", UINT256_MAX)


class TestNftTransfers:

    def test_ownership(self, chain):
        assert chain.owner_of("PUNKS", 1) == "alice"
        assert chain.nft_balance_of("alice", "PUNKS") == 1
        assert chain.owner_of("PUNKS", 2) is None

    def test_transfer(self, chain):
        assert chain.transfer_nft("PUNKS", "alice", "bob", 1) is True
        assert chain.owner_of("PUNKS", 1) == "bob"
        assert chain.nft_balance_of("alice", "PUNKS") == 0
        assert chain.nft_balance_of("bob", "PUNKS") == 1
        assert chain.units_of("bob", "PUNKS") == [1]

    def test_non_owner_cannot_transfer(self, chain):
        assert chain.transfer_nft("PUNKS", "bob", "alice", 1) is False
        assert chain.owner_of("PUNKS", 1) == "alice"

    def test_missing_unit(self, chain):
        assert chain.transfer_nft("PUNKS", "alice", "bob", 99) is False

    def test_duplicate_mint(self, chain):
        with pytest.raises(ValueError, match="already exists"):
            chain.mint_nft("PUNKS", "bob", 1)


class TestTestMode:

    def test_set_balance_requires_test_mode(self):
        assets = AssetLedger("prod")
        assets.register_wallet("alice")
        with pytest.raises(LendingError, match="test_mode"):
            assets.set_balance("alice", "USDC", 10)

    def test_set_balance(self, chain):
        chain.set_balance("bob", "USDC", 77)
        assert chain.balance_of("bob", "USDC") == 77


class TestVerbose:

    def test_prints_transfers_and_rejections(self, capsys):
        assets = AssetLedger("chain", verbose=True)
        assets.register_wallet("alice")
        assets.register_wallet("bob")
        assets.mint("USDC", "alice", 10)
        assets.transfer("USDC", "alice", "bob", 5)
        assets.transfer("USDC", "alice", "bob", 50)
        out = capsys.readouterr().out
        assert "✓ chain" in out
        assert "✗ chain REJECTED" in out
