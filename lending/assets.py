"""
assets.py - In-Memory Host Ledger for Tokens and Collateral

AssetLedger is a reference implementation of the two transfer collaborators
the lending pool consumes:

    - TokenLedger:   fungible balances per (wallet, currency)
    - AssetRegistry: non-fungible ownership per (asset class, unit id)

Key responsibilities:
    - Maintains wallet registrations, balances and unit ownership
    - Applies each transfer completely or not at all, reporting failure
      with a False return rather than raising (as token contracts do)
    - Records every applied transfer in an audit trail
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .core import LendingError, is_uint256, checked_add


@dataclass(frozen=True, slots=True)
class Transfer:
    """
    An applied transfer of a currency amount or of one collateral unit.

    Attributes:
        kind: "token" or "nft".
        symbol: Currency (token) or asset class (nft).
        source: Wallet debited.
        dest: Wallet credited.
        amount: Token amount, or 1 for an nft.
        unit_id: Unit id for an nft, None for tokens.
    """
    kind: str
    symbol: str
    source: str
    dest: str
    amount: int
    unit_id: Optional[int] = None

    def __repr__(self) -> str:
        what = f"{self.symbol}#{self.unit_id}" if self.kind == "nft" else f"{self.amount} {self.symbol}"
        return f"Transfer({what}: {self.source}→{self.dest})"


class AssetLedger:
    """
    Wallet-based ledger of fungible balances and non-fungible ownership.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own instance.

    Example:
        assets = AssetLedger("chain", test_mode=True)
        assets.register_wallet("alice")
        assets.register_wallet("lending_pool")
        assets.mint("USDC", "lending_pool", 1_000_000)
        assets.mint_nft("PUNKS", "alice", 7)
        assets.transfer_nft("PUNKS", "alice", "lending_pool", 7)   # True
    """

    def __init__(self, name: str, verbose: bool = False, test_mode: bool = False):
        """
        Create an asset ledger.

        Args:
            name: Ledger identifier
            verbose: Print each transfer and rejection (default: False)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.verbose = verbose
        self._test_mode = test_mode
        self.registered_wallets: Set[str] = set()
        self.balances: Dict[str, Dict[str, int]] = {}
        # (asset, unit_id) -> owner
        self.owners: Dict[Tuple[str, int], str] = {}
        # Inverted index owner -> asset -> count for O(1) nft_balance_of
        self._nft_counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.transfer_log: List[Transfer] = []

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is already registered or the id is empty
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TokenLedger PROTOCOL IMPLEMENTATION
    # ========================================================================

    def balance_of(self, owner: str, currency: str) -> int:
        """Balance of a currency in a wallet (0 for unknown wallets)."""
        if owner not in self.balances:
            return 0
        return self.balances[owner].get(currency, 0)

    def transfer(self, currency: str, source: str, dest: str, amount: int) -> bool:
        """
        Move `amount` of `currency` from source to dest.

        Returns False (and changes nothing) for unregistered wallets,
        non-positive amounts, self-transfers, or insufficient funds.
        """
        reason = None
        if not self.is_registered(source) or not self.is_registered(dest):
            reason = f"wallet not registered: {source if not self.is_registered(source) else dest}"
        elif not is_uint256(amount) or amount == 0:
            reason = f"invalid amount {amount!r}"
        elif source == dest:
            reason = "source and dest must be different"
        elif self.balances[source][currency] < amount:
            reason = f"{source} {currency}: {self.balances[source][currency]} < {amount}"

        if reason is not None:
            self._reject(reason)
            return False

        self.balances[source][currency] -= amount
        self.balances[dest][currency] += amount
        self._record(Transfer("token", currency, source, dest, amount))
        return True

    def mint(self, currency: str, to: str, amount: int) -> None:
        """
        Issue new currency into a wallet.

        Raises:
            ValueError: For unregistered wallets or non-positive amounts
        """
        if not self.is_registered(to):
            raise ValueError(f"Wallet {to} not registered")
        if not is_uint256(amount) or amount == 0:
            raise ValueError(f"mint amount must be a positive int, got {amount!r}")
        self.balances[to][currency] = checked_add(self.balances[to][currency], amount)

    def total_supply(self, currency: str) -> int:
        return sum(self.balances[w].get(currency, 0) for w in sorted(self.registered_wallets))

    def set_balance(self, wallet_id: str, currency: str, amount: int) -> None:
        """
        Set a wallet's balance directly.

        WARNING: Bypasses transfers and is only available in test mode.

        Raises:
            LendingError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LendingError(
                "set_balance() is disabled in production mode. "
                "Use mint() and transfer() to modify balances. "
                "Set test_mode=True when creating AssetLedger for testing."
            )
        if not self.is_registered(wallet_id):
            raise ValueError(f"Wallet {wallet_id} not registered")
        if not is_uint256(amount):
            raise ValueError(f"balance must be a non-negative int, got {amount!r}")
        self.balances[wallet_id][currency] = amount

    # ========================================================================
    # AssetRegistry PROTOCOL IMPLEMENTATION
    # ========================================================================

    def nft_balance_of(self, owner: str, asset: str) -> int:
        if owner not in self._nft_counts:
            return 0
        return self._nft_counts[owner].get(asset, 0)

    def owner_of(self, asset: str, unit_id: int) -> Optional[str]:
        return self.owners.get((asset, unit_id))

    def transfer_nft(self, asset: str, source: str, dest: str, unit_id: int) -> bool:
        """
        Move collateral unit `asset#unit_id` from source to dest.

        Returns False (and changes nothing) if source is not the owner or
        dest is not registered.
        """
        owner = self.owners.get((asset, unit_id))
        reason = None
        if owner is None:
            reason = f"{asset}#{unit_id} does not exist"
        elif owner != source:
            reason = f"{asset}#{unit_id} owned by {owner}, not {source}"
        elif not self.is_registered(dest):
            reason = f"wallet not registered: {dest}"
        elif source == dest:
            reason = "source and dest must be different"

        if reason is not None:
            self._reject(reason)
            return False

        self.owners[(asset, unit_id)] = dest
        self._nft_counts[source][asset] -= 1
        self._nft_counts[dest][asset] += 1
        self._record(Transfer("nft", asset, source, dest, 1, unit_id))
        return True

    def mint_nft(self, asset: str, to: str, unit_id: int) -> None:
        """
        Create collateral unit `asset#unit_id` owned by `to`.

        Raises:
            ValueError: If the unit already exists or the wallet is unknown
        """
        if not self.is_registered(to):
            raise ValueError(f"Wallet {to} not registered")
        if (asset, unit_id) in self.owners:
            raise ValueError(f"{asset}#{unit_id} already exists")
        self.owners[(asset, unit_id)] = to
        self._nft_counts[to][asset] += 1

    def units_of(self, owner: str, asset: str) -> List[int]:
        """Unit ids of an asset class held by owner, sorted."""
        return sorted(uid for (a, uid), o in self.owners.items() if a == asset and o == owner)

    # ========================================================================
    # AUDIT
    # ========================================================================

    def _record(self, transfer: Transfer) -> None:
        self.transfer_log.append(transfer)
        if self.verbose:
            print(f"✓ {self.name}: {transfer!r}")

    def _reject(self, reason: str) -> None:
        if self.verbose:
            print(f"✗ {self.name} REJECTED: {reason}")
