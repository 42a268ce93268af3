"""
Core types and pure functions for the token ledger.

This module provides the foundational data structures for the token ledger:
1. Constants and type aliases: entity ids, supply and token types
2. Exceptions: LedgerError and the domain-specific error kinds
3. Immutable data structures: Token, Account, AccountAmount, TransferIntent
4. Transaction bodies: CreateAccount, CreateToken, AssociateToken,
   TransferTokens, MintTokens, plus the Receipt returned on success
5. Unit conversion: whole tokens <-> smallest units

All functions in this module are pure. Only LedgerModel mutates state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from enum import Enum
import hashlib
from typing import (
    Dict, List, Optional, Any, Tuple, FrozenSet, Mapping, Iterable, Union, ClassVar
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Entity ids take the form shard.realm.num (e.g. "0.0.1001").
DEFAULT_SHARD = 0
DEFAULT_REALM = 0
FIRST_ENTITY_NUM = 1001

# Supply and token type constants (strings, not enum, as unit types are).
SUPPLY_TYPE_INFINITE = "INFINITE"
TOKEN_TYPE_FUNGIBLE_COMMON = "FUNGIBLE_COMMON"

RECEIPT_STATUS_SUCCESS = "SUCCESS"


# ============================================================================
# TYPE ALIASES
# ============================================================================

AccountId = str
TokenId = str

# Amount in a token's smallest unit (or the base currency's smallest unit).
Amount = int

# Mapping from token id to balance held by a single account.
TokenBalances = Dict[TokenId, Amount]

# Mapping from account id to balance held for a single token.
Positions = Dict[AccountId, Amount]

WholeAmount = Union[int, Decimal]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class UnknownAccount(LedgerError):
    """Raised when an operation names an account the ledger has never created."""
    pass


class UnknownToken(LedgerError):
    """Raised when an operation names a token the ledger has never created."""
    pass


class UnassociatedAccount(LedgerError):
    """Raised when an account sends or receives a token it is not associated with."""
    pass


class UnbalancedIntent(LedgerError):
    """Raised when the deltas of a transfer intent do not sum to zero."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a transfer would drive a token balance below zero."""
    pass


class MissingSignature(LedgerError):
    """Raised by the client when a key required by a transaction has not signed it."""
    pass


class SnapshotError(LedgerError):
    """Raised when a snapshot is internally inconsistent and cannot be loaded."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class TransactionKind(Enum):
    """Classification of a transaction body."""
    ACCOUNT_CREATE = "account_create"
    TOKEN_CREATE = "token_create"
    TOKEN_ASSOCIATE = "token_associate"
    TOKEN_TRANSFER = "token_transfer"
    TOKEN_MINT = "token_mint"


# ============================================================================
# VALIDATION AND CONVERSION
# ============================================================================

def _require_amount(value: Any, what: str) -> int:
    """Return value if it is a non-negative int, else raise ValueError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{what} must be non-negative, got {value}")
    return value


def _require_id(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} cannot be empty")
    return value


def format_entity_id(shard: int, realm: int, num: int) -> str:
    """Format an entity id as shard.realm.num."""
    return f"{shard}.{realm}.{num}"


def to_smallest_unit(amount: WholeAmount, decimals: int) -> Amount:
    """
    Convert a whole-token amount to smallest units: amount * 10**decimals.

    Accepts ints and Decimals. A Decimal with more fractional digits than
    the token supports is rejected rather than rounded.

    Raises:
        ValueError: If amount is negative, not representable, or decimals is invalid
    """
    _require_amount(decimals, "decimals")
    if isinstance(amount, Decimal):
        if not amount.is_finite() or amount < 0:
            raise ValueError(f"amount must be finite and non-negative, got {amount}")
        with localcontext() as ctx:
            ctx.prec = max(50, len(amount.as_tuple().digits) + decimals + 1)
            scaled = amount.scaleb(decimals)
            if scaled != scaled.to_integral_value():
                raise ValueError(
                    f"amount {amount} has more than {decimals} fractional digits"
                )
            return int(scaled)
    return _require_amount(amount, "amount") * 10 ** decimals


def to_whole_tokens(units: Amount, decimals: int) -> Decimal:
    """
    Convert smallest units to a Decimal whole-token amount.

    The result carries exactly `decimals` fractional digits, so
    to_whole_tokens(5000, 2) == Decimal("50.00") and str() of it is "50.00".
    """
    _require_amount(decimals, "decimals")
    with localcontext() as ctx:
        ctx.prec = max(50, len(str(abs(units))) + 1)
        return Decimal(units).scaleb(-decimals)


def format_display(units: Amount, decimals: int) -> str:
    """Fixed-point display string for a balance, e.g. 95000 @ 2 -> "950.00"."""
    return format(to_whole_tokens(units, decimals), "f")


# ============================================================================
# CANONICAL SERIALIZATION
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing and signing.

    Dict keys are sorted so that insertion order never changes the payload.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{format(value.normalize(), 'f')}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    if isinstance(value, AccountAmount):
        return f"AA:{value.account_id}:{value.amount}"
    if isinstance(value, TransferIntent):
        return _canonicalize(value.transfers)
    return f"R:{repr(value)}"


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Token:
    """
    Definition of a fungible token.

    Attributes:
        token_id: Identifier assigned by the ledger at creation.
        symbol: Ticker symbol (e.g. "MYT").
        name: Human-readable name (defaults to the symbol).
        decimals: Fixed decimal precision; one whole token is 10**decimals units.
        treasury_account_id: Account holding newly issued supply.
        total_supply: Supply in smallest units. Only ever grows.
        supply_type: Always SUPPLY_TYPE_INFINITE (no maximum enforced).
        token_type: Always TOKEN_TYPE_FUNGIBLE_COMMON.
        supply_key: Public key allowed to mint, checked by the client only.
    """
    token_id: TokenId
    symbol: str
    name: str
    decimals: int
    treasury_account_id: AccountId
    total_supply: Amount = 0
    supply_type: str = SUPPLY_TYPE_INFINITE
    token_type: str = TOKEN_TYPE_FUNGIBLE_COMMON
    supply_key: Optional[str] = None

    def to_smallest_unit(self, amount: WholeAmount) -> Amount:
        """Convert a whole-token amount to this token's smallest units."""
        return to_smallest_unit(amount, self.decimals)

    def display(self, units: Amount) -> str:
        """Format smallest units as whole tokens with `decimals` fractional digits."""
        return format_display(units, self.decimals)


@dataclass(frozen=True, slots=True)
class Account:
    """
    Read-only snapshot of an account.

    token_balances holds one entry per associated token, so the association
    set is exactly its key set.
    """
    account_id: AccountId
    balance: Amount
    token_balances: Mapping[TokenId, Amount] = field(default_factory=dict)
    public_key: Optional[str] = None

    @property
    def associations(self) -> FrozenSet[TokenId]:
        return frozenset(self.token_balances)

    def is_associated(self, token_id: TokenId) -> bool:
        return token_id in self.token_balances


@dataclass(frozen=True, slots=True)
class AccountBalance:
    """Result of a balance query: base-currency balance plus every token balance."""
    account_id: AccountId
    balance: Amount
    tokens: Mapping[TokenId, Amount]

    def token(self, token_id: TokenId) -> Amount:
        return self.tokens.get(token_id, 0)


# ============================================================================
# TRANSFER INTENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountAmount:
    """
    One leg of a transfer: a signed delta applied to an account's token balance.

    Negative amounts debit, positive amounts credit.
    """
    account_id: AccountId
    amount: Amount

    def __post_init__(self):
        _require_id(self.account_id, "AccountAmount account_id")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(
                f"AccountAmount amount must be an int, got {type(self.amount).__name__}"
            )

    def __repr__(self) -> str:
        sign = "+" if self.amount >= 0 else ""
        return f"AccountAmount({self.account_id} {sign}{self.amount})"


@dataclass(frozen=True, slots=True)
class TransferIntent:
    """
    An ordered set of signed deltas for a single token.

    A valid intent sums to zero. Construction does not enforce that;
    LedgerModel.transfer rejects unbalanced intents with UnbalancedIntent
    so the failure surfaces as a ledger error rather than a ValueError.
    """
    transfers: Tuple[AccountAmount, ...]

    def __post_init__(self):
        for leg in self.transfers:
            if not isinstance(leg, AccountAmount):
                raise ValueError(f"TransferIntent legs must be AccountAmount, got {leg!r}")

    @classmethod
    def of(cls, pairs: Iterable[Union[AccountAmount, Tuple[AccountId, Amount]]]) -> TransferIntent:
        """Build an intent from AccountAmount legs or (account_id, delta) pairs."""
        legs = []
        for pair in pairs:
            if isinstance(pair, AccountAmount):
                legs.append(pair)
            else:
                account_id, amount = pair
                legs.append(AccountAmount(account_id, amount))
        return cls(tuple(legs))

    def total(self) -> Amount:
        """Sum of all deltas. Zero for a balanced intent."""
        return sum(leg.amount for leg in self.transfers)

    def is_balanced(self) -> bool:
        return self.total() == 0

    def net_changes(self) -> Dict[AccountId, Amount]:
        """
        Net delta per account, in first-appearance order.

        Accounts that appear more than once are summed.
        """
        net: Dict[AccountId, Amount] = {}
        for leg in self.transfers:
            net[leg.account_id] = net.get(leg.account_id, 0) + leg.amount
        return net

    def accounts(self) -> List[AccountId]:
        return list(self.net_changes())

    def __len__(self) -> int:
        return len(self.transfers)

    def __iter__(self):
        return iter(self.transfers)


def build_distribution(
    sender: AccountId,
    credits: Union[Mapping[AccountId, Amount], Iterable[Tuple[AccountId, Amount]]],
) -> TransferIntent:
    """
    Build a one-to-many transfer intent.

    The sender's debit is the sum of the individual credits, so unequal
    splits can never drift from the amount actually paid out.

    Args:
        sender: Account debited for the total
        credits: Mapping or pairs of recipient -> positive amount in smallest units

    Returns:
        TransferIntent with the sender's debit first, then one leg per recipient

    Example:
        intent = build_distribution("0.0.1001", {"0.0.1002": 10000, "0.0.1003": 10000})
        # [(0.0.1001, -20000), (0.0.1002, +10000), (0.0.1003, +10000)]
    """
    pairs = list(credits.items()) if isinstance(credits, Mapping) else list(credits)
    if not pairs:
        raise ValueError("Distribution needs at least one recipient")
    legs = []
    for recipient, amount in pairs:
        if _require_amount(amount, "credit") == 0:
            raise ValueError(f"Credit to {recipient} must be positive")
        if recipient == sender:
            raise ValueError("Sender cannot also be a recipient")
        legs.append(AccountAmount(recipient, amount))
    debit = AccountAmount(sender, -sum(leg.amount for leg in legs))
    return TransferIntent((debit, *legs))


# ============================================================================
# TRANSACTION BODIES
# ============================================================================
#
# Each network operation is an immutable body handed to a single submission
# function (LedgerModel.execute) instead of a chain of builder calls. Bodies
# validate their own field types; ledger-level checks happen at execution.

def _compute_intent_id(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class CreateAccount:
    """Create an account holding `initial_balance` smallest base-currency units."""
    kind: ClassVar[TransactionKind] = TransactionKind.ACCOUNT_CREATE

    initial_balance: Amount = 0
    public_key: Optional[str] = None

    def __post_init__(self):
        _require_amount(self.initial_balance, "initial_balance")

    def fields(self) -> Dict[str, Any]:
        return {"initial_balance": self.initial_balance, "public_key": self.public_key}

    def payload(self) -> bytes:
        return _payload(self)

    @property
    def intent_id(self) -> str:
        return _compute_intent_id(self.payload())


@dataclass(frozen=True, slots=True)
class CreateToken:
    """
    Create a fungible token.

    initial_supply is given in whole tokens and scaled by 10**decimals.
    """
    kind: ClassVar[TransactionKind] = TransactionKind.TOKEN_CREATE

    symbol: str
    decimals: int
    treasury_account_id: AccountId
    initial_supply: WholeAmount = 0
    name: Optional[str] = None
    supply_key: Optional[str] = None
    supply_type: str = SUPPLY_TYPE_INFINITE

    def __post_init__(self):
        _require_id(self.symbol, "CreateToken symbol")
        _require_id(self.treasury_account_id, "CreateToken treasury_account_id")
        _require_amount(self.decimals, "decimals")
        # Raises ValueError for negative or over-precise supplies
        to_smallest_unit(self.initial_supply, self.decimals)
        if self.supply_type != SUPPLY_TYPE_INFINITE:
            raise ValueError(f"Unsupported supply type: {self.supply_type}")

    @property
    def initial_supply_units(self) -> Amount:
        return to_smallest_unit(self.initial_supply, self.decimals)

    def fields(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "treasury_account_id": self.treasury_account_id,
            "initial_supply": self.initial_supply,
            "supply_key": self.supply_key,
            "supply_type": self.supply_type,
        }

    def payload(self) -> bytes:
        return _payload(self)

    @property
    def intent_id(self) -> str:
        return _compute_intent_id(self.payload())


@dataclass(frozen=True, slots=True)
class AssociateToken:
    """Associate an account with one or more tokens."""
    kind: ClassVar[TransactionKind] = TransactionKind.TOKEN_ASSOCIATE

    account_id: AccountId
    token_ids: Tuple[TokenId, ...]

    def __post_init__(self):
        _require_id(self.account_id, "AssociateToken account_id")
        if isinstance(self.token_ids, str):
            object.__setattr__(self, "token_ids", (self.token_ids,))
        else:
            object.__setattr__(self, "token_ids", tuple(self.token_ids))
        if not self.token_ids:
            raise ValueError("AssociateToken needs at least one token id")
        for token_id in self.token_ids:
            _require_id(token_id, "AssociateToken token id")

    def fields(self) -> Dict[str, Any]:
        return {"account_id": self.account_id, "token_ids": self.token_ids}

    def payload(self) -> bytes:
        return _payload(self)

    @property
    def intent_id(self) -> str:
        return _compute_intent_id(self.payload())


@dataclass(frozen=True, slots=True)
class TransferTokens:
    """Apply a transfer intent to one token's balances."""
    kind: ClassVar[TransactionKind] = TransactionKind.TOKEN_TRANSFER

    token_id: TokenId
    intent: TransferIntent

    def __post_init__(self):
        _require_id(self.token_id, "TransferTokens token_id")
        if not isinstance(self.intent, TransferIntent):
            object.__setattr__(self, "intent", TransferIntent.of(self.intent))

    def fields(self) -> Dict[str, Any]:
        return {"token_id": self.token_id, "intent": self.intent}

    def payload(self) -> bytes:
        return _payload(self)

    @property
    def intent_id(self) -> str:
        return _compute_intent_id(self.payload())


@dataclass(frozen=True, slots=True)
class MintTokens:
    """Mint `amount` whole tokens into the token's treasury."""
    kind: ClassVar[TransactionKind] = TransactionKind.TOKEN_MINT

    token_id: TokenId
    amount: WholeAmount

    def __post_init__(self):
        _require_id(self.token_id, "MintTokens token_id")
        if isinstance(self.amount, Decimal):
            if not self.amount.is_finite() or self.amount < 0:
                raise ValueError(f"amount must be finite and non-negative, got {self.amount}")
        else:
            _require_amount(self.amount, "amount")

    def fields(self) -> Dict[str, Any]:
        amount = self.amount
        # Decimal("5") and 5 mint the same thing
        if isinstance(amount, Decimal) and amount == amount.to_integral_value():
            amount = int(amount)
        return {"token_id": self.token_id, "amount": amount}

    def payload(self) -> bytes:
        return _payload(self)

    @property
    def intent_id(self) -> str:
        return _compute_intent_id(self.payload())


TransactionBody = Union[CreateAccount, CreateToken, AssociateToken, TransferTokens, MintTokens]


def _payload(body: TransactionBody) -> bytes:
    """Canonical bytes of a body: what a signer signs and what intent_id hashes."""
    return f"{body.kind.value}|{_canonicalize(body.fields())}".encode()


# ============================================================================
# SIGNING AND RECEIPTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class SignaturePair:
    """A signature over a body's payload, tagged with the signer's public key."""
    public_key: str
    signature: bytes


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    """A transaction body together with the signatures collected for it."""
    body: TransactionBody
    signatures: Tuple[SignaturePair, ...] = ()

    @property
    def public_keys(self) -> FrozenSet[str]:
        return frozenset(sig.public_key for sig in self.signatures)

    def is_signed_by(self, public_key: str) -> bool:
        return public_key in self.public_keys


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    Outcome of a successfully executed transaction - represents FACT.

    Attributes:
        body: The transaction body that was executed
        intent_id: Content hash of the body
        sequence_number: Monotonic position in the ledger's transaction log
        status: Always RECEIPT_STATUS_SUCCESS (failures raise instead)
        account_id: New account id (CreateAccount)
        token_id: Token the transaction created or touched
        total_supply: Token supply after the transaction (CreateToken, MintTokens)
    """
    body: TransactionBody
    intent_id: str
    sequence_number: int
    status: str = RECEIPT_STATUS_SUCCESS
    account_id: Optional[AccountId] = None
    token_id: Optional[TokenId] = None
    total_supply: Optional[Amount] = None

    @property
    def kind(self) -> TransactionKind:
        return self.body.kind

    def __repr__(self) -> str:
        parts = [f"#{self.sequence_number}", self.kind.value, self.status]
        if self.account_id:
            parts.append(f"account={self.account_id}")
        if self.token_id:
            parts.append(f"token={self.token_id}")
        if self.total_supply is not None:
            parts.append(f"supply={self.total_supply}")
        return f"Receipt({', '.join(parts)})"
