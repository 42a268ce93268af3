"""
token_ledger - In-Memory Fungible Token Ledger

A deterministic simulation of a distributed-ledger token service: accounts,
fungible tokens with fixed decimals, association gating, balanced transfers,
minting into a treasury, and whole-token balance display.

Usage:
    from token_ledger import LedgerModel, build_distribution

    model = LedgerModel("main", verbose=False)
    treasury = model.create_account(1000)
    token = model.create_token("MYT", decimals=2, treasury_account_id=treasury,
                               initial_supply=1000)

    alice = model.create_account(1000)
    model.associate(alice, token)
    model.transfer(token, [(treasury, -5000), (alice, 5000)])

    model.mint(token, 500)
    model.display_balance(treasury, token)   # "1450.00"
"""

# Core types
from .core import (
    Token,
    Account,
    AccountBalance,
    AccountAmount,
    TransferIntent,
    build_distribution,
    CreateAccount,
    CreateToken,
    AssociateToken,
    TransferTokens,
    MintTokens,
    TransactionBody,
    TransactionKind,
    Receipt,
    SignaturePair,
    SignedTransaction,
    LedgerError,
    UnknownAccount,
    UnknownToken,
    UnassociatedAccount,
    UnbalancedIntent,
    InsufficientBalance,
    MissingSignature,
    SnapshotError,
    to_smallest_unit,
    to_whole_tokens,
    format_display,
    format_entity_id,
    DEFAULT_SHARD,
    DEFAULT_REALM,
    FIRST_ENTITY_NUM,
    SUPPLY_TYPE_INFINITE,
    TOKEN_TYPE_FUNGIBLE_COMMON,
    RECEIPT_STATUS_SUCCESS,
)

# Ledger
from .ledger import LedgerModel

# Signing
from .keys import Signer, DigestSigner, sign_transaction

# Submission
from .client import Client

__all__ = [
    # Core
    'Token', 'Account', 'AccountBalance', 'AccountAmount', 'TransferIntent',
    'build_distribution',
    'CreateAccount', 'CreateToken', 'AssociateToken', 'TransferTokens', 'MintTokens',
    'TransactionBody', 'TransactionKind', 'Receipt', 'SignaturePair', 'SignedTransaction',
    'LedgerError', 'UnknownAccount', 'UnknownToken', 'UnassociatedAccount',
    'UnbalancedIntent', 'InsufficientBalance', 'MissingSignature', 'SnapshotError',
    'to_smallest_unit', 'to_whole_tokens', 'format_display', 'format_entity_id',
    'DEFAULT_SHARD', 'DEFAULT_REALM', 'FIRST_ENTITY_NUM',
    'SUPPLY_TYPE_INFINITE', 'TOKEN_TYPE_FUNGIBLE_COMMON', 'RECEIPT_STATUS_SUCCESS',
    # Ledger
    'LedgerModel',
    # Signing
    'Signer', 'DigestSigner', 'sign_transaction',
    # Submission
    'Client',
]

__version__ = '1.0.0'
