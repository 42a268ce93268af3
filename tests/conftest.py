"""
conftest.py - Shared pytest fixtures for token ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Empty ledgers
- A token ledger with a funded treasury and associated recipients
- Signers and a client bound to the treasury
"""

import pytest

from token_ledger import LedgerModel, Client, DigestSigner


def ledger_state(model: LedgerModel) -> dict:
    """Snapshot without the ledger name, for comparing two ledgers."""
    state = model.snapshot()
    state.pop("name")
    return state


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def state_of():
    """The ledger_state helper, for tests comparing two ledgers."""
    return ledger_state


@pytest.fixture
def empty_model():
    """Fresh ledger with no accounts or tokens."""
    return LedgerModel("test", verbose=False)


@pytest.fixture
def token_model():
    """
    Ledger with a treasury holding 1000.00 MYT (decimals=2) and two
    unassociated accounts.

    Returns (model, token_id, treasury, alice, bob).
    """
    model = LedgerModel("test", verbose=False)
    treasury = model.create_account(1000)
    token = model.create_token("MYT", 2, treasury, 1000)
    alice = model.create_account(1000)
    bob = model.create_account(1000)
    return model, token, treasury, alice, bob


@pytest.fixture
def associated_model(token_model):
    """token_model with alice and bob associated with MYT."""
    model, token, treasury, alice, bob = token_model
    model.associate(alice, token)
    model.associate(bob, token)
    return token_model


# =============================================================================
# SIGNING FIXTURES
# =============================================================================

@pytest.fixture
def signers():
    """Deterministic signers keyed by role."""
    return {
        role: DigestSigner.from_seed(role)
        for role in ("operator", "supply", "alice", "bob", "mallory")
    }


@pytest.fixture
def client_setup(signers):
    """
    Ledger whose treasury is owned by the operator signer, plus a Client.

    Returns (model, client, treasury).
    """
    model = LedgerModel("test", verbose=False)
    treasury = model.create_account(1_000_000, public_key=signers["operator"].public_key)
    return model, Client(model, treasury, signers["operator"]), treasury
