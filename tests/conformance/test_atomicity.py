"""
Atomicity Conformance Tests

INVARIANT: Transactions are all-or-nothing.

A rejected transaction leaves every balance, every token, every association
and the transaction log exactly as they were. No partial application is
ever observable, including for multi-leg transfers where only the last leg
is invalid.
"""

import pytest
from decimal import Decimal
from hypothesis import given, settings
from hypothesis import strategies as st

from token_ledger import (
    LedgerModel, LedgerError, UnknownAccount, UnknownToken, UnassociatedAccount,
    UnbalancedIntent, InsufficientBalance, build_distribution,
    CreateToken, AssociateToken, MintTokens,
)


def build_ledger():
    """Treasury, two associated holders (5000 each) and one outsider."""
    model = LedgerModel("atomicity", verbose=False)
    treasury = model.create_account(1000)
    token = model.create_token("MYT", 2, treasury, 1000)
    alice = model.create_account(1000)
    bob = model.create_account(1000)
    outsider = model.create_account(1000)
    model.associate(alice, token)
    model.associate(bob, token)
    model.transfer(token, build_distribution(treasury, {alice: 5000, bob: 5000}))
    return model, token, treasury, alice, bob, outsider


def full_state(model: LedgerModel):
    return model.snapshot(), list(model.transaction_log)


class TestTransferAtomicity:
    """A failed transfer changes nothing."""

    def test_insufficient_last_leg_applies_nothing(self):
        model, token, treasury, alice, bob, _ = build_ledger()
        before = full_state(model)

        # First two legs are fine on their own; bob cannot cover the third
        with pytest.raises(InsufficientBalance):
            model.transfer(token, [
                (treasury, -1000), (alice, 1000),
                (bob, -6000), (treasury, 6000),
            ])

        assert full_state(model) == before

    def test_unbalanced_intent_applies_nothing(self):
        model, token, treasury, alice, bob, _ = build_ledger()
        before = full_state(model)
        with pytest.raises(UnbalancedIntent):
            model.transfer(token, [(treasury, -1000), (alice, 999)])
        assert full_state(model) == before

    def test_unassociated_recipient_applies_nothing(self):
        model, token, treasury, alice, bob, outsider = build_ledger()
        before = full_state(model)
        with pytest.raises(UnassociatedAccount):
            model.transfer(token, [(treasury, -1000), (alice, 500), (outsider, 500)])
        assert full_state(model) == before

    def test_unknown_participant_applies_nothing(self):
        model, token, treasury, alice, bob, _ = build_ledger()
        before = full_state(model)
        with pytest.raises(UnknownAccount):
            model.transfer(token, [(treasury, -1000), ("0.0.9999", 1000)])
        assert full_state(model) == before

    def test_unknown_token_applies_nothing(self):
        model, token, treasury, alice, bob, _ = build_ledger()
        before = full_state(model)
        with pytest.raises(UnknownToken):
            model.transfer("0.0.9999", [(treasury, -1), (alice, 1)])
        assert full_state(model) == before

    @given(st.lists(
        st.tuples(st.sampled_from(["treasury", "alice", "bob"]), st.integers(-20_000, 20_000)),
        min_size=1,
        max_size=6,
    ))
    @settings(max_examples=150)
    def test_transfer_either_applies_fully_or_not_at_all(self, legs):
        """
        PROPERTY: After any attempted transfer, each holder's balance has
        moved by its net delta (success) or not at all (failure).
        """
        model, token, treasury, alice, bob, _ = build_ledger()
        names = {"treasury": treasury, "alice": alice, "bob": bob}
        intent = [(names[name], delta) for name, delta in legs]
        before = {a: model.balance_of(a, token) for a in names.values()}

        try:
            model.transfer(token, intent)
            applied = True
        except LedgerError:
            applied = False

        for account_id, balance in before.items():
            expected = balance
            if applied:
                expected += sum(d for a, d in intent if a == account_id)
            assert model.balance_of(account_id, token) == expected


class TestOtherTransactionAtomicity:
    """Rejected creation, association and mint change nothing."""

    def test_create_token_with_unknown_treasury(self):
        model, *_ = build_ledger()
        before = full_state(model)
        with pytest.raises(UnknownAccount):
            model.execute(CreateToken("BAD", 2, "0.0.9999", 10))
        assert full_state(model) == before

    def test_failed_creation_does_not_consume_an_id(self):
        model, *_ = build_ledger()
        expected = model.clone().create_account()
        with pytest.raises(UnknownAccount):
            model.create_token("BAD", 2, "0.0.9999", 10)
        assert model.create_account() == expected

    def test_associate_with_one_unknown_token(self):
        model, token, treasury, alice, bob, outsider = build_ledger()
        before = full_state(model)
        with pytest.raises(UnknownToken):
            model.execute(AssociateToken(outsider, (token, "0.0.9999")))
        assert full_state(model) == before
        assert not model.is_associated(outsider, token)

    def test_mint_of_unknown_token(self):
        model, *_ = build_ledger()
        before = full_state(model)
        with pytest.raises(UnknownToken):
            model.execute(MintTokens("0.0.9999", 10))
        assert full_state(model) == before

    def test_mint_with_excess_precision(self):
        model, token, *_ = build_ledger()
        before = full_state(model)
        with pytest.raises(ValueError, match="fractional digits"):
            model.mint(token, Decimal("0.001"))
        assert full_state(model) == before
