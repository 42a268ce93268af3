"""
Idempotency Conformance Tests

INVARIANT: Association is idempotent.

    ∀ account a, token t:
        state after associate(a, t); associate(a, t) = state after associate(a, t)

Re-associating never resets or alters an existing balance. Each call is
still recorded in the transaction log; "state" here means balances,
associations, tokens and the entity counter.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from token_ledger import LedgerModel, AssociateToken


def build_ledger():
    model = LedgerModel("idempotency", verbose=False)
    treasury = model.create_account(1000)
    token = model.create_token("MYT", 2, treasury, 1000)
    holder = model.create_account(1000)
    return model, token, treasury, holder


def state(model: LedgerModel):
    data = model.snapshot()
    data.pop('name')
    return data


class TestAssociationIdempotency:
    """Repeated association leaves state unchanged."""

    @given(st.integers(min_value=1, max_value=5))
    @settings(max_examples=20)
    def test_repeated_association_matches_single(self, repeats):
        single, token, _, holder = build_ledger()
        single.associate(holder, token)

        repeated, token, _, holder = build_ledger()
        for _ in range(repeats):
            repeated.associate(holder, token)

        assert state(repeated) == state(single)

    @given(st.integers(min_value=1, max_value=10_000))
    @settings(max_examples=50)
    def test_reassociation_preserves_balance(self, amount):
        model, token, treasury, holder = build_ledger()
        model.associate(holder, token)
        model.transfer(token, [(treasury, -amount), (holder, amount)])

        model.associate(holder, token)

        assert model.balance_of(holder, token) == amount
        assert model.verify_supply()['valid']

    def test_treasury_reassociation_is_noop(self):
        model, token, treasury, _ = build_ledger()
        before = state(model)
        model.associate(treasury, token)
        assert state(model) == before
        assert model.balance_of(treasury, token) == 100000

    def test_duplicate_ids_in_one_association(self):
        model, token, _, holder = build_ledger()
        model.execute(AssociateToken(holder, (token, token)))
        assert model.is_associated(holder, token)
        assert model.balance_of(holder, token) == 0

    def test_reassociation_is_logged(self):
        model, token, _, holder = build_ledger()
        model.associate(holder, token)
        model.associate(holder, token)
        kinds = [r.kind.value for r in model.transaction_log]
        assert kinds[-2:] == ["token_associate", "token_associate"]
        assert model.transaction_log[-1].intent_id == model.transaction_log[-2].intent_id
