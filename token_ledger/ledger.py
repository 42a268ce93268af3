"""
ledger.py - Stateful In-Memory Token Ledger

LedgerModel is the central state manager of the token ledger. It is the only
module that mutates state.

Key responsibilities:
    - Creates accounts and fungible tokens, assigning shard.realm.num ids
    - Gates token balances behind association
    - Executes transactions atomically (validation completes before any effect)
    - Mints new supply into a token's treasury
    - Answers balance queries in smallest units and whole-token display form
    - Records every applied transaction and can replay, clone and snapshot itself
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Any, Callable, Iterable, Tuple, Union
import json

from .core import (
    # Types
    Token, Account, AccountBalance, TransferIntent, AccountAmount, Receipt,
    TransactionKind, TransactionBody,
    CreateAccount, CreateToken, AssociateToken, TransferTokens, MintTokens,
    AccountId, TokenId, Amount, Positions, WholeAmount,
    # Constants
    DEFAULT_SHARD, DEFAULT_REALM, FIRST_ENTITY_NUM,
    SUPPLY_TYPE_INFINITE, TOKEN_TYPE_FUNGIBLE_COMMON,
    # Exceptions
    LedgerError, UnknownAccount, UnknownToken, UnassociatedAccount,
    UnbalancedIntent, InsufficientBalance, SnapshotError,
    # Helper functions
    format_entity_id, _require_amount, _require_id,
)


class LedgerModel:
    """
    In-memory simulation of accounts and fungible tokens.

    Every mutating operation is expressed as an immutable transaction body and
    routed through execute(), the single submission function. The convenience
    methods (create_account, create_token, associate, transfer, mint) build
    the body for you and unpack the receipt.

    Design Principles:
        - Validate, then apply: every check runs before the first mutation,
          so a failed call leaves no trace and the model stays usable.
        - Always logs: every applied transaction is appended to
          transaction_log, enabling replay().
        - No authorization: keys are recorded but never checked here.
          Signature checks belong to the submitting client.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own LedgerModel.

    Example:
        model = LedgerModel("demo", verbose=False)
        treasury = model.create_account(1000)
        token = model.create_token("MYT", 2, treasury, 1000)
        alice = model.create_account(1000)
        model.associate(alice, token)
        model.transfer(token, [(treasury, -5000), (alice, 5000)])
        model.display_balance(alice, token)   # "50.00"
    """

    def __init__(
        self,
        name: str = "ledger",
        verbose: bool = True,
        shard: int = DEFAULT_SHARD,
        realm: int = DEFAULT_REALM,
        first_entity_num: int = FIRST_ENTITY_NUM,
    ):
        """
        Create an empty ledger.

        Args:
            name: Ledger identifier
            verbose: Print one line per applied or rejected transaction (default: True)
            shard: Shard component of every id this ledger assigns
            realm: Realm component of every id this ledger assigns
            first_entity_num: Number given to the first account or token created
        """
        self.name = name
        self.verbose = verbose
        self.shard = _require_amount(shard, "shard")
        self.realm = _require_amount(realm, "realm")
        self.first_entity_num = _require_amount(first_entity_num, "first_entity_num")

        # Base-currency balance per account
        self.balances: Dict[AccountId, Amount] = {}
        # Token balances per account; the key set is the association set
        self.token_balances: Dict[AccountId, Dict[TokenId, Amount]] = {}
        self.public_keys: Dict[AccountId, Optional[str]] = {}
        self.tokens: Dict[TokenId, Token] = {}
        self.transaction_log: List[Receipt] = []

        # Accounts and tokens share one entity counter
        self._next_entity_num: int = first_entity_num
        self._next_sequence: int = 0

        self._handlers: Dict[TransactionKind, Callable[[Any], Dict[str, Any]]] = {
            TransactionKind.ACCOUNT_CREATE: self._apply_create_account,
            TransactionKind.TOKEN_CREATE: self._apply_create_token,
            TransactionKind.TOKEN_ASSOCIATE: self._apply_associate,
            TransactionKind.TOKEN_TRANSFER: self._apply_transfer,
            TransactionKind.TOKEN_MINT: self._apply_mint,
        }

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def balance_of(self, account_id: AccountId, token_id: TokenId) -> Amount:
        """
        Token balance of an account in smallest units.

        Returns 0 when the account is not associated with the token, or when
        either id is unknown. Querying never raises.
        """
        return self.token_balances.get(account_id, {}).get(token_id, 0)

    def display_balance(self, account_id: AccountId, token_id: TokenId) -> str:
        """
        Token balance in whole tokens, fixed to the token's decimals.

        Example: 95000 units of a 2-decimal token -> "950.00"

        Raises:
            UnknownToken: If the token does not exist (its precision is unknown)
        """
        token = self._require_token(token_id)
        return token.display(self.balance_of(account_id, token_id))

    def get_account(self, account_id: AccountId) -> Account:
        """Return a read-only snapshot of an account."""
        self._require_account(account_id)
        return Account(
            account_id=account_id,
            balance=self.balances[account_id],
            token_balances=dict(self.token_balances[account_id]),
            public_key=self.public_keys.get(account_id),
        )

    def get_token(self, token_id: TokenId) -> Token:
        """Return the Token definition for a given id."""
        return self._require_token(token_id)

    def list_accounts(self) -> List[AccountId]:
        """List all account ids in creation order."""
        return list(self.balances)

    def list_tokens(self) -> List[TokenId]:
        """List all token ids in creation order."""
        return list(self.tokens)

    def has_account(self, account_id: AccountId) -> bool:
        return account_id in self.balances

    def is_associated(self, account_id: AccountId, token_id: TokenId) -> bool:
        return token_id in self.token_balances.get(account_id, {})

    def account_balance(self, account_id: AccountId) -> Amount:
        """Base-currency balance of an account in smallest units."""
        self._require_account(account_id)
        return self.balances[account_id]

    def query_balance(self, account_id: AccountId) -> AccountBalance:
        """
        Base-currency balance plus every associated token balance.

        Mirrors the network's account balance query.
        """
        self._require_account(account_id)
        return AccountBalance(
            account_id=account_id,
            balance=self.balances[account_id],
            tokens=dict(self.token_balances[account_id]),
        )

    def total_supply(self, token_id: TokenId) -> Amount:
        """Recorded total supply of a token in smallest units."""
        return self._require_token(token_id).total_supply

    def get_positions(self, token_id: TokenId) -> Positions:
        """
        All non-zero holdings of a token.

        Returns a dictionary mapping account ids to balances.
        """
        self._require_token(token_id)
        return {
            account_id: held[token_id]
            for account_id, held in self.token_balances.items()
            if held.get(token_id, 0) != 0
        }

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify that conservation holds for every token.

        For each token the sum of all account balances must equal the
        recorded total supply: transfers only move value, and mint adds to
        both sides at once.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every token balances
            - 'supplies': Dict[str, int] - Sum of balances per token
            - 'discrepancies': List[Dict] - token, expected, actual, difference

        Example:
            result = model.verify_supply()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []
        for token_id, token in self.tokens.items():
            held = sum(balances.get(token_id, 0) for balances in self.token_balances.values())
            supplies[token_id] = held
            if held != token.total_supply:
                discrepancies.append({
                    'token': token_id,
                    'expected': token.total_supply,
                    'actual': held,
                    'difference': held - token.total_supply,
                })
        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def create_account(self, initial_balance: Amount = 0, public_key: Optional[str] = None) -> AccountId:
        """
        Create an account holding initial_balance base-currency units.

        Returns:
            The new account id

        Raises:
            ValueError: If initial_balance is negative or not an int
        """
        return self.execute(CreateAccount(initial_balance, public_key)).account_id

    def create_token(
        self,
        symbol: str,
        decimals: int,
        treasury_account_id: AccountId,
        initial_supply: WholeAmount = 0,
        name: Optional[str] = None,
        supply_key: Optional[str] = None,
    ) -> TokenId:
        """
        Create a fungible token and issue its initial supply to the treasury.

        The treasury is associated with the token implicitly and credited
        initial_supply * 10**decimals units.

        Returns:
            The new token id

        Raises:
            UnknownAccount: If the treasury account does not exist
        """
        body = CreateToken(
            symbol=symbol,
            decimals=decimals,
            treasury_account_id=treasury_account_id,
            initial_supply=initial_supply,
            name=name,
            supply_key=supply_key,
        )
        return self.execute(body).token_id

    def associate(self, account_id: AccountId, token_id: TokenId) -> None:
        """
        Associate an account with a token. Re-associating is a no-op.

        Raises:
            UnknownAccount: If the account does not exist
            UnknownToken: If the token does not exist
        """
        self.execute(AssociateToken(account_id, (token_id,)))

    def transfer(
        self,
        token_id: TokenId,
        intent: Union[TransferIntent, Iterable[Union[AccountAmount, Tuple[AccountId, Amount]]]],
    ) -> None:
        """
        Apply a balanced set of signed deltas to one token's balances.

        Args:
            token_id: Token being moved
            intent: TransferIntent, or (account_id, delta) pairs in smallest units

        Raises:
            UnknownToken: If the token does not exist
            UnknownAccount: If a participant does not exist
            UnassociatedAccount: If an account whose net delta is non-zero is not associated
            UnbalancedIntent: If the deltas do not sum to zero
            InsufficientBalance: If a debit would drive a balance negative
        """
        if not isinstance(intent, TransferIntent):
            intent = TransferIntent.of(intent)
        self.execute(TransferTokens(token_id, intent))

    def mint(self, token_id: TokenId, amount: WholeAmount) -> Amount:
        """
        Mint amount whole tokens into the token's treasury.

        Returns:
            The token's new total supply in smallest units

        Raises:
            UnknownToken: If the token does not exist
        """
        return self.execute(MintTokens(token_id, amount)).total_supply

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def execute(self, body: TransactionBody) -> Receipt:
        """
        Execute a transaction body atomically.

        Args:
            body: CreateAccount, CreateToken, AssociateToken, TransferTokens or MintTokens

        Returns:
            Receipt describing the applied transaction

        Raises:
            LedgerError: If validation fails (nothing is applied)
            ValueError: If a mint amount has more fractional digits than the token
            TypeError: If body is not a transaction body
        """
        handler = self._handlers.get(getattr(body, "kind", None))
        if handler is None:
            raise TypeError(f"Not a transaction body: {body!r}")

        try:
            outcome = handler(body)
        except (LedgerError, ValueError) as e:
            if self.verbose:
                print(f"✗ REJECTED: {body.kind.value}: {e}")
            raise

        sequence = self._next_sequence
        self._next_sequence += 1
        receipt = Receipt(
            body=body,
            intent_id=body.intent_id,
            sequence_number=sequence,
            **outcome,
        )
        self.transaction_log.append(receipt)

        if self.verbose:
            print(f"✓ APPLIED: {receipt!r}")
        return receipt

    def _apply_create_account(self, body: CreateAccount) -> Dict[str, Any]:
        account_id = self._allocate_id()
        self.balances[account_id] = body.initial_balance
        self.token_balances[account_id] = {}
        self.public_keys[account_id] = body.public_key
        return {'account_id': account_id}

    def _apply_create_token(self, body: CreateToken) -> Dict[str, Any]:
        self._require_account(body.treasury_account_id)
        supply = body.initial_supply_units

        token_id = self._allocate_id()
        self.tokens[token_id] = Token(
            token_id=token_id,
            symbol=body.symbol,
            name=body.name or body.symbol,
            decimals=body.decimals,
            treasury_account_id=body.treasury_account_id,
            total_supply=supply,
            supply_type=body.supply_type,
            token_type=TOKEN_TYPE_FUNGIBLE_COMMON,
            supply_key=body.supply_key,
        )
        self.token_balances[body.treasury_account_id][token_id] = supply
        return {'token_id': token_id, 'total_supply': supply}

    def _apply_associate(self, body: AssociateToken) -> Dict[str, Any]:
        self._require_account(body.account_id)
        for token_id in body.token_ids:
            self._require_token(token_id)

        held = self.token_balances[body.account_id]
        for token_id in body.token_ids:
            held.setdefault(token_id, 0)

        single = body.token_ids[0] if len(body.token_ids) == 1 else None
        return {'account_id': body.account_id, 'token_id': single}

    def _apply_transfer(self, body: TransferTokens) -> Dict[str, Any]:
        token = self._require_token(body.token_id)
        intent = body.intent

        for leg in intent:
            self._require_account(leg.account_id)
        net = intent.net_changes()
        for account_id, delta in net.items():
            if delta != 0 and not self.is_associated(account_id, token.token_id):
                raise UnassociatedAccount(
                    f"Account {account_id} is not associated with {token.token_id} ({token.symbol})"
                )

        total = intent.total()
        if total != 0:
            raise UnbalancedIntent(
                f"Transfer of {token.token_id} ({token.symbol}) does not balance: deltas sum to {total}"
            )

        # Compute every resulting balance before writing any of them
        proposed: Dict[AccountId, Amount] = {}
        for account_id, delta in net.items():
            if delta == 0:
                continue
            current = self.token_balances[account_id][token.token_id]
            if current + delta < 0:
                raise InsufficientBalance(
                    f"{account_id} {token.symbol}: balance {current} cannot cover {-delta}"
                )
            proposed[account_id] = current + delta

        for account_id, balance in proposed.items():
            self.token_balances[account_id][token.token_id] = balance
        return {'token_id': token.token_id}

    def _apply_mint(self, body: MintTokens) -> Dict[str, Any]:
        token = self._require_token(body.token_id)
        units = token.to_smallest_unit(body.amount)

        minted = replace(token, total_supply=token.total_supply + units)
        self.tokens[token.token_id] = minted
        treasury = self.token_balances[token.treasury_account_id]
        treasury[token.token_id] = treasury.get(token.token_id, 0) + units
        return {'token_id': token.token_id, 'total_supply': minted.total_supply}

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _allocate_id(self) -> str:
        entity_id = format_entity_id(self.shard, self.realm, self._next_entity_num)
        self._next_entity_num += 1
        return entity_id

    def _require_account(self, account_id: AccountId) -> None:
        if account_id not in self.balances:
            raise UnknownAccount(f"Account {account_id} does not exist")

    def _require_token(self, token_id: TokenId) -> Token:
        token = self.tokens.get(token_id)
        if token is None:
            raise UnknownToken(f"Token {token_id} does not exist")
        return token

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> LedgerModel:
        """
        Create an independent copy of this ledger.

        Modifications to the clone never affect the original and vice versa.
        Tokens and receipts are immutable and shared; balance maps are copied.
        """
        cloned = LedgerModel(
            name=self.name,
            verbose=self.verbose,
            shard=self.shard,
            realm=self.realm,
            first_entity_num=self.first_entity_num,
        )
        cloned.balances = dict(self.balances)
        cloned.token_balances = {
            account_id: dict(held) for account_id, held in self.token_balances.items()
        }
        cloned.public_keys = dict(self.public_keys)
        cloned.tokens = dict(self.tokens)
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_entity_num = self._next_entity_num
        cloned._next_sequence = self._next_sequence
        return cloned

    def replay(self, upto: Optional[int] = None) -> LedgerModel:
        """
        Create a new ledger by re-executing the transaction log.

        Because ids are assigned from a deterministic counter, the replayed
        ledger assigns the same ids as the original.

        Note: a ledger loaded with from_snapshot() has an empty log, so its
        replay is empty too. Use clone() to copy such a ledger.

        Args:
            upto: Replay only the first `upto` transactions (default: all)

        Returns:
            New LedgerModel with replayed state

        Raises:
            LedgerError: If a logged transaction fails to re-apply
        """
        new_model = LedgerModel(
            name=f"{self.name}_replayed",
            verbose=self.verbose,
            shard=self.shard,
            realm=self.realm,
            first_entity_num=self.first_entity_num,
        )
        for receipt in self.transaction_log[:upto]:
            try:
                new_model.execute(receipt.body)
            except LedgerError as e:
                raise LedgerError(
                    f"Replay failed at transaction #{receipt.sequence_number}: {e}"
                ) from e
        return new_model

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """
        Serialize accounts and tokens to a JSON-compatible dict.

        The transaction log is not included.
        """
        return {
            'name': self.name,
            'shard': self.shard,
            'realm': self.realm,
            'first_entity_num': self.first_entity_num,
            'next_entity_num': self._next_entity_num,
            'accounts': [
                {
                    'id': account_id,
                    'balance': self.balances[account_id],
                    'public_key': self.public_keys.get(account_id),
                    'associations': sorted(self.token_balances[account_id]),
                    'token_balances': dict(sorted(self.token_balances[account_id].items())),
                }
                for account_id in self.balances
            ],
            'tokens': [
                {
                    'id': token.token_id,
                    'symbol': token.symbol,
                    'name': token.name,
                    'decimals': token.decimals,
                    'treasury_account_id': token.treasury_account_id,
                    'total_supply': token.total_supply,
                    'supply_type': token.supply_type,
                    'token_type': token.token_type,
                    'supply_key': token.supply_key,
                }
                for token in self.tokens.values()
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.snapshot(), indent=2, sort_keys=True)

    @classmethod
    def from_json(cls, text: str, verbose: bool = False) -> LedgerModel:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e
        return cls.from_snapshot(data, verbose=verbose)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], verbose: bool = False) -> LedgerModel:
        """
        Rebuild a ledger from snapshot().

        Raises:
            SnapshotError: If the snapshot is malformed or violates a ledger invariant
        """
        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot must be an object, got {type(data).__name__}")
        try:
            model = cls(
                name=data.get('name', 'ledger'),
                verbose=verbose,
                shard=data.get('shard', DEFAULT_SHARD),
                realm=data.get('realm', DEFAULT_REALM),
                first_entity_num=data.get('first_entity_num', FIRST_ENTITY_NUM),
            )
            for entry in data['accounts']:
                model._load_account(entry)
            for entry in data['tokens']:
                model._load_token(entry)
            model._next_entity_num = max(
                data.get('next_entity_num', model.first_entity_num),
                model._max_entity_num() + 1,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SnapshotError(f"Malformed snapshot: {e!r}") from e

        model._check_loaded_state()
        return model

    def _load_account(self, entry: Dict[str, Any]) -> None:
        account_id = _require_id(entry['id'], "account id")
        if account_id in self.balances:
            raise SnapshotError(f"Duplicate account {account_id}")
        held = {token_id: 0 for token_id in entry.get('associations', [])}
        for token_id, balance in entry.get('token_balances', {}).items():
            if token_id not in held:
                raise SnapshotError(f"Account {account_id} holds {token_id} without association")
            held[token_id] = _require_amount(balance, f"{account_id} {token_id} balance")
        self.balances[account_id] = _require_amount(entry['balance'], f"{account_id} balance")
        self.token_balances[account_id] = held
        self.public_keys[account_id] = entry.get('public_key')

    def _load_token(self, entry: Dict[str, Any]) -> None:
        token_id = _require_id(entry['id'], "token id")
        if token_id in self.tokens or token_id in self.balances:
            raise SnapshotError(f"Duplicate entity id {token_id}")
        supply_type = entry.get('supply_type', SUPPLY_TYPE_INFINITE)
        if supply_type != SUPPLY_TYPE_INFINITE:
            raise SnapshotError(f"Token {token_id}: unsupported supply type {supply_type}")
        self.tokens[token_id] = Token(
            token_id=token_id,
            symbol=_require_id(entry['symbol'], f"{token_id} symbol"),
            name=entry.get('name') or entry['symbol'],
            decimals=_require_amount(entry['decimals'], f"{token_id} decimals"),
            treasury_account_id=_require_id(entry['treasury_account_id'], f"{token_id} treasury"),
            total_supply=_require_amount(entry['total_supply'], f"{token_id} total_supply"),
            supply_type=supply_type,
            token_type=entry.get('token_type', TOKEN_TYPE_FUNGIBLE_COMMON),
            supply_key=entry.get('supply_key'),
        )

    def _check_loaded_state(self) -> None:
        for account_id, held in self.token_balances.items():
            for token_id in held:
                if token_id not in self.tokens:
                    raise SnapshotError(f"Account {account_id} is associated with unknown token {token_id}")
        for token_id, token in self.tokens.items():
            if token.treasury_account_id not in self.balances:
                raise SnapshotError(f"Token {token_id}: unknown treasury {token.treasury_account_id}")
            if not self.is_associated(token.treasury_account_id, token_id):
                raise SnapshotError(f"Token {token_id}: treasury is not associated")
        result = self.verify_supply()
        if not result['valid']:
            raise SnapshotError(f"Supply does not match balances: {result['discrepancies']}")

    def _max_entity_num(self) -> int:
        nums = [self.first_entity_num - 1]
        for entity_id in list(self.balances) + list(self.tokens):
            last = entity_id.rsplit(".", 1)[-1]
            if last.isdigit():
                nums.append(int(last))
        return max(nums)
