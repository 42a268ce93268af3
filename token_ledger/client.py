"""
client.py - Submitting signed transactions to a LedgerModel

The Client plays the part of the network-facing orchestration layer: it
signs a transaction body with the operator key plus any extra signers,
checks that every key the network would demand has signed, and hands the
body to LedgerModel.execute().

Required keys:
    CreateAccount   operator only
    CreateToken     treasury account key
    AssociateToken  key of the account being associated
    TransferTokens  key of every account whose net delta is negative
    MintTokens      the token's supply key

Accounts created without a public key, and tokens without a supply key,
impose no requirement.

A required key counts as signed only when a signature tagged with it
verifies against the body's payload. Verification goes through the signers
the Client knows: the operator, every signer passed to submit(), and any
signer given to register().
"""

from __future__ import annotations
from typing import Dict, List, Optional, Set

from .core import (
    AccountId, Receipt, SignedTransaction, TransactionBody,
    CreateToken, AssociateToken, TransferTokens, MintTokens,
    MissingSignature,
)
from .keys import Signer, sign_transaction
from .ledger import LedgerModel


class Client:
    """
    Signs and submits transaction bodies on behalf of an operator account.

    Example:
        operator = DigestSigner.from_seed("operator")
        treasury = model.create_account(1000, public_key=operator.public_key)
        client = Client(model, treasury, operator)

        supply = DigestSigner.generate()
        receipt = client.submit(CreateToken("MYT", 2, treasury, 1000, supply_key=supply.public_key))
        client.submit(MintTokens(receipt.token_id, 500), supply)
    """

    def __init__(self, model: LedgerModel, operator_id: AccountId, operator_signer: Signer):
        """
        Args:
            model: Ledger to submit to
            operator_id: Account paying for and signing every submission
            operator_signer: The operator's signer

        Raises:
            UnknownAccount: If the operator account does not exist
        """
        model.account_balance(operator_id)
        self.model = model
        self.operator_id = operator_id
        self.operator_signer = operator_signer
        self.submitted: List[SignedTransaction] = []
        self._verifiers: Dict[str, Signer] = {}
        self.register(operator_signer)

    def register(self, *signers: Signer) -> None:
        """Make signers available for verifying submitted signatures."""
        for signer in signers:
            self._verifiers[signer.public_key] = signer

    def sign(self, body: TransactionBody, *signers: Signer) -> SignedTransaction:
        """Sign a body with the operator and each extra signer."""
        return sign_transaction(body, self.operator_signer, *signers)

    def required_keys(self, body: TransactionBody) -> Set[str]:
        """
        Public keys that must sign body.

        Raises:
            UnknownAccount / UnknownToken: If the body names an entity the model lacks
        """
        if isinstance(body, CreateToken):
            return self._account_keys([body.treasury_account_id])
        if isinstance(body, AssociateToken):
            return self._account_keys([body.account_id])
        if isinstance(body, TransferTokens):
            debited = [
                account_id
                for account_id, delta in body.intent.net_changes().items()
                if delta < 0
            ]
            return self._account_keys(debited)
        if isinstance(body, MintTokens):
            supply_key = self.model.get_token(body.token_id).supply_key
            return {supply_key} if supply_key else set()
        return set()

    def submit(self, body: TransactionBody, *signers: Signer) -> Receipt:
        """
        Sign body, check required signatures and execute it.

        Returns:
            Receipt from LedgerModel.execute()

        Raises:
            MissingSignature: If a required key did not sign (nothing is applied)
            LedgerError: Any validation failure raised by the ledger
        """
        self.register(*signers)
        return self.submit_signed(self.sign(body, *signers))

    def submit_signed(self, signed: SignedTransaction) -> Receipt:
        """
        Execute an already signed transaction after verifying its signatures.

        Raises:
            MissingSignature: If a required key has no signature that verifies
                against the body's payload, or the Client has no signer to
                verify it with
        """
        missing = self.required_keys(signed.body) - self.verified_keys(signed)
        if missing:
            if self.model.verbose:
                print(f"✗ REJECTED: {signed.body.kind.value}: missing {len(missing)} signature(s)")
            raise MissingSignature(
                f"{signed.body.kind.value} requires signatures from: "
                + ", ".join(sorted(key[:12] for key in missing))
            )
        receipt = self.model.execute(signed.body)
        self.submitted.append(signed)
        return receipt

    def verified_keys(self, signed: SignedTransaction) -> Set[str]:
        """Public keys whose signatures verify against the body's payload."""
        payload = signed.body.payload()
        keys = set()
        for pair in signed.signatures:
            verifier = self._verifiers.get(pair.public_key)
            if verifier is not None and verifier.verify(payload, pair.signature):
                keys.add(pair.public_key)
        return keys

    def _account_keys(self, account_ids) -> Set[str]:
        keys = set()
        for account_id in account_ids:
            key: Optional[str] = self.model.get_account(account_id).public_key
            if key:
                keys.add(key)
        return keys
