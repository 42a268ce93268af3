"""
Example: Creating, transferring, minting and distributing a fungible token.

Walks through the full token lifecycle against an in-memory LedgerModel:

    1. Create two recipient accounts
    2. Create the MYT token (2 decimals, 1000 whole tokens) in the treasury
    3. Associate recipient A and send it 50 MYT, then verify 950 / 50
    4. Mint 500 MYT, associate recipient B and send 100 MYT to each recipient
       in a single transfer, then verify the final balances

Every step is an immutable transaction body signed and submitted through a
Client, so the keys each step needs are explicit.
"""

import sys
from typing import Dict, List, Optional, Tuple

from token_ledger import (
    LedgerModel, Client, DigestSigner, LedgerError,
    CreateAccount, CreateToken, AssociateToken, TransferTokens, MintTokens,
    TransferIntent, build_distribution, to_smallest_unit,
)

# --- CONFIGURATION CONSTANTS ---
TOKEN_NAME = "MyToken"
TOKEN_SYMBOL = "MYT"
WHOLE_TOKENS_DECIMALS = 2
INITIAL_SUPPLY_TOKENS = 1000
RECIPIENT_A_INITIAL_TRANSFER = 50  # 950 / 50 split
MINT_NEW_TOKENS = 500
BULK_DISTRIBUTE_AMOUNT = 100  # sent to each of recipient A and B in step 4

OPERATOR_SEED = "operator"
OPERATOR_INITIAL_BALANCE = 10_000_000_000
RECIPIENT_INITIAL_BALANCE = 1000


def to_units(amount: int) -> int:
    return to_smallest_unit(amount, WHOLE_TOKENS_DECIMALS)


def check_balances(model: LedgerModel, accounts: List[Tuple[str, Optional[str]]], token_id: str) -> None:
    """Print each account's token balance in whole tokens."""
    symbol = model.get_token(token_id).symbol
    print(f"\n--- Querying Balances for {symbol} ---")
    for name, account_id in accounts:
        if not account_id:
            continue
        print(f"- {name} ({account_id}) Balance: {model.display_balance(account_id, token_id)} {symbol}")


def run_demo(verbose: bool = False) -> Dict[str, object]:
    """
    Run the token lifecycle and return the ledger and the ids it created.

    Args:
        verbose: Let the ledger print every applied transaction

    Returns:
        Dict with keys 'model', 'token_id', 'treasury', 'recipient_a', 'recipient_b'
    """
    model = LedgerModel("testnet", verbose=verbose)

    operator_key = DigestSigner.from_seed(OPERATOR_SEED)
    treasury_key = operator_key
    supply_key = DigestSigner.generate()  # separate key that enables minting

    treasury_id = model.create_account(OPERATOR_INITIAL_BALANCE, public_key=operator_key.public_key)
    client = Client(model, treasury_id, operator_key)

    recipient_a_key = DigestSigner.generate()
    recipient_b_key = DigestSigner.generate()

    # --- Create Recipient Accounts A and B ---
    recipient_a_id = client.submit(
        CreateAccount(RECIPIENT_INITIAL_BALANCE, recipient_a_key.public_key)
    ).account_id
    print(f"\n✅ Recipient A (Initial Recipient) ID: {recipient_a_id}")

    recipient_b_id = client.submit(
        CreateAccount(RECIPIENT_INITIAL_BALANCE, recipient_b_key.public_key)
    ).account_id
    print(f"✅ Recipient B (Bulk Distribution Target) ID: {recipient_b_id}")

    # =========================================================================
    # STEP 1 & 2: Create a fungible token and transfer it between accounts.
    # =========================================================================

    print("\n--- STEP 1 & 2A: Creating Token ---")
    token_receipt = client.submit(
        CreateToken(
            symbol=TOKEN_SYMBOL,
            name=TOKEN_NAME,
            decimals=WHOLE_TOKENS_DECIMALS,
            treasury_account_id=treasury_id,
            initial_supply=INITIAL_SUPPLY_TOKENS,
            supply_key=supply_key.public_key,
        ),
        treasury_key,
    )
    token_id = token_receipt.token_id
    print(f"✅ Token Created: {TOKEN_SYMBOL} (ID: {token_id})")

    print("\n--- STEP 2B: Associating Recipient A ---")
    client.submit(AssociateToken(recipient_a_id, (token_id,)), recipient_a_key)
    print("✅ Recipient A associated successfully.")

    transfer_units = to_units(RECIPIENT_A_INITIAL_TRANSFER)
    print(f"\n--- STEP 2C: Initial Transfer of {RECIPIENT_A_INITIAL_TRANSFER} {TOKEN_SYMBOL} to Recipient A ---")
    client.submit(
        TransferTokens(token_id, TransferIntent.of([
            (treasury_id, -transfer_units),   # debit treasury
            (recipient_a_id, transfer_units),  # credit recipient A
        ])),
        treasury_key,
    )
    print("✅ Initial transfer complete.")

    # =========================================================================
    # STEP 3: Verify Balances (Treasury: 950 / Recipient A: 50)
    # =========================================================================
    print("\n" + "=" * 50)
    print("== STEP 3: Verification (950 Treasury / 50 Recipient) ==")
    check_balances(model, [("Treasury", treasury_id), ("Recipient A", recipient_a_id), ("Recipient B", None)], token_id)
    print("=" * 50)

    # =========================================================================
    # STEP 4: Mint additional tokens and distribute them to multiple accounts.
    # =========================================================================

    print(f"\n--- STEP 4A: Minting {MINT_NEW_TOKENS} new {TOKEN_SYMBOL} into Treasury ---")
    # Minting needs the supply key, not the treasury key
    client.submit(MintTokens(token_id, MINT_NEW_TOKENS), supply_key)
    print(f"✅ Mint successful. Treasury Balance is now "
          f"{model.display_balance(treasury_id, token_id)} {TOKEN_SYMBOL}.")

    print("\n--- STEP 4B: Associating Recipient B ---")
    client.submit(AssociateToken(recipient_b_id, (token_id,)), recipient_b_key)
    print("✅ Recipient B associated successfully.")

    bulk_units = to_units(BULK_DISTRIBUTE_AMOUNT)
    distribution = build_distribution(treasury_id, {
        recipient_a_id: bulk_units,
        recipient_b_id: bulk_units,
    })
    total_distributed = -distribution.net_changes()[treasury_id]
    print(f"\n--- STEP 4C: Bulk Distribution (Sending "
          f"{model.get_token(token_id).display(total_distributed)} {TOKEN_SYMBOL} total) ---")
    client.submit(TransferTokens(token_id, distribution), treasury_key)
    print("✅ Bulk distribution successful.")

    # =========================================================================
    # FINAL VERIFICATION
    # =========================================================================
    print("\n" + "=" * 50)
    print("== FINAL VERIFICATION ==")
    check_balances(
        model,
        [("Treasury", treasury_id), ("Recipient A", recipient_a_id), ("Recipient B", recipient_b_id)],
        token_id,
    )
    print("=" * 50)

    return {
        'model': model,
        'token_id': token_id,
        'treasury': treasury_id,
        'recipient_a': recipient_a_id,
        'recipient_b': recipient_b_id,
    }


def main() -> int:
    try:
        run_demo(verbose=False)
    except LedgerError as e:
        print("The script failed during execution:", e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
