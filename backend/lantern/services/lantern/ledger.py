"""Wallet ledger seam: "add amount to owner"."""

from flask import current_app

from lantern import storage
from lantern.models import User


def credit_wallet(owner: str, amount: int, note: str = '') -> User:
    user = storage.update_object(
        User, f'User {owner}', {User.wallet: User.wallet + amount}, guard={'username': owner},
    )
    current_app.logger.info(f"[wallet-credit] owner={owner} amount={amount} note={note!r}")
    return user
