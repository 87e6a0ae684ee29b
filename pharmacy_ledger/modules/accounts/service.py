from __future__ import annotations

import logging
from typing import Mapping

from ...database.repositories.bank_accounts_repo import BankAccountsRepo, BankAccount
from ...database.repositories.errors import ValidationError
from ...utils import validators as v
from ...utils.helpers import money
from ..base_module import BaseService

_log = logging.getLogger(__name__)

ACCOUNT_TYPES = ("cash", "bank", "mobile")
_BALANCE_FIELDS = ("opening_balance", "current_balance", "total_deposits", "total_withdrawals")


class AccountService(BaseService):
    """Cash/bank accounts: setup, details, manual balance adjustments, drift check."""

    def __init__(self, conn, current_user=None):
        super().__init__(conn, current_user)
        self.accounts = BankAccountsRepo(conn)

    def create_account(self, data: Mapping) -> int:
        account_type = data.get("account_type") or "cash"
        if account_type not in ACCOUNT_TYPES:
            raise ValidationError(f"Account type must be one of {', '.join(ACCOUNT_TYPES)}.")
        acc = BankAccount(
            account_id=None,
            name=v.require_text(data, "name", "Name"),
            account_type=account_type,
            opening_balance=money(v.amount(data, "opening_balance")),
            account_number=data.get("account_number"),
            bank_name=data.get("bank_name"),
        )
        extra = {k: data.get(k) for k in ("branch_name", "account_holder", "description")}
        with self._atomic(f"create account {acc.name}") as after_commit:
            account_id = self.accounts.create(acc, **extra)
            changes = {"accountType": acc.account_type, "openingBalance": acc.opening_balance}
            after_commit.append(
                lambda: self.audit.log_create("bank_account", account_id, acc.name, changes, **self.actor)
            )
        return account_id

    def update_account(self, account_id: int, data: Mapping) -> None:
        blocked = [k for k in _BALANCE_FIELDS if k in data]
        if blocked:
            raise ValidationError(f"Account balances cannot be edited directly: {', '.join(blocked)}.")
        if "account_type" in data and data["account_type"] not in ACCOUNT_TYPES:
            raise ValidationError(f"Account type must be one of {', '.join(ACCOUNT_TYPES)}.")

        with self._atomic(f"update account {account_id}") as after_commit:
            old = self.accounts.require(account_id)
            written = self.accounts.update_details(account_id, data)
            payload = {k: data[k] for k in written}
            after_commit.append(
                lambda: self.audit.log_update(
                    "bank_account", account_id, payload.get("name") or old["name"], old, payload, **self.actor
                )
            )

    def deactivate_account(self, account_id: int) -> None:
        with self._atomic(f"deactivate account {account_id}") as after_commit:
            acc = self.accounts.require(account_id)
            self.accounts.deactivate(account_id)
            after_commit.append(
                lambda: self.audit.log_delete("bank_account", account_id, acc["name"], {"soft_delete": True}, **self.actor)
            )

    def adjust_balance(self, account_id: int, amount: float, adjustment_type: str, reason: str | None = None) -> float:
        """Manual deposit/withdrawal. Withdrawals are not funds-checked. Returns the new balance."""
        if adjustment_type not in ("deposit", "withdrawal"):
            raise ValidationError("Adjustment type must be 'deposit' or 'withdrawal'.")
        if not v.is_strictly_positive_number(amount):
            raise ValidationError("Adjustment amount must be greater than zero.")
        amt = money(float(amount))

        with self._atomic(f"{adjustment_type} on account {account_id}") as after_commit:
            acc = self.accounts.require(account_id)
            before = float(acc["current_balance"])
            if adjustment_type == "deposit":
                after = self.accounts.credit(account_id, amt)
            else:
                after = self.accounts.debit(account_id, amt)
            changes = {
                "type": adjustment_type,
                "amount": amt,
                "balance": {"old": before, "new": after},
                "reason": reason,
            }
            after_commit.append(
                lambda: self.audit.record(
                    "update", "bank_account_balance", account_id, acc["name"], changes, **self.actor
                )
            )
        _log.info("Account %s %s %.2f: %.2f -> %.2f", acc["name"], adjustment_type, amt, before, after)
        return after

    def verify_balances(self) -> list[dict]:
        """Accounts breaking current = opening + deposits - withdrawals (empty when healthy)."""
        drift = self.accounts.find_drift()
        for d in drift:
            _log.warning(
                "Account %s drift: balance=%.2f expected=%.2f",
                d["account_id"], d["current_balance"], d["expected_balance"],
            )
        return drift
