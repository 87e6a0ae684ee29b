from __future__ import annotations

import logging
from typing import Mapping

from ...constants import PREFIX_SALARY_PAYMENT
from ...database.repositories.bank_accounts_repo import BankAccountsRepo
from ...database.repositories.errors import ValidationError
from ...database.repositories.payroll_repo import PayrollRepo, Salary, SalaryPayment
from ...utils import validators as v
from ...utils.helpers import new_doc_number, money
from ..base_module import BaseService

_log = logging.getLogger(__name__)


class PayrollService(BaseService):
    def __init__(self, conn, current_user=None):
        super().__init__(conn, current_user)
        self.payroll = PayrollRepo(conn)
        self.accounts = BankAccountsRepo(conn)

    def create_salary(self, data: Mapping) -> int:
        """net_salary = basic + allowances - deductions."""
        s = Salary(
            user_id=v.require_id(data, "user_id", "Employee"),
            basic_salary=v.amount(data, "basic_salary"),
            effective_from=self._date(data.get("effective_from")),
            allowances=v.amount(data, "allowances"),
            deductions=v.amount(data, "deductions"),
            payment_frequency=data.get("payment_frequency") or "monthly",
            notes=data.get("notes"),
            created_by=self.user_id,
        )
        with self._atomic(f"salary for user {s.user_id}") as after_commit:
            user = self.payroll.require_user(s.user_id)
            salary_id = self.payroll.create_salary(s)
            changes = {"netSalary": money(s.net_salary), "effectiveFrom": s.effective_from}
            after_commit.append(
                lambda: self.audit.log_create("user_salary", salary_id, user["full_name"], changes, **self.actor)
            )
        return salary_id

    def record_salary_payment(self, data: Mapping) -> dict:
        """
        Pay an employee: total = basic + allowances + bonuses - deductions.
        When paid from an account, that account must cover the total
        (InsufficientFundsError otherwise, nothing written).
        """
        p = SalaryPayment(
            user_id=v.require_id(data, "user_id", "Employee"),
            payment_date=self._date(data.get("payment_date")),
            pay_period_start=v.require_text(data, "pay_period_start", "Pay period start"),
            pay_period_end=v.require_text(data, "pay_period_end", "Pay period end"),
            basic_amount=v.amount(data, "basic_amount"),
            account_id=v.optional_id(data, "account_id"),
            allowances=v.amount(data, "allowances"),
            deductions=v.amount(data, "deductions"),
            bonuses=v.amount(data, "bonuses"),
            payment_method=data.get("payment_method") or "cash",
            salary_id=v.optional_id(data, "salary_id"),
            transaction_reference=data.get("transaction_reference"),
            notes=data.get("notes"),
            paid_by=self.user_id,
        )
        total = money(p.total_amount)
        if total <= 0:
            raise ValidationError("Salary payment total must be greater than zero.")

        with self._atomic(f"salary payment for user {p.user_id}") as after_commit:
            user = self.payroll.require_user(p.user_id)
            if p.account_id is not None:
                self.accounts.ensure_funds(p.account_id, total)
            if not p.transaction_reference:
                p.transaction_reference = new_doc_number(
                    self.conn, "salary_payments", "transaction_reference", PREFIX_SALARY_PAYMENT, p.payment_date
                )
            payment_id = self.payroll.record_payment(p)
            if p.account_id is not None:
                self.accounts.debit(p.account_id, total)

            changes = {
                "totalAmount": total,
                "period": f"{p.pay_period_start}..{p.pay_period_end}",
                "accountId": p.account_id,
            }
            after_commit.append(
                lambda: self.audit.log_create(
                    "salary_payment", payment_id, user["full_name"], changes, **self.actor
                )
            )

        _log.info("Salary %s paid to %s: %.2f", p.transaction_reference, user["username"], total)
        return {"payment_id": payment_id, "transaction_reference": p.transaction_reference, "total_amount": total}
