# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from pharmacy_ledger.database.repositories import (
        # Stock
        InventoryRepo, ProductsRepo, Product, DamagedItemsRepo, DamagedItem,
        # Money
        BankAccountsRepo, BankAccount,
        # Suppliers
        SuppliersRepo, Supplier, SupplierPaymentsRepo,
        # Documents
        SalesRepo, SaleHeader, SaleItem, PurchasesRepo, PurchaseHeader, PurchaseItem,
        # Audit
        AuditLogsRepo,
    )
"""

# ----------------- Errors ------------------
from .errors import (
    DomainError,
    ValidationError,
    NotFoundError,
    InsufficientFundsError,
    ConstraintViolationError,
    SilentAuditFailure,
)

# ------------------ Stock ------------------
from .inventory_repo import InventoryRepo, StockChange, to_base_units
from .products_repo import ProductsRepo, Product
from .damaged_items_repo import DamagedItemsRepo, DamagedItem

# ------------------ Money ------------------
from .bank_accounts_repo import BankAccountsRepo, BankAccount

# ---------------- Suppliers ----------------
from .suppliers_repo import SuppliersRepo, Supplier
from .supplier_payments_repo import SupplierPaymentsRepo

# ---------------- Customers ----------------
from .customers_repo import CustomersRepo, Customer

# ------------------ Sales ------------------
from .sales_repo import SalesRepo, SaleHeader, SaleItem, SalesReturnHeader, SalesReturnItem

# ---------------- Purchases ----------------
from .purchases_repo import (
    PurchasesRepo,
    PurchaseHeader,
    PurchaseItem,
    PurchaseReturnHeader,
    PurchaseReturnItem,
)

# ----------------- Payroll -----------------
from .payroll_repo import PayrollRepo, Salary, SalaryPayment

# ------------------ Audit ------------------
from .audit_logs_repo import AuditLogsRepo, diff_changes

__all__ = [
    # errors
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "InsufficientFundsError",
    "ConstraintViolationError",
    "SilentAuditFailure",
    # stock
    "InventoryRepo",
    "StockChange",
    "to_base_units",
    "ProductsRepo",
    "Product",
    "DamagedItemsRepo",
    "DamagedItem",
    # money
    "BankAccountsRepo",
    "BankAccount",
    # suppliers
    "SuppliersRepo",
    "Supplier",
    "SupplierPaymentsRepo",
    # customers
    "CustomersRepo",
    "Customer",
    # sales
    "SalesRepo",
    "SaleHeader",
    "SaleItem",
    "SalesReturnHeader",
    "SalesReturnItem",
    # purchases
    "PurchasesRepo",
    "PurchaseHeader",
    "PurchaseItem",
    "PurchaseReturnHeader",
    "PurchaseReturnItem",
    # payroll
    "PayrollRepo",
    "Salary",
    "SalaryPayment",
    # audit
    "AuditLogsRepo",
    "diff_changes",
]
