# modules/__init__.py
"""
Business services. Each takes the sqlite3 connection (and optionally the
acting user dict) in its constructor:

    SalesService, PurchaseService, SupplierService,
    InventoryService, PayrollService, AccountService
"""
