APP_NAME = "Pharmacy Ledger"

DATA_DIR = "data"
DB_FILE_NAME = "pharmacy.db"
DB_ENV_VAR = "PHARMACY_LEDGER_DB"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# Loyalty: one point per POINTS_DIVISOR currency units charged; one point is
# worth POINT_VALUE when redeemed at the till.
POINTS_DIVISOR = 10
POINT_VALUE = 0.10

# Float tolerance shared by balance checks.
EPS = 1e-9

# Sale status lifecycle
SALE_COMPLETED = "completed"
SALE_PARTIALLY_RETURNED = "partially_returned"
SALE_REFUNDED = "refunded"
SALE_STATUS_ORDER = (SALE_COMPLETED, SALE_PARTIALLY_RETURNED, SALE_REFUNDED)

# Supplier ledger entry types
LEDGER_OPENING = "opening_balance"
LEDGER_PURCHASE = "purchase"
LEDGER_PAYMENT = "payment"
LEDGER_ADJUSTMENT = "adjustment"

# Document number prefixes (PREFIXYYYYMMDD-NNNN)
PREFIX_SALE = "INV"
PREFIX_SALES_RETURN = "SR"
PREFIX_PURCHASE = "PO"
PREFIX_PURCHASE_RETURN = "PR"
PREFIX_SUPPLIER_PAYMENT = "SP"
PREFIX_SALARY_PAYMENT = "SAL"

SYSTEM_USERNAME = "system"
