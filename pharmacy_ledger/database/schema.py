import sqlite3

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- users (actors, payroll employees) -------- */
CREATE TABLE IF NOT EXISTS users (
    user_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    username     TEXT UNIQUE NOT NULL,
    full_name    TEXT NOT NULL,
    email        TEXT,
    role         TEXT NOT NULL DEFAULT 'user',
    is_active    INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at   TEXT DEFAULT CURRENT_TIMESTAMP
);

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS suppliers (
    supplier_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    code            TEXT NOT NULL UNIQUE,
    contact_person  TEXT,
    phone           TEXT,
    email           TEXT,
    address         TEXT,
    tax_number      TEXT,
    opening_balance REAL NOT NULL DEFAULT 0,
    current_balance REAL NOT NULL DEFAULT 0,
    total_purchases REAL NOT NULL DEFAULT 0 CHECK (total_purchases >= 0),
    total_payments  REAL NOT NULL DEFAULT 0 CHECK (total_payments >= 0),
    credit_limit    REAL NOT NULL DEFAULT 0,
    credit_days     INTEGER NOT NULL DEFAULT 0,
    is_active       INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS customers (
    customer_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    phone           TEXT UNIQUE,
    email           TEXT,
    address         TEXT,
    loyalty_points  INTEGER NOT NULL DEFAULT 0 CHECK (loyalty_points >= 0),
    total_purchases REAL NOT NULL DEFAULT 0,
    notes           TEXT,
    is_active       INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT DEFAULT CURRENT_TIMESTAMP
);

/* -------- money -------- */
CREATE TABLE IF NOT EXISTS bank_accounts (
    account_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    name              TEXT NOT NULL,
    account_type      TEXT NOT NULL CHECK (account_type IN ('cash','bank','mobile')),
    account_number    TEXT,
    bank_name         TEXT,
    branch_name       TEXT,
    account_holder    TEXT,
    opening_balance   REAL NOT NULL DEFAULT 0,
    current_balance   REAL NOT NULL DEFAULT 0,
    total_deposits    REAL NOT NULL DEFAULT 0 CHECK (total_deposits >= 0),
    total_withdrawals REAL NOT NULL DEFAULT 0 CHECK (total_withdrawals >= 0),
    description       TEXT,
    is_active         INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at        TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at        TEXT DEFAULT CURRENT_TIMESTAMP
);

/* -------- products & stock -------- */
CREATE TABLE IF NOT EXISTS products (
    product_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    name              TEXT NOT NULL,
    generic_name      TEXT,
    barcode           TEXT UNIQUE,
    sku               TEXT NOT NULL UNIQUE,
    unit              TEXT NOT NULL DEFAULT 'piece',
    package_unit      TEXT,
    units_per_package INTEGER NOT NULL DEFAULT 1 CHECK (units_per_package >= 1),
    reorder_level     INTEGER NOT NULL DEFAULT 10,
    selling_price     REAL NOT NULL DEFAULT 0,
    cost_price        REAL NOT NULL DEFAULT 0,
    is_active         INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at        TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at        TEXT DEFAULT CURRENT_TIMESTAMP
);

/* one stock row per product, never negative */
CREATE TABLE IF NOT EXISTS inventory (
    inventory_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id       INTEGER NOT NULL UNIQUE,
    quantity         REAL NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    batch_number     TEXT,
    expiry_date      TEXT,
    manufacture_date TEXT,
    created_at       TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at       TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (product_id) REFERENCES products(product_id) ON DELETE RESTRICT
);

/* ======================== DOCUMENTS ======================== */

/* -------- sales -------- */
CREATE TABLE IF NOT EXISTS sales (
    sale_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number  TEXT NOT NULL UNIQUE,
    customer_id     INTEGER,
    account_id      INTEGER,
    user_id         INTEGER,
    subtotal        REAL NOT NULL,
    tax_amount      REAL NOT NULL DEFAULT 0,
    discount_amount REAL NOT NULL DEFAULT 0,
    total_amount    REAL NOT NULL CHECK (total_amount >= 0),
    paid_amount     REAL NOT NULL DEFAULT 0 CHECK (paid_amount >= 0),
    change_amount   REAL NOT NULL DEFAULT 0,
    payment_method  TEXT NOT NULL DEFAULT 'cash',
    points_redeemed INTEGER NOT NULL DEFAULT 0 CHECK (points_redeemed >= 0),
    status          TEXT NOT NULL DEFAULT 'completed'
                    CHECK (status IN ('completed','partially_returned','refunded')),
    notes           TEXT,
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (account_id)  REFERENCES bank_accounts(account_id),
    FOREIGN KEY (user_id)     REFERENCES users(user_id)
);

CREATE TABLE IF NOT EXISTS sale_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    sale_id          INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    product_name     TEXT NOT NULL,
    quantity         REAL NOT NULL CHECK (quantity > 0),
    unit_price       REAL NOT NULL CHECK (unit_price >= 0),
    discount_percent REAL NOT NULL DEFAULT 0,
    tax_rate         REAL NOT NULL DEFAULT 0,
    subtotal         REAL NOT NULL,
    batch_number     TEXT,
    expiry_date      TEXT,
    FOREIGN KEY (sale_id)    REFERENCES sales(sale_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_sale_items_sale ON sale_items(sale_id);

CREATE TABLE IF NOT EXISTS sales_returns (
    return_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    return_number TEXT NOT NULL UNIQUE,
    sale_id       INTEGER NOT NULL,
    customer_id   INTEGER,
    account_id    INTEGER,
    user_id       INTEGER,
    subtotal      REAL NOT NULL,
    tax_amount    REAL NOT NULL DEFAULT 0,
    total_amount  REAL NOT NULL CHECK (total_amount >= 0),
    refund_amount REAL NOT NULL DEFAULT 0 CHECK (refund_amount >= 0),
    reason        TEXT,
    notes         TEXT,
    created_at    TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (sale_id)     REFERENCES sales(sale_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (account_id)  REFERENCES bank_accounts(account_id)
);

CREATE TABLE IF NOT EXISTS sales_return_items (
    item_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    return_id    INTEGER NOT NULL,
    product_id   INTEGER NOT NULL,
    product_name TEXT NOT NULL,
    quantity     REAL NOT NULL CHECK (quantity > 0),
    unit_price   REAL NOT NULL DEFAULT 0,
    subtotal     REAL NOT NULL DEFAULT 0,
    FOREIGN KEY (return_id)  REFERENCES sales_returns(return_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);

/* -------- purchases -------- */
CREATE TABLE IF NOT EXISTS purchases (
    purchase_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number  TEXT NOT NULL UNIQUE,
    supplier_id     INTEGER NOT NULL,
    account_id      INTEGER,
    user_id         INTEGER,
    subtotal        REAL NOT NULL,
    tax_amount      REAL NOT NULL DEFAULT 0,
    discount_amount REAL NOT NULL DEFAULT 0,
    total_amount    REAL NOT NULL CHECK (total_amount >= 0),
    paid_amount     REAL NOT NULL DEFAULT 0 CHECK (paid_amount >= 0),
    due_amount      REAL NOT NULL DEFAULT 0,
    payment_status  TEXT NOT NULL DEFAULT 'pending' CHECK (payment_status IN ('pending','partial','paid')),
    status          TEXT NOT NULL DEFAULT 'received',
    notes           TEXT,
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id),
    FOREIGN KEY (account_id)  REFERENCES bank_accounts(account_id),
    FOREIGN KEY (user_id)     REFERENCES users(user_id)
);

CREATE TABLE IF NOT EXISTS purchase_items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    purchase_id      INTEGER NOT NULL,
    product_id       INTEGER NOT NULL,
    product_name     TEXT NOT NULL,
    quantity         REAL NOT NULL CHECK (quantity > 0),
    units_per_package INTEGER NOT NULL DEFAULT 1 CHECK (units_per_package >= 1),
    unit_price       REAL NOT NULL CHECK (unit_price >= 0),
    discount_percent REAL NOT NULL DEFAULT 0,
    tax_rate         REAL NOT NULL DEFAULT 0,
    subtotal         REAL NOT NULL,
    batch_number     TEXT,
    expiry_date      TEXT,
    manufacture_date TEXT,
    FOREIGN KEY (purchase_id) REFERENCES purchases(purchase_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id)  REFERENCES products(product_id)
);
CREATE INDEX IF NOT EXISTS idx_purchase_items_purchase ON purchase_items(purchase_id);

CREATE TABLE IF NOT EXISTS purchase_returns (
    return_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    return_number TEXT NOT NULL UNIQUE,
    purchase_id   INTEGER NOT NULL,
    supplier_id   INTEGER NOT NULL,
    account_id    INTEGER,
    user_id       INTEGER,
    subtotal      REAL NOT NULL,
    tax_amount    REAL NOT NULL DEFAULT 0,
    total_amount  REAL NOT NULL CHECK (total_amount >= 0),
    refund_amount REAL NOT NULL DEFAULT 0 CHECK (refund_amount >= 0),
    reason        TEXT,
    notes         TEXT,
    created_at    TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (purchase_id) REFERENCES purchases(purchase_id),
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id),
    FOREIGN KEY (account_id)  REFERENCES bank_accounts(account_id)
);

CREATE TABLE IF NOT EXISTS purchase_return_items (
    item_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    return_id    INTEGER NOT NULL,
    product_id   INTEGER NOT NULL,
    product_name TEXT NOT NULL,
    quantity     REAL NOT NULL CHECK (quantity > 0),
    unit_price   REAL NOT NULL DEFAULT 0,
    subtotal     REAL NOT NULL DEFAULT 0,
    FOREIGN KEY (return_id)  REFERENCES purchase_returns(return_id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(product_id)
);

/* -------- supplier payments & ledger -------- */
CREATE TABLE IF NOT EXISTS supplier_payments (
    payment_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id      INTEGER NOT NULL,
    account_id       INTEGER NOT NULL,
    user_id          INTEGER,
    reference_number TEXT NOT NULL UNIQUE,
    amount           REAL NOT NULL CHECK (amount > 0),
    payment_method   TEXT NOT NULL DEFAULT 'cash',
    payment_date     TEXT NOT NULL,
    notes            TEXT,
    created_at       TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id),
    FOREIGN KEY (account_id)  REFERENCES bank_accounts(account_id)
);

/* append-only; rows are removed only together with their purchase */
CREATE TABLE IF NOT EXISTS supplier_ledger_entries (
    entry_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id      INTEGER NOT NULL,
    type             TEXT NOT NULL
                     CHECK (type IN ('opening_balance','purchase','payment','return','adjustment')),
    reference_table  TEXT,
    reference_id     INTEGER,
    reference_number TEXT NOT NULL,
    description      TEXT NOT NULL,
    debit            REAL NOT NULL DEFAULT 0 CHECK (debit >= 0),
    credit           REAL NOT NULL DEFAULT 0 CHECK (credit >= 0),
    balance          REAL NOT NULL,
    transaction_date TEXT NOT NULL,
    created_by       INTEGER,
    created_at       TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id)
);
CREATE INDEX IF NOT EXISTS idx_ledger_supplier ON supplier_ledger_entries(supplier_id, entry_id);
CREATE INDEX IF NOT EXISTS idx_ledger_reference ON supplier_ledger_entries(reference_table, reference_id);

DROP TRIGGER IF EXISTS trg_supplier_ledger_no_update;
CREATE TRIGGER trg_supplier_ledger_no_update
BEFORE UPDATE ON supplier_ledger_entries
BEGIN
  SELECT RAISE(ABORT, 'Supplier ledger entries are append-only');
END;

/* -------- write-offs -------- */
CREATE TABLE IF NOT EXISTS damaged_items (
    damaged_item_id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id      INTEGER NOT NULL,
    product_name    TEXT NOT NULL,
    quantity        REAL NOT NULL CHECK (quantity > 0),
    reason          TEXT NOT NULL,
    batch_number    TEXT,
    expiry_date     TEXT,
    notes           TEXT,
    reported_by     INTEGER,
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (product_id)  REFERENCES products(product_id),
    FOREIGN KEY (reported_by) REFERENCES users(user_id)
);

/* -------- payroll -------- */
CREATE TABLE IF NOT EXISTS user_salaries (
    salary_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id           INTEGER NOT NULL,
    basic_salary      REAL NOT NULL DEFAULT 0 CHECK (basic_salary >= 0),
    allowances        REAL NOT NULL DEFAULT 0,
    deductions        REAL NOT NULL DEFAULT 0,
    net_salary        REAL NOT NULL DEFAULT 0,
    payment_frequency TEXT NOT NULL DEFAULT 'monthly',
    notes             TEXT,
    effective_from    TEXT NOT NULL,
    created_by        INTEGER,
    created_at        TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at        TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(user_id)
);

CREATE TABLE IF NOT EXISTS salary_payments (
    payment_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id               INTEGER NOT NULL,
    salary_id             INTEGER,
    payment_date          TEXT NOT NULL,
    pay_period_start      TEXT NOT NULL,
    pay_period_end        TEXT NOT NULL,
    basic_amount          REAL NOT NULL,
    allowances            REAL NOT NULL DEFAULT 0,
    deductions            REAL NOT NULL DEFAULT 0,
    bonuses               REAL NOT NULL DEFAULT 0,
    total_amount          REAL NOT NULL CHECK (total_amount > 0),
    payment_method        TEXT NOT NULL DEFAULT 'cash',
    account_id            INTEGER,
    transaction_reference TEXT UNIQUE,
    notes                 TEXT,
    status                TEXT NOT NULL DEFAULT 'paid',
    paid_by               INTEGER,
    created_at            TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id)    REFERENCES users(user_id),
    FOREIGN KEY (salary_id)  REFERENCES user_salaries(salary_id),
    FOREIGN KEY (account_id) REFERENCES bank_accounts(account_id)
);

/* ======================== AUDIT ======================== */
CREATE TABLE IF NOT EXISTS audit_logs (
    log_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER,
    username    TEXT NOT NULL DEFAULT 'System',
    action      TEXT NOT NULL CHECK (action IN ('create','update','delete','login','logout')),
    entity_type TEXT NOT NULL,
    entity_id   TEXT,
    entity_name TEXT,
    changes     TEXT,
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE SET NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_logs_entity ON audit_logs(entity_type, entity_id);
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)
