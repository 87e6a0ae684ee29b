"""
python -m pharmacy_ledger [DB_PATH]

Opens (and if needed creates) the database, then checks the balance
invariants: every account against its deposit/withdrawal counters and every
supplier against its ledger rows. Exit status 1 when anything drifted.
"""

import sys

from .constants import APP_NAME
from .database import get_connection
from .modules.accounts import AccountService
from .modules.vendor import SupplierService
from .utils.loggers import get_logger


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    log = get_logger()
    conn = get_connection(argv[0] if argv else None)
    try:
        accounts = AccountService(conn).verify_balances()
        suppliers = SupplierService(conn).reconcile()
    finally:
        conn.close()

    if accounts or suppliers:
        log.error("%s: %d account(s) and %d supplier(s) out of balance", APP_NAME, len(accounts), len(suppliers))
        return 1
    log.info("%s: all balances consistent", APP_NAME)
    return 0


if __name__ == "__main__":
    sys.exit(main())
