# modules/payroll/__init__.py

from .service import PayrollService

__all__ = [
    "PayrollService",
]
