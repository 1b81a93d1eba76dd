"""
Payroll Kernel

Immutable domain types, typed errors and infrastructure for a deterministic
payroll calculation engine:
- Versioned labor rule sets with validated tax bracket tables
- Fixed-point Decimal money with a single rounding policy
- Itemized employee ledgers and payroll runs with a strict lifecycle
- Structured JSON logging
"""

__version__ = "0.1.0"
