"""
Payroll Kernel

Shared foundations for the payroll and credit computation core:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Decimal value helpers (half-away-from-zero rounding, input validation)
- Calendar-month arithmetic with an explicit month-end rule
- Injectable clock for callers that must supply "now"
"""

__version__ = "0.1.0"
