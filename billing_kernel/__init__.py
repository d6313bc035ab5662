"""
Billing Kernel

Pro-rata utility cost allocation and tenant invoicing:
- Typed, normalized utility bill and billing period records
- Exact-decimal allocation figures
- Immutable invoice financials with a forward-only lifecycle
- Full auditability via hash chain
"""

__version__ = "0.1.0"
