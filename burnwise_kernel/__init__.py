"""
BurnWise Ledger Kernel

Reconciliation and valuation core for the company finance back-office:
- Installment schedules for debts and receivables
- Atomic payment recording and reversal
- Project milestones and grant funding
- Date-scoped exchange rates and base-currency aggregation
"""

__version__ = "0.1.0"
