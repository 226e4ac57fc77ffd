"""
Farm Modules.

Document families posted through the kernel's PostingRunner.  Each module
contains:
- ORM models (the documents and their side tables)
- Posting orchestrators (``post`` / ``reverse`` per document family)
- Selectors and DTOs where the module has read paths

Modules:
- Machinery: work logs, rate cards, landlord charges, maintenance jobs,
  internal services (optionally paid in kind)
- Inventory: goods receipts, issues, stock balances at weighted average cost
- Labour: worker work logs and wages payable
- Sales: produce sold to a buyer on credit
- Payments: treasury payments out (wages, payables) and in (receivables)

Amounts, accounts and allocation dimensions live here; idempotency,
period checks, balance checks and reversal live in ``farm_kernel``.
"""
