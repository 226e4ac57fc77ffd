"""
farm_kernel -- the posting & reversal kernel of the farm ERP.

Owns the ledger store (posting groups, allocation rows, ledger entries), the
period and account collaborators, the shared idempotent posting protocol and
the generic reversal primitive.  Document families live in ``farm_modules``;
configuration lives in ``farm_config``.  The kernel never imports either.
"""

__version__ = "0.1.0"
