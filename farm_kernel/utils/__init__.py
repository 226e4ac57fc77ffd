"""Small pure helpers: idempotency keys and money rounding."""
