"""Read-only, tenant-scoped query helpers."""
