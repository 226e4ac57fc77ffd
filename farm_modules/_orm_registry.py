"""
Module ORM Registry (``farm_modules._orm_registry``).

Responsibility
--------------
Import every ORM model (kernel and modules) so that ``Base.metadata``
holds all table definitions before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``farm_kernel.db.engine.create_tables``; nothing else in the kernel
imports it.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``farm_modules.*.orm`` module.

    Kernel tables (crop cycles, accounts, posting groups) register first
    since module tables carry foreign keys into them.  Idempotent.
    """
    import farm_kernel.models  # noqa: F401
    import farm_kernel.services.sequence_service  # noqa: F401  # sequence counters
    import farm_modules.inventory.orm  # noqa: F401
    import farm_modules.machinery.orm  # noqa: F401
    import farm_modules.labour.orm  # noqa: F401
    import farm_modules.sales.orm  # noqa: F401
    import farm_modules.payments.orm  # noqa: F401
