"""Import engine ORM models (import sessions) and the full model registry."""

from mediaplan_ingestion.models.session import ImportSessionModel

__all__ = ["ImportSessionModel", "import_all_orm_models"]


def import_all_orm_models() -> None:
    """Import every ORM module so Base.metadata knows all tables."""
    import mediaplan_kernel.models.facts  # noqa: F401
    import mediaplan_kernel.models.taxonomy  # noqa: F401
    import mediaplan_ingestion.models.session  # noqa: F401
