"""Master-data resolution of taxonomy names to ids."""

from mediaplan_ingestion.resolution.resolver import (
    MasterDataResolver,
    ResolvedReferences,
    ResolverContext,
    normalize_name,
)

__all__ = [
    "MasterDataResolver",
    "ResolvedReferences",
    "ResolverContext",
    "normalize_name",
]
