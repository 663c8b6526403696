"""Service ledger repositories, one per service type."""

from compliance.repositories.service_repository import (
    BundleRepository,
    ServiceRepository,
    get_repository,
    service_repositories,
)

__all__ = [
    "BundleRepository",
    "ServiceRepository",
    "get_repository",
    "service_repositories",
]
