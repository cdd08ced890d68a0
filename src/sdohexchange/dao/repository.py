"""
FHIR Resource Repository

Generic repository over the EHR FHIR client. One class serves every
resource type; the type tag comes from a class attribute or from the
constructor.

Usage:
    repo = FhirRepository(ehr_client, FHIRResourceType.GOAL)
    goal = await repo.find("goal-1")
    goals = await repo.search(patient="Patient/123")
"""

from typing import Any, List, Optional, Union

import structlog

from sdohexchange.fhir.client import FHIRClient, FHIRResource, FHIRResourceType
from sdohexchange.fhir.utils import enum_value

logger = structlog.get_logger(__name__)


class ResourceTypeMismatchError(ValueError):
    """Raised when a resource is written through a repository for another type."""

    pass


class FhirRepository:
    """
    Repository for a single FHIR resource type.

    The client is not owned by the repository: it is injected, shared,
    and its lifetime is managed by the caller.
    """

    resource_type: Optional[Union[FHIRResourceType, str]] = None

    def __init__(
        self,
        client: FHIRClient,
        resource_type: Optional[Union[FHIRResourceType, str]] = None,
    ):
        """
        Initialize repository with a FHIR client.

        Args:
            client: FHIR client handle (or any object with the same API)
            resource_type: Resource type tag; overrides the class attribute
        """
        if resource_type is not None:
            self.resource_type = resource_type
        if self.resource_type is None:
            raise ValueError(f"{type(self).__name__} requires a resource type")
        self.client = client

    def get_resource_type(self) -> Union[FHIRResourceType, str]:
        """Resource type tag this repository serves."""
        return self.resource_type

    def _coerce(self, resource: Union[FHIRResource, dict]) -> FHIRResource:
        if isinstance(resource, dict):
            resource = FHIRResource.from_dict(resource)
        if resource.resource_type != enum_value(self.resource_type):
            raise ResourceTypeMismatchError(
                f"{type(self).__name__} handles {enum_value(self.resource_type)}, "
                f"got {resource.resource_type}"
            )
        return resource

    async def find(self, resource_id: str) -> Optional[FHIRResource]:
        """Read a resource by id. Returns None if not found."""
        return await self.client.read(self.resource_type, resource_id)

    async def search(self, count: int = 100, **params: Any) -> List[FHIRResource]:
        """Search the first page of results with FHIR search parameters."""
        bundle = await self.client.search(self.resource_type, params, count=count)
        return bundle.entries

    async def search_all(self, count: int = 100, **params: Any) -> List[FHIRResource]:
        """Search and collect every page of results."""
        return await self.client.search_all(self.resource_type, params, count=count)

    async def create(self, resource: Union[FHIRResource, dict]) -> FHIRResource:
        """Create a resource on the EHR."""
        resource = self._coerce(resource)
        created = await self.client.create(resource)
        logger.info("FHIR resource created", resource_type=enum_value(self.resource_type), id=created.id)
        return created

    async def update(self, resource: Union[FHIRResource, dict]) -> FHIRResource:
        """Update a resource on the EHR."""
        resource = self._coerce(resource)
        updated = await self.client.update(resource)
        logger.info("FHIR resource updated", resource_type=enum_value(self.resource_type), id=updated.id)
        return updated

    async def delete(self, resource_id: str) -> bool:
        """Delete a resource. Returns False if it did not exist."""
        deleted = await self.client.delete(self.resource_type, resource_id)
        if deleted:
            logger.info("FHIR resource deleted", resource_type=enum_value(self.resource_type), id=resource_id)
        return deleted


def repository_for(
    client: FHIRClient,
    resource_type: Union[FHIRResourceType, str],
) -> FhirRepository:
    """Build a repository for any resource type."""
    return FhirRepository(client, resource_type)
