"""
FHIR R4 Client

Async REST client for the EHR FHIR endpoint:
- CRUD operations
- Search with parameters
- Pagination over Bundle next links
- Bearer token authentication
"""

from typing import Any, Dict, List, Optional
from enum import Enum
import asyncio
import json

import aiohttp
import structlog
from pydantic import BaseModel, Field

from sdohexchange.config import EhrSettings, get_settings
from sdohexchange.fhir.utils import enum_value

logger = structlog.get_logger(__name__)


# =============================================================================
# FHIR Models
# =============================================================================

class FHIRResourceType(str, Enum):
    """FHIR R4 resource types used by SDOH Exchange."""
    PATIENT = "Patient"
    PRACTITIONER = "Practitioner"
    ORGANIZATION = "Organization"
    TASK = "Task"
    CONDITION = "Condition"
    SERVICE_REQUEST = "ServiceRequest"
    GOAL = "Goal"
    PROCEDURE = "Procedure"
    CONSENT = "Consent"
    QUESTIONNAIRE = "Questionnaire"
    QUESTIONNAIRE_RESPONSE = "QuestionnaireResponse"
    OBSERVATION = "Observation"


class FHIRResource(BaseModel):
    """A FHIR resource."""
    resource_type: str
    id: Optional[str] = None
    meta: Optional[dict] = None
    data: dict = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "FHIRResource":
        """Create from dictionary."""
        return cls(
            resource_type=data.get("resourceType", "Unknown"),
            id=data.get("id"),
            meta=data.get("meta"),
            data=data,
        )

    def to_dict(self) -> dict:
        """
        Convert to dictionary.

        Values already present in data win over the id and meta fields,
        so edits made to data (e.g. a stamped profile) are kept.
        """
        data = dict(self.data)
        data["resourceType"] = self.resource_type
        if self.id is not None:
            data.setdefault("id", self.id)
        if self.meta is not None:
            data.setdefault("meta", self.meta)
        return data


class FHIRBundle(BaseModel):
    """A FHIR Bundle containing multiple resources."""
    bundle_type: str = "searchset"
    total: int = 0
    entries: List[FHIRResource] = Field(default_factory=list)
    next_link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "FHIRBundle":
        """Create from dictionary."""
        entries = []
        for entry in data.get("entry", []):
            if "resource" in entry:
                entries.append(FHIRResource.from_dict(entry["resource"]))

        next_link = None
        for link in data.get("link", []):
            if link.get("relation") == "next":
                next_link = link.get("url")

        return cls(
            bundle_type=data.get("type", "searchset"),
            total=data.get("total", len(entries)),
            entries=entries,
            next_link=next_link,
        )


class FHIRClientError(Exception):
    """A FHIR request failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        outcome: Optional[dict] = None,
    ):
        super().__init__(message)
        self.status = status
        self.outcome = outcome


# =============================================================================
# FHIR Client
# =============================================================================

class FHIRClient:
    """
    Generic FHIR R4 client.

    A session is opened per request, so one client instance can be
    shared by every repository.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str = None,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout

    def _get_headers(self) -> dict:
        """Get request headers with auth."""
        headers = {
            "Accept": "application/fhir+json",
            "Content-Type": "application/fhir+json",
        }

        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"

        return headers

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] = None,
        payload: dict = None,
        allow_statuses: tuple = (),
    ) -> tuple[int, Optional[dict]]:
        """
        Send a request and decode the JSON body.

        Statuses below 300 and those listed in allow_statuses are returned
        to the caller; anything else raises FHIRClientError.
        """
        logger.debug("FHIR request", method=method, url=url)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    headers=self._get_headers(),
                    params=params,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    text = await response.text()
                    ok = response.status < 300 or response.status in allow_statuses
                    try:
                        body = json.loads(text) if text.strip() else None
                    except ValueError:
                        if ok:
                            raise FHIRClientError(
                                f"FHIR {method} {url} returned a non-JSON body",
                                status=response.status,
                            )
                        body = None

                    if ok:
                        return response.status, body

                    logger.error(
                        "FHIR request failed",
                        method=method,
                        url=url,
                        status=response.status,
                    )
                    outcome = body if isinstance(body, dict) else None
                    raise FHIRClientError(
                        f"FHIR {method} {url} failed: {response.status}",
                        status=response.status,
                        outcome=outcome,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("FHIR request error", method=method, url=url, error=str(e))
            raise FHIRClientError(f"FHIR {method} {url} error: {e}") from e

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def read(
        self,
        resource_type: str,
        resource_id: str,
    ) -> Optional[FHIRResource]:
        """Read a single resource, or None if the server has no such id."""
        url = f"{self.base_url}/{enum_value(resource_type)}/{resource_id}"
        status, data = await self._request("GET", url, allow_statuses=(404, 410))
        if status in (404, 410):
            return None
        return FHIRResource.from_dict(data)

    async def search(
        self,
        resource_type: str,
        params: Dict[str, Any] = None,
        count: int = 100,
    ) -> FHIRBundle:
        """Search for resources (first page only)."""
        url = f"{self.base_url}/{enum_value(resource_type)}"

        search_params = dict(params or {})
        search_params["_count"] = count

        _, data = await self._request("GET", url, params=search_params)
        return FHIRBundle.from_dict(data or {})

    async def search_all(
        self,
        resource_type: str,
        params: Dict[str, Any] = None,
        count: int = 100,
    ) -> List[FHIRResource]:
        """Search and follow next links until every page is read."""
        bundle = await self.search(resource_type, params, count)
        resources = list(bundle.entries)
        followed = set()

        while bundle.next_link and bundle.next_link not in followed:
            followed.add(bundle.next_link)
            _, data = await self._request("GET", bundle.next_link)
            bundle = FHIRBundle.from_dict(data or {})
            resources.extend(bundle.entries)

        if bundle.next_link:
            logger.warning("FHIR next link repeated, stopping", url=bundle.next_link)

        return resources

    async def create(
        self,
        resource: FHIRResource,
    ) -> FHIRResource:
        """Create a new resource."""
        url = f"{self.base_url}/{resource.resource_type}"
        _, data = await self._request("POST", url, payload=resource.to_dict())
        if not data:
            # Server answered without a body (return=minimal)
            return resource
        return FHIRResource.from_dict(data)

    async def update(
        self,
        resource: FHIRResource,
    ) -> FHIRResource:
        """Update an existing resource."""
        if not resource.id:
            raise ValueError("Resource ID required for update")

        url = f"{self.base_url}/{resource.resource_type}/{resource.id}"
        _, data = await self._request("PUT", url, payload=resource.to_dict())
        if not data:
            return resource
        return FHIRResource.from_dict(data)

    async def delete(
        self,
        resource_type: str,
        resource_id: str,
    ) -> bool:
        """Delete a resource. Returns False if it did not exist."""
        url = f"{self.base_url}/{enum_value(resource_type)}/{resource_id}"
        status, _ = await self._request("DELETE", url, allow_statuses=(404,))
        return status != 404


def build_ehr_client(settings: EhrSettings = None) -> FHIRClient:
    """Build the EHR FHIR client from settings."""
    settings = settings or get_settings().ehr
    return FHIRClient(
        base_url=settings.fhir_server_url,
        access_token=settings.bearer_token,
        timeout=settings.timeout,
    )
