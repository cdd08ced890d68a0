"""Consent repository."""

from sdohexchange.dao.repository import FhirRepository
from sdohexchange.fhir.client import FHIRClient, FHIRResourceType


class ConsentRepository(FhirRepository):
    """Repository for Consent resources on the EHR."""

    resource_type = FHIRResourceType.CONSENT

    def __init__(self, ehr_client: FHIRClient):
        super().__init__(ehr_client)

    def get_resource_type(self) -> FHIRResourceType:
        return FHIRResourceType.CONSENT
