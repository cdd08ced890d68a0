"""
FHIR integration

- EHR FHIR R4 client
- SDOH Clinical Care profiles
"""

from sdohexchange.fhir.client import (
    FHIRClient,
    FHIRClientError,
    FHIRResource,
    FHIRBundle,
    FHIRResourceType,
    build_ehr_client,
)
from sdohexchange.fhir.profiles import (
    SDOHProfiles,
    SDOH_PROFILES_BY_RESOURCE_TYPE,
    profile_for,
    has_profile,
    add_profile,
)

__all__ = [
    # Client
    "FHIRClient",
    "FHIRClientError",
    "FHIRResource",
    "FHIRBundle",
    "FHIRResourceType",
    "build_ehr_client",
    # Profiles
    "SDOHProfiles",
    "SDOH_PROFILES_BY_RESOURCE_TYPE",
    "profile_for",
    "has_profile",
    "add_profile",
]
