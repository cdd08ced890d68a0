"""
Repository layer for EHR data access.

Repositories run FHIR operations for one resource type through the
shared EHR client.
"""

from sdohexchange.dao.repository import (
    FhirRepository,
    ResourceTypeMismatchError,
    repository_for,
)
from sdohexchange.dao.consent import ConsentRepository

__all__ = [
    "FhirRepository",
    "ResourceTypeMismatchError",
    "repository_for",
    "ConsentRepository",
]
