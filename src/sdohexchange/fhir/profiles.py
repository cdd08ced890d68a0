"""
SDOH profiles for affected FHIR resources.

EHRs are not required to use resources with these profiles, but every
resource generated by this app carries one in meta.profile.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from sdohexchange.fhir.utils import enum_value


class SDOHProfiles(str, Enum):
    """SDOH Clinical Care StructureDefinition URLs."""
    TASK = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-Task"
    PATIENT_TASK = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-TaskForPatient"
    CONDITION = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-Condition"
    SERVICE_REQUEST = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-ServiceRequest"
    GOAL = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-Goal"
    PROCEDURE = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-Procedure"
    CONSENT = "http://hl7.org/fhir/us/sdoh-clinicalcare/StructureDefinition/SDOHCC-Consent"
    # SDC profile, pinned to IG version 2.7
    QUESTIONNAIRE_RESPONSE = "http://hl7.org/fhir/uv/sdc/StructureDefinition/sdc-questionnaireresponse|2.7"


TASK = SDOHProfiles.TASK.value
PATIENT_TASK = SDOHProfiles.PATIENT_TASK.value
CONDITION = SDOHProfiles.CONDITION.value
SERVICE_REQUEST = SDOHProfiles.SERVICE_REQUEST.value
GOAL = SDOHProfiles.GOAL.value
PROCEDURE = SDOHProfiles.PROCEDURE.value
CONSENT = SDOHProfiles.CONSENT.value
QUESTIONNAIRE_RESPONSE = SDOHProfiles.QUESTIONNAIRE_RESPONSE.value


# Default profile per resource type. Tasks addressed to a patient
# use PATIENT_TASK and must ask for it explicitly.
SDOH_PROFILES_BY_RESOURCE_TYPE: Mapping[str, str] = MappingProxyType({
    "Task": TASK,
    "Condition": CONDITION,
    "ServiceRequest": SERVICE_REQUEST,
    "Goal": GOAL,
    "Procedure": PROCEDURE,
    "Consent": CONSENT,
    "QuestionnaireResponse": QUESTIONNAIRE_RESPONSE,
})


def profile_for(resource_type: str) -> str | None:
    """Default SDOH profile for a resource type, or None if it has none."""
    return SDOH_PROFILES_BY_RESOURCE_TYPE.get(resource_type)


def has_profile(resource: dict[str, Any], profile: str) -> bool:
    """Check whether a resource declares the profile in meta.profile."""
    url = enum_value(profile)
    return url in ((resource.get("meta") or {}).get("profile") or [])


def add_profile(resource: dict[str, Any], profile: str) -> dict[str, Any]:
    """
    Stamp a profile onto a resource's meta.profile.

    The resource is modified in place and returned. A profile that is
    already declared is not added twice.

    Args:
        resource: FHIR resource as dict
        profile: Profile URL (or SDOHProfiles member)

    Returns:
        The same resource dict
    """
    url = enum_value(profile)
    meta = resource.get("meta") or {}
    profiles = meta.get("profile") or []
    meta["profile"] = profiles
    resource["meta"] = meta
    if url not in profiles:
        profiles.append(url)
    return resource
