"""Small helpers shared by the FHIR modules."""

from enum import Enum


def enum_value(value) -> str:
    """Plain string for a str-enum member, or the string itself."""
    if isinstance(value, Enum):
        return value.value
    return value
