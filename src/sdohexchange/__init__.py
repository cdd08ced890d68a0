"""
SDOH Exchange: FHIR core

SDOH Clinical Care profile catalog and FHIR resource repositories
that talk to an EHR FHIR endpoint through an injected client.
"""

__version__ = "0.1.0"
__author__ = "SDOH Exchange Team"
