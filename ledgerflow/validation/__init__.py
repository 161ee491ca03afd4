"""Validation of data read back from the local cache."""

from ledgerflow.validation.sanitizer import CacheSanitizer, SanitizeReport

__all__ = [
    "CacheSanitizer",
    "SanitizeReport",
]
