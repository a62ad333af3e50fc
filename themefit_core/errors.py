"""
Exception hierarchy for themefit.

Inference errors never leave SelectorInference.infer(); they exist so the
fallback chain can tell a failed backend call from a malformed answer in logs.
"""


class ThemefitError(Exception):
    """Base class for all themefit errors."""


class InferenceError(ThemefitError):
    """The generative backend was unavailable or its call failed."""


class AdapterValidationError(InferenceError):
    """A theme adapter (usually from the backend) is structurally invalid."""


class AdapterStoreError(ThemefitError):
    """The durable adapter store rejected a write."""


class PayloadError(ThemefitError):
    """A content payload could not be decoded."""
