"""Domain exception hierarchy."""

from __future__ import annotations


class AggregarrError(Exception):
    """Base error for the aggregation engine."""


class AddonError(AggregarrError):
    """A single addon request failed."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class AddonTimeout(AddonError):
    """The addon did not answer within its per-request timeout."""


class AddonNetworkError(AddonError):
    """Transport failure or non-success HTTP status."""


class AddonDecodeError(AddonError):
    """The addon answered with a body that could not be decoded."""


class AddonNotFound(AggregarrError):
    """No installed addon with the given id."""


class AddonAlreadyInstalled(AggregarrError):
    """An addon with the same id is already installed."""


class ProfileError(AggregarrError):
    """Invalid profile operation (unknown id, deleting the last profile)."""
