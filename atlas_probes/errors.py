"""Exception taxonomy shared by the probe selection and result pipeline code.

Every error raised across a module boundary derives from ``AtlasError`` so
callers (and the scripts under ``scripts/``) can catch one type.
"""


class AtlasError(Exception):
    """Base class for all atlas-probes errors."""


class ValidationError(AtlasError, ValueError):
    """Caller input was rejected before any network call was issued."""


class NetworkError(AtlasError):
    """Connection failure, timeout or a non-success HTTP status."""


class DecodeError(AtlasError):
    """A JSON payload (or a streamed result array) could not be decoded."""


class GeocodeFailure(AtlasError):
    """The geocoding provider returned no match or an error status."""


class NotFoundError(AtlasError, LookupError):
    """A metro code did not match any airport in the directory."""


class DirectoryLoadError(AtlasError):
    """The airport reference dataset could not be fetched or read."""


__all__ = [
    "AtlasError",
    "ValidationError",
    "NetworkError",
    "DecodeError",
    "GeocodeFailure",
    "NotFoundError",
    "DirectoryLoadError",
]
