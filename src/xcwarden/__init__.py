"""xcwarden - incremental Xcode builds and background log sessions."""

__version__ = "0.1.0"

from xcwarden.errors import XcwardenError
from xcwarden.models import (
    BuildRequest,
    Device,
    SessionRecord,
    Simulator,
    StateDocument,
)

__all__ = [
    "BuildRequest",
    "Device",
    "SessionRecord",
    "Simulator",
    "StateDocument",
    "XcwardenError",
]
