"""Journey Archive - a reviewed personal archive of images, documents and moments.

Contributions are uploaded through a bounded-concurrency queue, described in
a batch, submitted for steward review and disclosed to viewers according to
their visibility tier.

Quick Start:
    >>> from journey_archive import ArchiveSession, FileBlob, Profile, get_config
    >>> session = ArchiveSession.from_config(Profile(id="p-1"), get_config())
    >>> outcome = await session.upload([FileBlob.from_path("cup_final.jpg")])

CLI Usage:
    $ journey-archive validate scan.pdf photo.jpg
    $ journey-archive upload photo.jpg --profile-id p-1 --visibility family
    $ journey-archive readiness profile.json
"""

__version__ = "0.1.0"

from journey_archive.config import AppConfig, get_config, load_config
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import (
    Contribution,
    ContributionStatus,
    ItemType,
    Profile,
    ViewerRole,
    VisibilityLevel,
)
from journey_archive.errors import (
    ApplicationError,
    ArchiveError,
    ContentValidationError,
    TransportError,
)
from journey_archive.session import ArchiveSession
from journey_archive.upload.intake import FileBlob

__all__ = [
    "__version__",
    "AppConfig",
    "ApplicationError",
    "ArchiveError",
    "ArchiveItems",
    "ArchiveSession",
    "ContentValidationError",
    "Contribution",
    "ContributionStatus",
    "FileBlob",
    "ItemType",
    "Profile",
    "TransportError",
    "ViewerRole",
    "VisibilityLevel",
    "get_config",
    "load_config",
]
