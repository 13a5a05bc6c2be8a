"""Backend contract, HTTP transport and in-process backend."""

from journey_archive.backend.client import ArchiveBackendClient, SubmissionReceipt, Transport
from journey_archive.backend.envelope import Action, ActionRequest, ActionResponse
from journey_archive.backend.memory import InMemoryBackend
from journey_archive.backend.transport import HttpTransport

__all__ = [
    "Action",
    "ActionRequest",
    "ActionResponse",
    "ArchiveBackendClient",
    "HttpTransport",
    "InMemoryBackend",
    "SubmissionReceipt",
    "Transport",
]
