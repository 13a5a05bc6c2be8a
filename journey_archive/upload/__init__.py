"""Upload pipeline: intake checks, payload encoding, queue and batch metadata."""

from journey_archive.upload.intake import (
    FileBlob,
    IntakeResult,
    format_file_size,
    intake,
    title_from_filename,
    validate_file,
)
from journey_archive.upload.encoding import build_preview, encode_payload, estimate_decoded_size
from journey_archive.upload.queue import (
    EnqueueOutcome,
    QueueItem,
    QueueSnapshot,
    QueueStatus,
    UploadQueueController,
)
from journey_archive.upload.batch import BatchMetadataCollector, BatchRecord, BatchSaveResult

__all__ = [
    "BatchMetadataCollector",
    "BatchRecord",
    "BatchSaveResult",
    "EnqueueOutcome",
    "FileBlob",
    "IntakeResult",
    "QueueItem",
    "QueueSnapshot",
    "QueueStatus",
    "UploadQueueController",
    "build_preview",
    "encode_payload",
    "estimate_decoded_size",
    "format_file_size",
    "intake",
    "title_from_filename",
    "validate_file",
]
