"""Tests for the bounded-concurrency upload queue."""

from __future__ import annotations

import asyncio
import logging

import pytest

from journey_archive.backend.client import ArchiveBackendClient
from journey_archive.backend.memory import InMemoryBackend
from journey_archive.config import UploadConfig
from journey_archive.core.collection import ArchiveItems
from journey_archive.errors import (
    ERROR_CODE_MESSAGES,
    GENERIC_TRANSPORT_MESSAGE,
    UploadInProgressError,
)
from journey_archive.upload.intake import FileBlob
from journey_archive.upload.queue import (
    QueueSnapshot,
    QueueStatus,
    UploadQueueController,
)

PROFILE_ID = "profile-1"

MB = 1024 * 1024


def make_controller(
    client: ArchiveBackendClient,
    items: ArchiveItems,
    **config,
) -> UploadQueueController:
    return UploadQueueController(client, PROFILE_ID, items, UploadConfig(**config))


def record_snapshots(controller: UploadQueueController) -> list[QueueSnapshot]:
    seen: list[QueueSnapshot] = []
    controller.subscribe(seen.append)
    return seen


def statuses_of(snapshots: list[QueueSnapshot], name: str) -> list[QueueStatus]:
    """Distinct consecutive statuses one file went through."""
    result: list[QueueStatus] = []
    for snapshot in snapshots:
        for queued in snapshot:
            if queued.file.name == name and (not result or result[-1] != queued.status):
                result.append(queued.status)
    return result


class TestConcurrency:
    """Tests for the worker-pull pool."""

    def test_at_most_two_uploading(self, backend: InMemoryBackend, client, items, make_image_blob) -> None:
        backend.latency = 0.01
        controller = make_controller(client, items, generate_previews=False)
        seen = record_snapshots(controller)
        files = [make_image_blob(f"photo_{n}.jpg") for n in range(7)]

        outcome = asyncio.run(controller.enqueue(files))

        in_flight = [sum(q.status == QueueStatus.UPLOADING for q in s) for s in seen]
        assert max(in_flight) == 2
        assert backend.max_in_flight["upload_archive_item"] <= 2
        assert all(q.status == QueueStatus.SUCCEEDED for q in outcome.snapshot)

    def test_concurrency_setting_respected(self, backend: InMemoryBackend, client, items, make_image_blob) -> None:
        backend.latency = 0.01
        controller = make_controller(client, items, concurrency=1, generate_previews=False)
        seen = record_snapshots(controller)
        asyncio.run(controller.enqueue([make_image_blob(f"p{n}.jpg") for n in range(3)]))
        assert max(sum(q.status == QueueStatus.UPLOADING for q in s) for s in seen) == 1

    def test_progress_is_monotonic(self, client, items, image_files) -> None:
        controller = make_controller(client, items, generate_previews=False)
        seen = record_snapshots(controller)
        asyncio.run(controller.enqueue(image_files))

        for file in image_files:
            progress = [q.progress for s in seen for q in s if q.file.name == file.name]
            assert progress == sorted(progress)
            assert progress[-1] == 100
            assert statuses_of(seen, file.name) == [
                QueueStatus.PENDING,
                QueueStatus.UPLOADING,
                QueueStatus.SUCCEEDED,
            ]

    def test_process_returns_final_snapshot(self, client, items, image_files) -> None:
        controller = make_controller(client, items, generate_previews=False)
        outcome = asyncio.run(controller.enqueue(image_files))
        assert outcome.snapshot == controller.snapshot
        assert not controller.is_busy

    def test_empty_queue(self, client, items) -> None:
        controller = make_controller(client, items)
        assert asyncio.run(controller.process()) == ()


class TestEnqueue:
    """Tests for intake and side effects of enqueue."""

    def test_rejected_files_never_sent(self, backend: InMemoryBackend, client, items, image_files) -> None:
        controller = make_controller(client, items)
        seen = record_snapshots(controller)
        oversized = FileBlob.from_bytes("huge.png", b"\0" * (9 * MB), "image/png")
        text = FileBlob.from_bytes("notes.txt", b"hello")

        outcome = asyncio.run(controller.enqueue([*image_files, oversized, text]))

        first = seen[0]
        assert [q.file.name for q in first] == ["a.jpg", "b.jpg", "c.jpg"]
        assert all(q.status == QueueStatus.PENDING and q.progress == 0 for q in first)

        assert len(outcome.intake.rejections) == 2
        assert outcome.intake.rejections[0].startswith("huge.png:")
        assert outcome.intake.rejections[1].startswith("notes.txt:")

        sent = sorted(call.payload["file_name"] for call in backend.calls_for("upload_archive_item"))
        assert sent == ["a.jpg", "b.jpg", "c.jpg"]
        assert len(outcome.succeeded) == 3

    def test_successes_join_working_collection(self, backend: InMemoryBackend, client, items, image_files) -> None:
        controller = make_controller(client, items)
        outcome = asyncio.run(controller.enqueue(image_files))

        assert len(items) == 3
        assert {q.result.id for q in outcome.snapshot} == set(items.ids())
        assert {item.title for item in items} == {"a", "b", "c"}
        assert all(item.owner_profile_id == PROFILE_ID for item in items)

    def test_previews_built_for_images(self, client, items, image_files) -> None:
        controller = make_controller(client, items)
        outcome = asyncio.run(controller.enqueue(image_files))
        assert all(q.preview.startswith("data:image/jpeg;base64,") for q in outcome.snapshot)

    def test_enqueue_replaces_queue(self, client, items, image_files, make_image_blob) -> None:
        controller = make_controller(client, items, generate_previews=False)
        asyncio.run(controller.enqueue(image_files))
        outcome = asyncio.run(controller.enqueue([make_image_blob("d.jpg")]))
        assert [q.file.name for q in outcome.snapshot] == ["d.jpg"]


class TestFailures:
    """Tests for per-item failure handling and retry."""

    def test_failure_is_isolated(self, backend: InMemoryBackend, client, items, image_files) -> None:
        backend.failing_files.add("b.jpg")
        controller = make_controller(client, items, generate_previews=False)
        outcome = asyncio.run(controller.enqueue(image_files))

        by_name = {q.file.name: q for q in outcome.snapshot}
        assert by_name["a.jpg"].status == QueueStatus.SUCCEEDED
        assert by_name["c.jpg"].status == QueueStatus.SUCCEEDED
        failed = by_name["b.jpg"]
        assert failed.status == QueueStatus.FAILED
        assert failed.progress == 0
        assert failed.error == ERROR_CODE_MESSAGES["server_error"]
        assert controller.has_failed and controller.has_succeeded
        assert len(items) == 2

    def test_transport_failure_uses_generic_message(self, backend: InMemoryBackend, client, items, image_files) -> None:
        backend.drop_next("upload_archive_item")
        controller = make_controller(client, items, generate_previews=False)
        outcome = asyncio.run(controller.enqueue(image_files))

        assert len(outcome.failed) == 1
        assert outcome.failed[0].error == GENERIC_TRANSPORT_MESSAGE
        assert len(outcome.succeeded) == 2

    def test_retry_one_leaves_siblings_alone(self, backend: InMemoryBackend, client, items, image_files) -> None:
        backend.failing_files.update({"a.jpg", "b.jpg"})
        controller = make_controller(client, items, generate_previews=False)
        before = asyncio.run(controller.enqueue(image_files))
        siblings = {q.id: q for q in before.snapshot if q.file.name != "b.jpg"}

        backend.failing_files.discard("b.jpg")
        seen = record_snapshots(controller)
        target = next(q for q in before.snapshot if q.file.name == "b.jpg")
        retried = asyncio.run(controller.retry(target.id))

        assert retried.status == QueueStatus.SUCCEEDED
        assert retried.file is target.file
        assert statuses_of(seen, "b.jpg") == [
            QueueStatus.PENDING,
            QueueStatus.UPLOADING,
            QueueStatus.SUCCEEDED,
        ]
        for snapshot in seen:
            for queued in snapshot:
                if queued.id in siblings:
                    assert queued == siblings[queued.id]

    def test_retry_ignores_non_failed(self, backend: InMemoryBackend, client, items, image_files) -> None:
        controller = make_controller(client, items, generate_previews=False)
        outcome = asyncio.run(controller.enqueue(image_files))
        calls = len(backend.calls)
        done = outcome.snapshot[0]
        assert asyncio.run(controller.retry(done.id)) == done
        assert len(backend.calls) == calls

    def test_retry_all_never_reuploads_succeeded(self, backend: InMemoryBackend, client, items, image_files) -> None:
        backend.failing_files.add("b.jpg")
        controller = make_controller(client, items, generate_previews=False)
        asyncio.run(controller.enqueue(image_files))

        backend.failing_files.clear()
        seen = record_snapshots(controller)
        final = asyncio.run(controller.retry_all_failed())

        assert all(q.status == QueueStatus.SUCCEEDED for q in final)
        for name in ("a.jpg", "c.jpg"):
            assert statuses_of(seen, name) == [QueueStatus.SUCCEEDED]
        uploads = [call.payload["file_name"] for call in backend.calls_for("upload_archive_item")]
        assert sorted(uploads) == ["a.jpg", "b.jpg", "b.jpg", "c.jpg"]
        assert len(items) == 3

    def test_clear(self, client, items, image_files) -> None:
        controller = make_controller(client, items, generate_previews=False)
        asyncio.run(controller.enqueue(image_files))
        controller.clear()
        assert controller.snapshot == ()
        assert not controller.has_succeeded

    def test_unsubscribe(self, client, items, image_files) -> None:
        controller = make_controller(client, items, generate_previews=False)
        seen: list[QueueSnapshot] = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()
        asyncio.run(controller.enqueue(image_files))
        assert seen == []


class TestSingleRun:
    """Tests that only one enqueue, process or retry runs at a time."""

    def test_overlapping_runs_refused(self, backend: InMemoryBackend, client, items, make_image_blob) -> None:
        backend.latency = 0.02
        controller = make_controller(client, items, generate_previews=False)
        seen = record_snapshots(controller)
        files = [make_image_blob(f"photo_{n}.jpg") for n in range(6)]

        async def run():
            task = asyncio.create_task(controller.enqueue(files))
            await asyncio.sleep(0.005)
            assert controller.is_busy
            with pytest.raises(UploadInProgressError):
                await controller.retry_all_failed()
            with pytest.raises(UploadInProgressError):
                await controller.process()
            with pytest.raises(UploadInProgressError):
                await controller.enqueue([make_image_blob("late.jpg")])
            return await task

        outcome = asyncio.run(run())

        assert max(sum(q.status == QueueStatus.UPLOADING for q in s) for s in seen) == 2
        assert backend.max_in_flight["upload_archive_item"] <= 2
        assert len(outcome.succeeded) == 6
        assert len(backend.calls_for("upload_archive_item")) == 6
        assert not controller.is_busy

    def test_retry_refused_during_run(self, backend: InMemoryBackend, client, items, image_files) -> None:
        backend.failing_files.add("b.jpg")
        controller = make_controller(client, items, generate_previews=False)
        first = asyncio.run(controller.enqueue(image_files))
        failed = first.failed[0]

        backend.failing_files.clear()
        backend.latency = 0.02

        async def run():
            task = asyncio.create_task(controller.retry(failed.id))
            await asyncio.sleep(0.005)
            assert controller.is_busy
            with pytest.raises(UploadInProgressError):
                await controller.retry_all_failed()
            return await task

        retried = asyncio.run(run())
        assert retried.status == QueueStatus.SUCCEEDED
        assert len(items) == 3

    def test_clear_refused_while_uploading(self, backend: InMemoryBackend, client, items, make_image_blob) -> None:
        backend.latency = 0.02
        controller = make_controller(client, items, generate_previews=False)

        async def run():
            task = asyncio.create_task(controller.enqueue([make_image_blob("a.jpg")]))
            await asyncio.sleep(0.005)
            with pytest.raises(UploadInProgressError) as exc_info:
                controller.clear()
            assert exc_info.value.user_message == "Please wait for the current uploads to finish."
            return await task

        outcome = asyncio.run(run())

        assert [q.status for q in outcome.snapshot] == [QueueStatus.SUCCEEDED]
        assert len(items) == 1
        controller.clear()
        assert controller.snapshot == ()

    def test_pool_run_is_logged(self, client, items, image_files, caplog) -> None:
        controller = make_controller(client, items, generate_previews=False)
        with caplog.at_level(logging.INFO, logger="journey_archive"):
            asyncio.run(controller.enqueue(image_files))
        assert "Uploading 3 file(s) with 2 worker(s)..." in caplog.text
        assert "Uploading 3 file(s) with 2 worker(s) completed in" in caplog.text
