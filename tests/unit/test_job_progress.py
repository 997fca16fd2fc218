"""Unit tests for document progress checkpoints."""

from __future__ import annotations

import pytest
from fakes import InMemoryDocumentsRepo, make_document

from curriculum_engine.jobs import progress as checkpoints
from curriculum_engine.jobs.progress import DocumentProgressTracker


@pytest.mark.anyio
async def test_progress_never_decreases_within_an_attempt() -> None:
  repo = InMemoryDocumentsRepo()
  repo.add(make_document())
  tracker = DocumentProgressTracker(repo, "doc-1")

  await tracker.advance(checkpoints.SECTIONS_REQUESTED, status="analyzing")
  written = await tracker.advance(checkpoints.EXTRACTION_STARTED)

  assert written == checkpoints.SECTIONS_REQUESTED
  assert repo.progress_log["doc-1"] == [60, 60]
  assert repo.documents["doc-1"].processing_status == "analyzing"


@pytest.mark.anyio
async def test_new_attempt_may_restart_below_previous_progress() -> None:
  repo = InMemoryDocumentsRepo()
  document = make_document()
  document.processing_progress = 80
  repo.add(document)

  tracker = DocumentProgressTracker(repo, "doc-1")
  await tracker.advance(checkpoints.EXTRACTION_STARTED, status="extracting")

  assert repo.documents["doc-1"].processing_progress == 20
  assert tracker.current == 20


@pytest.mark.anyio
async def test_out_of_range_progress_is_rejected() -> None:
  repo = InMemoryDocumentsRepo()
  repo.add(make_document())
  tracker = DocumentProgressTracker(repo, "doc-1")
  with pytest.raises(ValueError):
    await tracker.advance(101)


def test_mark_records_progress_written_elsewhere() -> None:
  tracker = DocumentProgressTracker(InMemoryDocumentsRepo(), "doc-1")
  tracker.mark(checkpoints.SECTIONS_STORED)
  tracker.mark(checkpoints.TEXT_EXTRACTED)
  assert tracker.current == checkpoints.SECTIONS_STORED


def test_checkpoints_are_ordered() -> None:
  values = [
    checkpoints.EXTRACTION_STARTED,
    checkpoints.TEXT_EXTRACTED,
    checkpoints.SECTIONS_REQUESTED,
    checkpoints.SECTIONS_STORED,
    checkpoints.MAPPING,
    checkpoints.ANALYTICS,
    checkpoints.COMPLETE,
  ]
  assert values == [20, 40, 60, 80, 85, 90, 100]
