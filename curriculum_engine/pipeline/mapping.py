"""The map_activities stage."""

from __future__ import annotations

from curriculum_engine.jobs import progress as checkpoints
from curriculum_engine.jobs.dispatch import StageContext


class MapActivitiesStage:
  """Marks the document as mapping; section associations are derived during analytics."""

  async def run(self, context: StageContext) -> None:
    await context.progress.advance(checkpoints.MAPPING, status="mapping")
    context.document.processing_status = "mapping"
