"""The full_pipeline stage: extraction, mapping, and analytics in one job."""

from __future__ import annotations

from dataclasses import replace

from curriculum_engine.jobs.dispatch import StageContext, StageHandler


class FullPipelineStage:
  """Runs each stage in order; any exception fails the whole job and a retry restarts from extraction."""

  def __init__(self, stages: list[StageHandler]) -> None:
    self._stages = stages

  async def run(self, context: StageContext) -> None:
    pipeline_context = replace(context, in_full_pipeline=True)
    for stage in self._stages:
      await stage.run(pipeline_context)
