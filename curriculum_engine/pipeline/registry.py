"""Wire stage handlers into the registry consumed by the dispatcher."""

from __future__ import annotations

from curriculum_engine.ai.gateway import AIGateway
from curriculum_engine.config import Settings
from curriculum_engine.jobs.dispatch import StageRegistry
from curriculum_engine.pipeline.analytics import CalculateAnalyticsStage
from curriculum_engine.pipeline.embeddings import GenerateEmbeddingsStage
from curriculum_engine.pipeline.extraction import ExtractSectionsStage
from curriculum_engine.pipeline.full import FullPipelineStage
from curriculum_engine.pipeline.mapping import MapActivitiesStage
from curriculum_engine.services.extraction_service import DocumentExtractor
from curriculum_engine.services.storage_client import ObjectStorage
from curriculum_engine.storage.analytics_repo import AnalyticsRepository, CourseworkRepository
from curriculum_engine.storage.documents_repo import DocumentsRepository


def build_stage_registry(
  settings: Settings,
  *,
  documents_repo: DocumentsRepository,
  coursework_repo: CourseworkRepository,
  analytics_repo: AnalyticsRepository,
  storage: ObjectStorage | None,
  extractor: DocumentExtractor,
  gateway: AIGateway,
) -> StageRegistry:
  """Build the registry mapping each job type to its stage."""
  extract = ExtractSectionsStage(
    documents_repo=documents_repo,
    storage=storage,
    extractor=extractor,
    gateway=gateway,
    prompt_chars=settings.section_prompt_chars,
    enqueue_embeddings=settings.embeddings_url is not None,
    follow_up_max_attempts=settings.job_max_attempts,
  )
  mapping = MapActivitiesStage()
  analytics = CalculateAnalyticsStage(coursework_repo=coursework_repo, analytics_repo=analytics_repo, gateway=gateway)
  embeddings = GenerateEmbeddingsStage(documents_repo=documents_repo, embeddings_url=settings.embeddings_url, timeout_seconds=settings.embeddings_timeout_seconds, auth_secret=settings.task_secret)
  return StageRegistry(
    {
      "extract_sections": extract,
      "map_activities": mapping,
      "calculate_analytics": analytics,
      "full_pipeline": FullPipelineStage([extract, mapping, analytics]),
      "generate_embeddings": embeddings,
    }
  )
