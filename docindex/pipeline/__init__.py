"""Ingestion orchestration: the upload pipeline and its background task runner."""

from docindex.pipeline.orchestrator import DocumentIngestionPipeline
from docindex.pipeline.task_runner import BackgroundTaskRunner

__all__ = [
    "BackgroundTaskRunner",
    "DocumentIngestionPipeline",
]
