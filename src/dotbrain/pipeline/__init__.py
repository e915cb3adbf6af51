"""Pipeline orchestration for inbox processing and folder reorganization."""

from .orchestrator import PipelineOrchestrator, PipelineResult, ProgressCallback, ScanTarget

__all__ = ["PipelineOrchestrator", "PipelineResult", "ProgressCallback", "ScanTarget"]
