from tradequote.services.pipeline.board import BOARD_COLUMNS, format_currency, format_local_date
from tradequote.services.pipeline.controller import JobPipelineController
from tradequote.services.pipeline.rest_store import RestJobStore
from tradequote.services.pipeline.sql_store import SqlJobStore
from tradequote.services.pipeline.store import JobStore, JobStoreError
from tradequote.services.pipeline.transitions import TransitionPolicy
from tradequote.services.pipeline.types import Job, JobStatus, PipelineBoard, PipelineColumn

__all__ = [
    "BOARD_COLUMNS",
    "Job",
    "JobPipelineController",
    "JobStatus",
    "JobStore",
    "JobStoreError",
    "PipelineBoard",
    "PipelineColumn",
    "RestJobStore",
    "SqlJobStore",
    "TransitionPolicy",
    "format_currency",
    "format_local_date",
]
