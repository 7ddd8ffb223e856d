"""
Services package for Bulk Job Orchestrator

Jobs, batches and the stream components they compose.
"""

from .job import Job
from .batch import Batch, shape_record
from .streams import UploadChannel, RecordStream, BatchStream

__all__ = [
    "Job",
    "Batch",
    "shape_record",
    "UploadChannel",
    "RecordStream",
    "BatchStream"
]
