"""
Jobs package for job-record data access.
"""

from .repo import JobRecord, JobRepo, normalize_job

__all__ = [
    'JobRecord',
    'JobRepo',
    'normalize_job',
]
