"""
Error taxonomy for the DEGSEA pipeline.

- DataQualityWarning: rows dropped during normalization (never raised)
- ConfigurationError: aborts the affected pipeline run
- ComputationFailure: enrichment backend failure, isolated per collection
"""

from typing import Optional


class DataQualityWarning(UserWarning):
    """Non-fatal data problem, aggregated and returned alongside cleaned data"""


class ConfigurationError(ValueError):
    """Invalid input or parameters; the pipeline run cannot proceed"""


class ComputationFailure(RuntimeError):
    """The enrichment backend failed for one gene-set collection"""

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        self.collection = collection
        self.cause = cause
        message = f"Enrichment failed for collection '{collection}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
