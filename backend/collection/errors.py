from __future__ import annotations


class WorkflowError(Exception):
    """Base class for inspection workflow failures."""


class StepIncompleteError(WorkflowError, ValueError):
    pass


class DamageFlowError(WorkflowError, ValueError):
    pass


class WorkflowFinishedError(WorkflowError):
    pass


class SubmissionError(WorkflowError):
    """Final submission failed; the in-memory workflow is left untouched so it can be retried."""


class DraftStoreError(WorkflowError):
    pass
