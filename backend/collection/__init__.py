from .app import CollectionApp
from .config import Settings
from .workflow import WorkflowController

__all__ = ["CollectionApp", "Settings", "WorkflowController"]
