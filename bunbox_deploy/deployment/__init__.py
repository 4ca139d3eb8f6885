"""Deploy and rollback orchestration"""

from .pipeline import (
    STAGES,
    DeploymentPipeline,
    DeploymentResult,
    DeployOptions,
    PipelineListener,
)
from .rollback import RollbackController, RollbackPlan

__all__ = [
    "STAGES",
    "DeploymentPipeline",
    "DeploymentResult",
    "DeployOptions",
    "PipelineListener",
    "RollbackController",
    "RollbackPlan",
]
