from .workflow import create_validation_graph, run_validation
from .context import PipelineContext

__all__ = ["create_validation_graph", "run_validation", "PipelineContext"]
