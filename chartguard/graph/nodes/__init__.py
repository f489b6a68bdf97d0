from .intake import accept_node, extract_node
from .validation import validate_node, calibrate_node
from .quality import gates_node, repair_node, fail_node, route_after_gates
from .finalize import finalize_node

__all__ = [
    "accept_node",
    "extract_node",
    "validate_node",
    "calibrate_node",
    "gates_node",
    "repair_node",
    "fail_node",
    "route_after_gates",
    "finalize_node",
]
