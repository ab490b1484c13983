"""Navigation interface module."""

from .flow_estimator import OpticFlowEstimator, FlowEstimate

__all__ = [
    "OpticFlowEstimator",
    "FlowEstimate"
]
