"""
skytap-ci - Skytap lab lifecycle steps for build pipelines.
"""

__version__ = "0.1.0"

from .clients import ApiResponse, Credentials, HttpGateway
from .runner import Pipeline, StepRunner, load_pipeline
from .transitions import OperationOutcome, TransitionEngine, TransitionRequest

__all__ = [
    "ApiResponse",
    "Credentials",
    "HttpGateway",
    "OperationOutcome",
    "Pipeline",
    "StepRunner",
    "TransitionEngine",
    "TransitionRequest",
    "load_pipeline",
]
