"""Schema inference: sampling, format detection, and the merge engine."""

from export_validator.inference.engine import InferenceConfig, InferenceMode, SchemaInferenceEngine
from export_validator.inference.formats import detect_format
from export_validator.inference.sampling import Sampler, SampleStrategy

__all__ = [
    "InferenceConfig",
    "InferenceMode",
    "SampleStrategy",
    "Sampler",
    "SchemaInferenceEngine",
    "detect_format",
]
