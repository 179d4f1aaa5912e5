"""Input processing: file trees, archive extraction, and structured decoders."""

from export_validator.ingestion.decoders import (
    coerce_scalar,
    decode_records,
    iter_records,
    supported_extensions,
)
from export_validator.ingestion.file_processor import (
    FileProcessor,
    ProcessedInput,
    SampleSource,
    schema_name_for,
)

__all__ = [
    "FileProcessor",
    "ProcessedInput",
    "SampleSource",
    "coerce_scalar",
    "decode_records",
    "iter_records",
    "schema_name_for",
    "supported_extensions",
]
