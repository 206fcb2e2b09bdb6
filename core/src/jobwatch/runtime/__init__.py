"""Runtime helpers: completion primitives, sinks and serializers."""

from jobwatch.runtime.completion import CompletionSignal, OnceCell
from jobwatch.runtime.sinks import (
    JsonDocumentSerializer,
    LocalFileSink,
    YamlDocumentSerializer,
    serializer_for_path,
)

__all__ = [
    "CompletionSignal",
    "OnceCell",
    "LocalFileSink",
    "JsonDocumentSerializer",
    "YamlDocumentSerializer",
    "serializer_for_path",
]
