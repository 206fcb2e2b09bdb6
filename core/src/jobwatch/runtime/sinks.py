from __future__ import annotations

import json
from pathlib import Path
from typing import BinaryIO

import yaml

from jobwatch.contracts.engine import DocumentSerializer
from jobwatch.contracts.service_metrics import ServiceMetrics

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


class LocalFileSink:
    """MetricsSink writing to the local filesystem; parent directories are created."""

    def open(self, path: str) -> BinaryIO:
        output = Path(path).expanduser()
        output.parent.mkdir(parents=True, exist_ok=True)
        return output.open("wb")


class JsonDocumentSerializer:
    def serialize(self, document: ServiceMetrics) -> bytes:
        return json.dumps(
            document.to_payload(), indent=2, sort_keys=True, default=str
        ).encode("utf-8")


class YamlDocumentSerializer:
    def serialize(self, document: ServiceMetrics) -> bytes:
        # to_payload() already renders timestamps as ISO strings.
        return yaml.safe_dump(document.to_payload(), sort_keys=False).encode("utf-8")


def serializer_for_path(path: str | Path) -> DocumentSerializer:
    if Path(path).suffix.lower() in _YAML_SUFFIXES:
        return YamlDocumentSerializer()
    return JsonDocumentSerializer()
