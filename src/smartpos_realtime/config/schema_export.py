"""JSON Schema export for ClientConfig.

Lets editors and deployment tooling validate realtime client
configuration files.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from smartpos_realtime.config.schema import ClientConfig

# Schema version tracks breaking changes to config format
SCHEMA_VERSION = "1.0.0"


def export_json_schema(
    *,
    version: str | None = None,
    include_metadata: bool = True,
) -> dict[str, Any]:
    """Export ClientConfig as JSON Schema with optional metadata.

    Args:
        version: Schema version to embed. Defaults to SCHEMA_VERSION.
        include_metadata: Whether to include $schema, title, and metadata.

    Returns:
        JSON Schema dictionary compatible with JSON Schema Draft 2020-12.
    """
    schema = ClientConfig.model_json_schema(mode="serialization")

    if include_metadata:
        schema_version = version or SCHEMA_VERSION
        schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
        schema["title"] = "SmartPOS Realtime Client Configuration"
        schema["x-smartpos-realtime"] = {
            "version": schema_version,
            "generated_at": datetime.now(UTC).isoformat(),
        }

    return schema


def export_json_schema_string(
    *,
    version: str | None = None,
    include_metadata: bool = True,
    indent: int = 2,
) -> str:
    """Export the schema as a formatted JSON string."""
    schema = export_json_schema(version=version, include_metadata=include_metadata)
    return json.dumps(schema, indent=indent, ensure_ascii=False)
