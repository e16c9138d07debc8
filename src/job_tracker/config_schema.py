"""
JSON schemas for configuration validation.
"""

POLLING_SCHEMA = {
    "type": "object",
    "properties": {
        "overview_interval": {"type": "number", "exclusiveMinimum": 0},
        "running_interval": {"type": "number", "exclusiveMinimum": 0},
        "navigation_grace": {"type": "number", "minimum": 0},
    },
    "additionalProperties": False,
}

TRANSPORT_SCHEMA = {
    "type": "object",
    "properties": {
        "base_url": {"type": "string", "pattern": "^https?://"},
        "upload_path": {"type": "string"},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "suppress_error_toast": {"type": "boolean"},
        "headers": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    "additionalProperties": False,
}

STORAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": {"type": "string", "enum": ["memory", "fs", "redis"]},
        "dir": {"type": ["string", "null"]},
        "redis_url": {"type": "string"},
        "key_prefix": {"type": "string"},
        "ttl_seconds": {"type": ["integer", "null"], "minimum": 1},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
    "additionalProperties": False,
}

SERVICE_SCHEMA = {
    "type": "object",
    "required": ["service_name"],
    "properties": {
        "service_name": {"type": "string", "minLength": 1},
        "job_type": {"type": "string"},
        "api_base_path": {"type": "string"},
        "endpoint_name": {"type": "string"},
        "search_endpoint_name": {"type": "string"},
        "search_file_endpoint_name": {"type": "string"},
        "translation_prefix": {"type": "string"},
        "row_label": {"type": "string"},
        "required_columns": {"type": "array", "items": {"type": "string"}},
        "task_name": {"type": ["string", "null"]},
        "detail_fields": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "polling": POLLING_SCHEMA,
        "transport": TRANSPORT_SCHEMA,
        "storage": STORAGE_SCHEMA,
        "logging": LOGGING_SCHEMA,
        "services": {"type": "array", "items": SERVICE_SCHEMA},
    },
    "additionalProperties": False,
}


__all__ = ["CONFIG_SCHEMA"]
