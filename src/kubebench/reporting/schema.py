"""JSON Schema for the kube-bench --json output."""

_COUNT = {"type": "integer", "minimum": 0}

RESULT_SCHEMA = {
    "type": "object",
    "required": ["test_number", "status"],
    "properties": {
        "test_number": {"type": "string"},
        "test_desc": {"type": "string"},
        "remediation": {"type": "string"},
        "status": {"enum": ["PASS", "FAIL", "WARN", "INFO"]},
        "scored": {"type": "boolean"},
    },
}

TESTS_SCHEMA = {
    "type": "object",
    "required": ["section"],
    "properties": {
        "section": {"type": "string"},
        "desc": {"type": "string"},
        "pass": _COUNT,
        "fail": _COUNT,
        "warn": _COUNT,
        "info": _COUNT,
        "results": {"type": ["array", "null"], "items": RESULT_SCHEMA},
    },
}

CONTROLS_SCHEMA = {
    "type": "object",
    "required": ["id", "tests"],
    "properties": {
        "id": {"type": "string"},
        "version": {"type": "string"},
        "text": {"type": "string"},
        "node_type": {"type": "string"},
        "tests": {"type": ["array", "null"], "items": TESTS_SCHEMA},
        "total_pass": _COUNT,
        "total_fail": _COUNT,
        "total_warn": _COUNT,
        "total_info": _COUNT,
    },
}

# Older kube-bench releases print a bare array of controls; newer ones wrap
# it in {"Controls": [...], "Totals": {...}}.
REPORT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "oneOf": [
        {"type": "array", "items": CONTROLS_SCHEMA},
        {
            "type": "object",
            "required": ["Controls"],
            "properties": {
                "Controls": {"type": "array", "items": CONTROLS_SCHEMA},
                "Totals": {
                    "type": "object",
                    "properties": {
                        "total_pass": _COUNT,
                        "total_fail": _COUNT,
                        "total_warn": _COUNT,
                        "total_info": _COUNT,
                    },
                },
            },
        },
    ],
}
