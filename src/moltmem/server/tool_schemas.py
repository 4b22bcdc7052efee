"""moltmem MCP Tool Schemas -- store, recall, forget and stats."""

from moltmem.types import MemoryCategory

_CATEGORY_DESCRIPTION = "One of: " + ", ".join(MemoryCategory.values())

TOOL_SCHEMAS = [
    {
        "name": "memory_store",
        "description": "Store a long-term memory (a short fact, preference, decision, ...). Use when the user says 'remember this' or when something is worth recalling in later sessions.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Memory content"},
                "category": {"type": "string", "description": f"{_CATEGORY_DESCRIPTION} (default: other)"},
                "importance": {"type": "number", "description": "Importance, conventionally 0.0-1.0 (default: 0.7)"},
                "sessionKey": {"type": "string", "description": "Session the memory came from"},
                "metadata": {"type": "object", "description": "Additional metadata, stored as-is"},
            },
            "required": ["text"],
        },
    },
    {
        "name": "memory_recall",
        "description": "Recall memories containing any of the query keywords, most important first. Empty query returns the top memories overall.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Keywords (case-insensitive substring match)"},
                "limit": {"type": "integer", "default": 5, "minimum": 1, "maximum": 100},
                "category": {"type": "string", "description": f"Filter by category. {_CATEGORY_DESCRIPTION}"},
                "dateFrom": {"type": "string", "description": "Only memories created at or after this ISO-8601 time"},
                "dateTo": {"type": "string", "description": "Only memories created at or before this ISO-8601 time"},
                "filterNoise": {"type": "boolean", "default": True, "description": "Hide filler like 'ok' or 'thanks'"},
            },
        },
    },
    {
        "name": "memory_forget",
        "description": "Permanently delete a memory by id, or every memory matching a query (up to 100).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "memoryId": {"type": "string", "description": "Exact memory id (takes precedence over query)"},
                "query": {"type": "string", "description": "Delete memories matching these keywords"},
            },
        },
    },
    {
        "name": "memory_stats",
        "description": "Count stored memories, in total and per category.",
        "inputSchema": {"type": "object", "properties": {}},
    },
]
