# WORKFLOW: Parser for audit parameter snapshots, old and new formats.
# Used by: Audit recorder list_recent() audit views
# Functions:
# 1. parse_query_params() - JSON object first, then legacy "{key:val,key:val}" pairs
#
# Current entries are written as JSON; historical entries used comma separated
# key:value pairs with optional braces. Keys are lowercased, None values dropped.

import json
from typing import Dict, Optional


def parse_query_params(params: Optional[str]) -> Dict[str, str]:
    """Parse an audit params snapshot into a flat string mapping."""
    out: Dict[str, str] = {}
    if params is None:
        return out

    s = params.strip()
    if not s:
        return out

    try:
        data = json.loads(s)
    except ValueError:
        data = None

    if isinstance(data, dict):
        for key, value in data.items():
            if value is not None:
                out[str(key).lower()] = str(value)
        return out

    if s.startswith("{") and s.endswith("}"):
        s = s[1:-1].strip()

    for part in s.split(","):
        pair = part.strip()
        if not pair:
            continue
        key, sep, value = pair.partition(":")
        if sep:
            out[key.strip().lower()] = value.strip()

    return out
