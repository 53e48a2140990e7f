"""
Utility helpers for the log relay.

Includes time helpers and NDJSON reading for the CLI.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Iterator, Union


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_ns(ts_ms: int) -> int:
    return ts_ms * 1_000_000


def iter_ndjson(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    """Yield one decoded object per non-blank line of an NDJSON file."""
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            yield json.loads(line)


def is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
