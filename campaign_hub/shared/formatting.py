from datetime import datetime
from typing import Any, Dict


def format_submission_time(dt: datetime, with_zone: bool = False) -> str:
    """``Jan 5, 2025, 03:04 PM`` style timestamp used in titles and messages."""
    text = f"{dt:%b} {dt.day}, {dt.year}, {dt:%I:%M %p}"
    if with_zone and dt.tzname():
        text = f"{text} {dt.tzname()}"
    return text


def humanize_field(key: str) -> str:
    """``job_title`` -> ``Job Title``"""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))


def stringify_values(data: Dict[str, Any]) -> Dict[str, str]:
    return {str(k): "" if v is None else str(v) for k, v in data.items()}
