import json
from typing import Any, List

import pandas as pd

from .models import Message
from .transcript import format_hms


def messages_summary_df(messages: List[Message]) -> pd.DataFrame:
    rows = []
    for m in messages:
        rows.append(
            {
                "id": m.id,
                "time": format_hms(m.timestamp or 0),
                "rating": m.rating,
                "words": len((m.message or "").split()),
                "comment": m.comment,
            }
        )
    return pd.DataFrame(rows, columns=["id", "time", "rating", "words", "comment"])


def rating_stars(rating: int, max_rating: int = 5) -> str:
    return "★" * rating + "☆" * (max_rating - rating)


def pretty_json(x: Any) -> str:
    return json.dumps(x, ensure_ascii=False, indent=2)
