from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    pass

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def clean_tags(tags) -> list[str]:
    # trimmed, blanks dropped, first spelling wins
    seen: list[str] = []
    for t in tags or ():
        t = (t or "").strip()
        if t and t not in seen:
            seen.append(t)
    return seen
