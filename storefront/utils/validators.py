from typing import Any, List


def coerce_quantity(v: Any) -> int:
    """Form quantities: anything unparsable or below 1 becomes 1."""
    try:
        q = int(str(v).strip())
    except (TypeError, ValueError):
        return 1
    return max(1, q)


def split_csv(text: str | None) -> List[str]:
    return [part.strip() for part in (text or "").split(",") if part.strip()]
