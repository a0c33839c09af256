"""Value tags for the loans on the compare list."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List

from .utils import decimal_from_str

RANK_TAGS = (
    "Best value among compared loans",
    "Moderate option",
    "Least cost-effective option",
)


def rank_records(records: Iterable[Dict[str, Any]], key: str = "total_payment") -> List[Dict[str, Any]]:
    """Return copies of ``records`` with ``rank`` and ``tag`` added.

    Records are ranked by ``key`` ascending, so the cheapest loan is the best
    value. Records with equal values share the rank of the first of them.
    The returned list keeps the input order; records ranked beyond the known
    tags get an empty tag.
    """
    records = list(records)
    values = [decimal_from_str(r.get(key, "0")) for r in records]
    ordered: List[Decimal] = sorted(values)
    ranked = []
    for record, value in zip(records, values):
        rank = ordered.index(value)
        tagged = dict(record)
        tagged["rank"] = rank
        tagged["tag"] = RANK_TAGS[rank] if rank < len(RANK_TAGS) else ""
        ranked.append(tagged)
    return ranked
