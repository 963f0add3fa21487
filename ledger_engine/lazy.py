from collections import defaultdict
from typing import Callable, Iterable, Iterator, Mapping, Tuple

from ledger_engine.domain import Transaction


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def group_by(
    trans: Iterable[Transaction], key: Callable[[Transaction], object]
) -> Mapping[object, Tuple[Transaction, ...]]:
    """Group transactions by key, each group ordered by effective date then id."""
    groups: dict = defaultdict(list)
    for t in trans:
        groups[key(t)].append(t)
    return {
        k: tuple(sorted(v, key=lambda t: (t.effective_date, t.id)))
        for k, v in groups.items()
    }


def top_items(totals: Mapping[str, float], k: int) -> Iterator[Tuple[str, float]]:
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    for key, total in ordered[: max(0, k)]:
        yield key, total
