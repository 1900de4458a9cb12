"""Whale transfer classification and window aggregation.

A transfer counts as exchange inflow when its destination label names a
known exchange, otherwise as outflow when its source label does. Transfers
matching neither side are ignored.
"""

from collections.abc import Iterable

from cryptosignal.config import DEFAULT_EXCHANGE_KEYWORDS
from cryptosignal.data.models import WhaleTransferRow
from cryptosignal.features.models import WhaleWindow
from cryptosignal.features.stats import to_float


class ExchangeLabelMatcher:
    """Case-insensitive substring matcher for exchange wallet labels.

    Args:
        keywords: Exchange name fragments. Lower-cased on construction;
            order is preserved.
    """

    def __init__(self, keywords: Iterable[str] = DEFAULT_EXCHANGE_KEYWORDS) -> None:
        self._keywords = tuple(k.lower() for k in keywords if k)

    @property
    def keywords(self) -> tuple[str, ...]:
        return self._keywords

    def is_exchange(self, label: str | None) -> bool:
        if not label:
            return False
        lowered = label.lower()
        return any(keyword in lowered for keyword in self._keywords)


def aggregate_whale_flows(
    rows: Iterable[WhaleTransferRow],
    matcher: ExchangeLabelMatcher,
) -> WhaleWindow:
    """Sum exchange inflow/outflow USD and counts for a set of transfers.

    Unknown amounts add nothing to the USD totals but still count as a
    transfer.
    """
    inflow = 0.0
    outflow = 0.0
    count_in = 0
    count_out = 0

    for row in rows:
        amount = to_float(row.amount_usd) or 0.0
        if matcher.is_exchange(row.to_address):
            inflow += amount
            count_in += 1
        elif matcher.is_exchange(row.from_address):
            outflow += amount
            count_out += 1

    return WhaleWindow(
        inflow_usd=inflow,
        outflow_usd=outflow,
        count_inflow=count_in,
        count_outflow=count_out,
    )
