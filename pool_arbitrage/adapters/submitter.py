"""
Paper hand-off of profitable trades.
"""

from collections import deque
from typing import Deque, List

from ..types import TradeDescriptor
from ..utils import format_units, get_logger

logger = get_logger(__name__)


class LoggingTradeSubmitter:
    """
    Logs every trade descriptor it receives and keeps the most recent ones.

    Stands in for an execution layer; nothing is signed or broadcast.
    """

    def __init__(self, max_history: int = 100):
        self._history: Deque[TradeDescriptor] = deque(maxlen=max_history)

    async def submit(self, descriptor: TradeDescriptor) -> None:
        opportunity = descriptor.opportunity
        token = opportunity.token_in
        logger.info(
            f"PAPER TRADE {opportunity.kind.value} {opportunity.describe()} | "
            f"amount {format_units(opportunity.amount_in, token.decimals)} {token.symbol} | "
            f"net {descriptor.net_profit} native wei "
            f"(tithe {descriptor.tithe}, gas {descriptor.gas_cost})"
        )
        logger.debug(f"Trade descriptor: {descriptor.as_dict()}")
        self._history.append(descriptor)

    @property
    def submitted(self) -> List[TradeDescriptor]:
        return list(self._history)
