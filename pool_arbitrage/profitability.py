"""
Profitability evaluation of candidate arbitrage paths.

Turns an Opportunity into a yes/no Decision: simulate the path, subtract the
flash-loan fee, value the remainder in the native currency, subtract gas,
apply a safety buffer and compare against the per-token minimum profit.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .constants import BPS_DENOMINATOR, DEFAULT_CONFIG
from .exceptions import ConversionFailure, EvaluationError, SimulationRejected
from .interfaces import GasEstimator, PriceOracle
from .simulator import SwapSimulator
from .types import Decision, Opportunity, Token, TradeDescriptor
from .utils import format_units, get_logger

logger = get_logger(__name__)

REASON_PROFITABLE = "profitable"
REASON_SIMULATION_FAILED = "simulation failed"
REASON_GROSS_NOT_POSITIVE = "gross profit not positive"
REASON_NET_NOT_POSITIVE = "net profit not positive after flash loan fee"
REASON_CONVERSION_FAILED = "price conversion failed"
REASON_GAS_ESTIMATION_FAILED = "gas estimation failed"
REASON_GAS_EXCEEDS_PROFIT = "gas cost exceeds profit"
REASON_BELOW_THRESHOLD = "below profit threshold"

DEFAULT_THRESHOLD_KEY = "DEFAULT"


@dataclass(frozen=True)
class ProfitSettings:
    """
    Fee and threshold parameters of the evaluator.

    Attributes:
        flash_loan_fee_bps: Flash loan fee charged on the borrowed amount
        profit_buffer_bps: Haircut applied to the net profit before the
            threshold check
        tithe_bps: Share of the net profit set aside as tithe
        min_profit_thresholds: Minimum buffered profit in native smallest units
            per start-token symbol; the "DEFAULT" entry covers the rest
    """

    flash_loan_fee_bps: int = DEFAULT_CONFIG["FLASH_LOAN_FEE_BPS"]
    profit_buffer_bps: int = DEFAULT_CONFIG["PROFIT_BUFFER_BPS"]
    tithe_bps: int = DEFAULT_CONFIG["TITHE_BPS"]
    min_profit_thresholds: Dict[str, int] = field(
        default_factory=lambda: {DEFAULT_THRESHOLD_KEY: 0}
    )

    def __post_init__(self):
        for name in ("flash_loan_fee_bps", "profit_buffer_bps", "tithe_bps"):
            value = getattr(self, name)
            if not 0 <= value < BPS_DENOMINATOR:
                raise ValueError(f"{name} must be in [0, {BPS_DENOMINATOR}): {value}")

    def threshold_for(self, token: Token) -> int:
        thresholds = {k.upper(): v for k, v in self.min_profit_thresholds.items()}
        return thresholds.get(
            token.symbol.upper(), thresholds.get(DEFAULT_THRESHOLD_KEY, 0)
        )


class ProfitabilityEvaluator:
    """
    Decides whether an opportunity is worth handing to execution.

    Every ordinary rejection comes back as Decision(False, None, reason).
    Unexpected arithmetic or type faults are raised as EvaluationError so
    that a bug never masquerades as "not profitable".
    """

    def __init__(
        self,
        simulator: SwapSimulator,
        oracle: PriceOracle,
        gas_estimator: GasEstimator,
        settings: Optional[ProfitSettings] = None,
    ):
        self.simulator = simulator
        self.oracle = oracle
        self.gas_estimator = gas_estimator
        self.settings = settings or ProfitSettings()

    async def evaluate(self, opportunity: Opportunity, signer: str) -> Decision:
        """
        Evaluate one opportunity.

        Args:
            opportunity: Candidate path from a finder
            signer: Address the trade would be sent from (used for gas estimation)

        Returns:
            Decision with a TradeDescriptor when profitable

        Raises:
            EvaluationError: On an unexpected fault inside the profit math
        """
        try:
            return await self._evaluate(opportunity, signer)
        except EvaluationError:
            raise
        except (ArithmeticError, TypeError, ValueError) as e:
            logger.error(f"Evaluation of {opportunity.describe()} failed: {e}")
            raise EvaluationError(
                f"Unexpected fault evaluating {opportunity.describe()}: {e}",
                opportunity_key=opportunity.dedup_key,
                details={"kind": opportunity.kind.value},
            ) from e

    async def _evaluate(self, opportunity: Opportunity, signer: str) -> Decision:
        settings = self.settings
        token = opportunity.token_in
        amount_in = opportunity.amount_in

        try:
            outputs = await self.simulator.simulate_path_async(
                opportunity.path, amount_in
            )
        except SimulationRejected as e:
            return self._reject(opportunity, f"{REASON_SIMULATION_FAILED}: {e}")
        amount_out = outputs[-1]

        gross_profit = amount_out - amount_in
        if gross_profit <= 0:
            return self._reject(opportunity, REASON_GROSS_NOT_POSITIVE)

        flash_loan_fee = amount_in * settings.flash_loan_fee_bps // BPS_DENOMINATOR
        net_pre_gas = gross_profit - flash_loan_fee
        if net_pre_gas <= 0:
            return self._reject(opportunity, REASON_NET_NOT_POSITIVE)

        try:
            net_pre_gas_native = await self.oracle.convert(net_pre_gas, token)
            flash_loan_fee_native = (
                await self.oracle.convert(flash_loan_fee, token)
                if flash_loan_fee > 0
                else 0
            )
        except ConversionFailure as e:
            logger.warning(f"Cannot value {token.symbol} profit in native units: {e}")
            return self._reject(opportunity, f"{REASON_CONVERSION_FAILED}: {e}")
        if net_pre_gas_native <= 0:
            logger.warning(
                f"Profit of {net_pre_gas} {token.symbol} converts to "
                f"{net_pre_gas_native} native"
            )
            return self._reject(
                opportunity, f"{REASON_CONVERSION_FAILED}: non-positive native value"
            )

        gas = await self.gas_estimator.estimate(opportunity.path, signer)
        if not gas.success:
            return self._reject(opportunity, REASON_GAS_ESTIMATION_FAILED)
        if gas.cost_in_native > net_pre_gas_native:
            return self._reject(opportunity, REASON_GAS_EXCEEDS_PROFIT)

        net_after_gas = net_pre_gas_native - gas.cost_in_native
        threshold = settings.threshold_for(token)
        buffered = (
            net_after_gas * (BPS_DENOMINATOR - settings.profit_buffer_bps)
            // BPS_DENOMINATOR
        )
        if buffered <= threshold:
            return self._reject(opportunity, REASON_BELOW_THRESHOLD)

        tithe = net_after_gas * settings.tithe_bps // BPS_DENOMINATOR
        profit_percentage = await self._profit_percentage(
            net_after_gas, amount_in, token
        )

        descriptor = TradeDescriptor(
            opportunity=opportunity,
            simulated_amount_out=amount_out,
            gross_profit=gross_profit,
            flash_loan_fee=flash_loan_fee,
            gas_cost=gas.cost_in_native,
            net_profit=net_after_gas,
            tithe=tithe,
            profit_percentage=profit_percentage,
            threshold_used=threshold,
            intermediate_amounts=tuple(outputs),
            net_pre_gas_native=net_pre_gas_native,
            flash_loan_fee_native=flash_loan_fee_native,
            gas_limit=gas.gas_limit,
        )
        logger.info(
            f"Profitable {opportunity.kind.value} {opportunity.describe()} | "
            f"in {format_units(amount_in, token.decimals)} {token.symbol} "
            f"out {format_units(amount_out, token.decimals)} | "
            f"net {net_after_gas} native wei after gas {gas.cost_in_native}"
        )
        return Decision(True, descriptor, REASON_PROFITABLE)

    async def _profit_percentage(
        self, net_after_gas: int, amount_in: int, token: Token
    ) -> Optional[float]:
        """Best-effort net profit as a percentage of the input, never blocking."""
        try:
            amount_in_native = await self.oracle.convert(amount_in, token)
        except ConversionFailure as e:
            logger.debug(f"No native value for {token.symbol} input: {e}")
            return None
        if amount_in_native <= 0:
            return None
        # Four decimal places of percentage
        return net_after_gas * 1_000_000 // amount_in_native / 10_000

    @staticmethod
    def _reject(opportunity: Opportunity, reason: str) -> Decision:
        logger.debug(f"Rejected {opportunity.describe()}: {reason}")
        return Decision(False, None, reason)


def rejection_category(reason: str) -> str:
    """Collapse a rejection reason to its fixed prefix for counting."""
    return reason.split(":", 1)[0]

