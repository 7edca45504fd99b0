"""
Uniswap V3 integer math for exact-input swap simulation.

Mirrors TickMath, SqrtPriceMath, FullMath and SwapMath from the V3 core
contracts, using Python ints in place of uint256. Rounding directions match
the contracts: amounts owed to the pool round up, amounts paid out round down.
"""

from typing import List, Optional, Sequence, Tuple

from .constants import PIPS_DENOMINATOR, Q96

MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Hard stop on initialized-tick crossings within a single simulated swap
MAX_TICK_CROSSINGS = 200

_TICK_MAGIC = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with full precision."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return a * b // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) with full precision."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return -(-(a * b) // denominator)


def div_rounding_up(a: int, b: int) -> int:
    return -(-a // b)


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    sqrt(1.0001^tick) as a Q64.96 number.

    Raises:
        ValueError: If tick is outside [MIN_TICK, MAX_TICK]
    """
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick out of range: {tick}")

    abs_tick = -tick if tick < 0 else tick
    if abs_tick & 0x1:
        ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001
    else:
        ratio = 0x100000000000000000000000000000000
    for mask, magic in _TICK_MAGIC:
        if abs_tick & mask:
            ratio = (ratio * magic) >> 128

    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio

    # Q128.128 -> Q64.96, rounding up
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def get_amount0_delta(
    sqrt_ratio_a: int, sqrt_ratio_b: int, liquidity: int, round_up: bool
) -> int:
    """Token0 amount between two sqrt prices for a liquidity."""
    if sqrt_ratio_a > sqrt_ratio_b:
        sqrt_ratio_a, sqrt_ratio_b = sqrt_ratio_b, sqrt_ratio_a
    if sqrt_ratio_a <= 0:
        raise ValueError("sqrt ratio must be positive")

    numerator1 = liquidity << 96
    numerator2 = sqrt_ratio_b - sqrt_ratio_a
    if round_up:
        return div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, sqrt_ratio_b), sqrt_ratio_a
        )
    return mul_div(numerator1, numerator2, sqrt_ratio_b) // sqrt_ratio_a


def get_amount1_delta(
    sqrt_ratio_a: int, sqrt_ratio_b: int, liquidity: int, round_up: bool
) -> int:
    """Token1 amount between two sqrt prices for a liquidity."""
    if sqrt_ratio_a > sqrt_ratio_b:
        sqrt_ratio_a, sqrt_ratio_b = sqrt_ratio_b, sqrt_ratio_a
    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_ratio_b - sqrt_ratio_a, Q96)
    return mul_div(liquidity, sqrt_ratio_b - sqrt_ratio_a, Q96)


def get_next_sqrt_price_from_input(
    sqrt_price: int, liquidity: int, amount_in: int, zero_for_one: bool
) -> int:
    """Sqrt price after adding amount_in of the input token."""
    if sqrt_price <= 0:
        raise ValueError("sqrt price must be positive")
    if liquidity <= 0:
        raise ValueError("liquidity must be positive")
    if amount_in == 0:
        return sqrt_price

    if zero_for_one:
        # Rounds up so the price never moves further than the input allows
        numerator1 = liquidity << 96
        denominator = numerator1 + amount_in * sqrt_price
        return mul_div_rounding_up(numerator1, sqrt_price, denominator)

    # Rounds down
    return sqrt_price + (amount_in << 96) // liquidity


def compute_swap_step(
    sqrt_price_current: int,
    sqrt_price_target: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> Tuple[int, int, int, int]:
    """
    One exact-input swap step within a single liquidity range.

    Returns:
        Tuple of (sqrt_price_next, amount_in, amount_out, fee_amount)
    """
    zero_for_one = sqrt_price_current >= sqrt_price_target

    amount_remaining_less_fee = mul_div(
        amount_remaining, PIPS_DENOMINATOR - fee_pips, PIPS_DENOMINATOR
    )
    if zero_for_one:
        amount_in = get_amount0_delta(
            sqrt_price_target, sqrt_price_current, liquidity, True
        )
    else:
        amount_in = get_amount1_delta(
            sqrt_price_current, sqrt_price_target, liquidity, True
        )

    if amount_remaining_less_fee >= amount_in:
        sqrt_price_next = sqrt_price_target
    else:
        sqrt_price_next = get_next_sqrt_price_from_input(
            sqrt_price_current, liquidity, amount_remaining_less_fee, zero_for_one
        )

    reached_target = sqrt_price_next == sqrt_price_target

    if zero_for_one:
        if not reached_target:
            amount_in = get_amount0_delta(
                sqrt_price_next, sqrt_price_current, liquidity, True
            )
        amount_out = get_amount1_delta(
            sqrt_price_next, sqrt_price_current, liquidity, False
        )
    else:
        if not reached_target:
            amount_in = get_amount1_delta(
                sqrt_price_current, sqrt_price_next, liquidity, True
            )
        amount_out = get_amount0_delta(
            sqrt_price_current, sqrt_price_next, liquidity, False
        )

    if not reached_target:
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = mul_div_rounding_up(
            amount_in, fee_pips, PIPS_DENOMINATOR - fee_pips
        )

    return sqrt_price_next, amount_in, amount_out, fee_amount


def _next_initialized_tick(
    ticks: Sequence[Tuple[int, int]], tick_current: int, zero_for_one: bool
) -> Optional[Tuple[int, int]]:
    if zero_for_one:
        candidate = None
        for tick, liquidity_net in ticks:
            if tick <= tick_current:
                candidate = (tick, liquidity_net)
            else:
                break
        return candidate
    for tick, liquidity_net in ticks:
        if tick > tick_current:
            return (tick, liquidity_net)
    return None


def swap_exact_input(
    sqrt_price_x96: int,
    liquidity: int,
    tick: int,
    amount_in: int,
    zero_for_one: bool,
    fee_pips: int,
    ticks: Sequence[Tuple[int, int]] = (),
) -> int:
    """
    Simulate an exact-input swap and return the output amount.

    Walks initialized ticks in the swap direction, applying each tick's
    liquidity_net when crossed. Without tick data the current liquidity is
    assumed to extend to the price bound. The swap stops early when the
    price limit is reached, leaving part of the input unspent.

    Args:
        sqrt_price_x96: Current sqrt price (Q64.96)
        liquidity: Active liquidity
        tick: Current tick
        amount_in: Input amount including fee
        zero_for_one: True when swapping token0 for token1
        fee_pips: Pool fee in hundredths of a bip
        ticks: Initialized ticks as (tick, liquidity_net), ascending

    Returns:
        Output token amount
    """
    if amount_in <= 0:
        return 0

    price_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1
    ordered: List[Tuple[int, int]] = sorted(ticks)

    sqrt_price = sqrt_price_x96
    amount_remaining = amount_in
    amount_out = 0
    crossings = 0

    while amount_remaining > 0 and sqrt_price != price_limit:
        next_tick = _next_initialized_tick(ordered, tick, zero_for_one)
        if next_tick is None:
            sqrt_target = price_limit
        else:
            tick_index = max(MIN_TICK, min(MAX_TICK, next_tick[0]))
            sqrt_target = get_sqrt_ratio_at_tick(tick_index)
            if zero_for_one:
                sqrt_target = max(sqrt_target, price_limit)
            else:
                sqrt_target = min(sqrt_target, price_limit)

        if liquidity <= 0 and next_tick is None:
            break

        if liquidity > 0:
            sqrt_price, step_in, step_out, step_fee = compute_swap_step(
                sqrt_price, sqrt_target, liquidity, amount_remaining, fee_pips
            )
            amount_remaining -= step_in + step_fee
            amount_out += step_out
        else:
            # Empty range: price jumps to the next initialized tick
            sqrt_price = sqrt_target

        if next_tick is None or sqrt_price != sqrt_target:
            break

        crossings += 1
        if crossings > MAX_TICK_CROSSINGS:
            break
        if zero_for_one:
            liquidity -= next_tick[1]
            tick = next_tick[0] - 1
        else:
            liquidity += next_tick[1]
            tick = next_tick[0]

    return amount_out
