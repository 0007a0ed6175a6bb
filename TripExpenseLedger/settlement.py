"""
Settlement Module

This module handles the settlement calculations for the trip expense
ledger.

Features:
    - Convert net balances into settlement transactions
    - Greedy largest-debtor / largest-creditor matching
    - Exact minimum-transaction solver for small groups
    - Tolerance for tiny rounding differences

Data Model:
    Input - balances (dict keyed by participant_id):
        - Decimal net balance in JPY (positive = owed money, negative = owes money)

    Output - list of settlement transactions:
        - from_participant: string (debtor who pays)
        - to_participant: string (creditor who receives)
        - amount: Decimal (> 0, unrounded, JPY)

Functions:
    compute_settlement: Greedy debt netting.
    compute_minimal_settlement: Minimum number of transactions (small groups).
    apply_settlements: Apply transactions to a copy of the balances.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from config.settings import get_settlement_epsilon
from currencies import to_decimal
from errors import ValidationError

logger = logging.getLogger(__name__)


# Exact solver is O(2^n * n); beyond this many non-zero members use greedy
MAX_EXACT_PARTICIPANTS = 15


def _resolve_epsilon(epsilon) -> Decimal:
    """
    Return the tolerance to settle with.

    Raises:
        ValidationError: If an explicit epsilon is not positive.
    """
    if epsilon is None:
        return get_settlement_epsilon()

    epsilon = to_decimal(epsilon)
    if epsilon <= 0:
        raise ValidationError(f"epsilon must be positive, got: {epsilon}")
    return epsilon


def _split_debtors_creditors(balances: dict, epsilon: Decimal):
    """
    Partition balances into debtors and creditors.

    Returns:
        tuple: (debtors, creditors) as lists of [participant_id, Decimal].
               Debtors keep their negative balance. Participants within
               epsilon of zero are in neither list.
    """
    debtors = []
    creditors = []

    for participant_id, balance in balances.items():
        net = to_decimal(balance)
        if net < -epsilon:
            debtors.append([participant_id, net])
        elif net > epsilon:
            creditors.append([participant_id, net])

    return debtors, creditors


def _match_greedy(debtors: list, creditors: list, epsilon: Decimal) -> list[dict]:
    # Most negative debtor first, most positive creditor first; sort is
    # stable so equal balances keep input order.
    debtors.sort(key=lambda x: x[1])
    creditors.sort(key=lambda x: x[1], reverse=True)

    settlements = []
    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor_id, debt = debtors[debtor_idx]
        creditor_id, credit = creditors[creditor_idx]

        amount = min(abs(debt), credit)
        settlements.append({
            "from_participant": debtor_id,
            "to_participant": creditor_id,
            "amount": amount
        })

        debtors[debtor_idx][1] = debt + amount
        creditors[creditor_idx][1] = credit - amount

        if abs(debtors[debtor_idx][1]) < epsilon:
            debtor_idx += 1
        if abs(creditors[creditor_idx][1]) < epsilon:
            creditor_idx += 1

    return settlements


def compute_settlement(balances: dict, epsilon: Decimal = None) -> list[dict]:
    """
    Convert net balances into settlement transactions by greedy debt netting.

    Algorithm:
        1. Debtors are balances below -epsilon, creditors above +epsilon
        2. Debtors sorted most negative first, creditors most positive first
        3. Repeatedly transfer min(|debtor|, creditor) from the current
           debtor to the current creditor, then advance every cursor whose
           remaining balance is within epsilon of zero
        4. Stop when either list is exhausted

    This is a heuristic: it usually needs few transfers but is not
    guaranteed to need the fewest (see compute_minimal_settlement).

    Args:
        balances: participant_id -> net balance (Decimal, int, float or str).
        epsilon: Tolerance; defaults to SETTLEMENT_EPSILON (0.01).

    Returns:
        list[dict]: Transactions with from_participant, to_participant and
                    a strictly positive Decimal amount. Empty when there are
                    no debtors or no creditors.

    Raises:
        ValidationError: If an explicit epsilon is zero or negative.

    Notes:
        - Does NOT modify input balances
        - Deterministic for identical input (including key order)
    """
    epsilon = _resolve_epsilon(epsilon)

    debtors, creditors = _split_debtors_creditors(balances, epsilon)
    return _match_greedy(debtors, creditors, epsilon)


def _to_cents(balances: list) -> list[int]:
    """
    Quantise balances to integer hundredths so that zero-sum tests are exact.

    The rounding residue is pushed onto the largest-magnitude entry so the
    quantised values still sum to zero.
    """
    cents = [
        int((balance * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        for _, balance in balances
    ]
    residue = sum(cents)
    if residue and cents:
        largest = max(range(len(cents)), key=lambda i: abs(cents[i]))
        cents[largest] -= residue
    return cents


def _max_zero_sum_groups(cents: list[int]) -> list[list[int]]:
    """
    Partition indices into the largest number of zero-sum groups.

    dp[mask] is the maximum number of complete zero-sum groups that can be
    formed by adding the members of mask one at a time; a group closes
    whenever the running subset sums to zero.

    Returns:
        list[list[int]]: Groups of indices into `cents`.
    """
    n = len(cents)
    full = (1 << n) - 1

    subset_sum = [0] * (1 << n)
    for mask in range(1, full + 1):
        low = mask & -mask
        subset_sum[mask] = subset_sum[mask ^ low] + cents[low.bit_length() - 1]

    dp = [0] * (1 << n)
    choice = [0] * (1 << n)
    for mask in range(1, full + 1):
        best = -1
        best_bit = 0
        remaining = mask
        while remaining:
            bit = remaining & -remaining
            remaining ^= bit
            value = dp[mask ^ bit]
            if value > best:
                best = value
                best_bit = bit
        dp[mask] = best + (1 if subset_sum[mask] == 0 else 0)
        choice[mask] = best_bit

    # Walk the choices back from the full set, cutting at zero-sum prefixes
    groups = []
    current = []
    mask = full
    while mask:
        if subset_sum[mask] == 0 and current:
            groups.append(current)
            current = []
        bit = choice[mask]
        current.append(bit.bit_length() - 1)
        mask ^= bit
    if current:
        groups.append(current)

    return groups


def compute_minimal_settlement(balances: dict, epsilon: Decimal = None) -> list[dict]:
    """
    Settle balances with the minimum possible number of transactions.

    n non-zero balances split into k disjoint zero-sum groups need exactly
    n - k transfers, so the solver finds the largest such k with a subset
    DP and then settles each group greedily.

    Groups are found on balances rounded to hundredths. Whatever the
    unrounded balances still leave above epsilon after the groups are
    settled goes through one final greedy pass, so sub-cent remainders
    can cost an extra transfer but never stay unsettled.

    Runs in O(2^n * n) time and memory. With more than
    MAX_EXACT_PARTICIPANTS non-zero balances it falls back to
    compute_settlement.

    Args:
        balances: participant_id -> net balance.
        epsilon: Tolerance; defaults to SETTLEMENT_EPSILON.

    Returns:
        list[dict]: Transactions in the same shape as compute_settlement,
                    grouped by zero-sum subgroup.
    """
    epsilon = _resolve_epsilon(epsilon)

    debtors, creditors = _split_debtors_creditors(balances, epsilon)
    active = debtors + creditors

    if not debtors or not creditors:
        return []

    if len(active) > MAX_EXACT_PARTICIPANTS:
        logger.info(
            "%d participants to settle exceeds exact limit %d, using greedy settlement",
            len(active), MAX_EXACT_PARTICIPANTS
        )
        return _match_greedy(debtors, creditors, epsilon)

    cents = _to_cents(active)
    groups = _max_zero_sum_groups(cents)

    settlements = []
    for group in sorted(groups, key=min):
        members = [list(active[i]) for i in sorted(group)]
        group_debtors = [m for m in members if m[1] < 0]
        group_creditors = [m for m in members if m[1] > 0]
        settlements.extend(_match_greedy(group_debtors, group_creditors, epsilon))

    remaining = apply_settlements(dict(active), settlements)
    leftover_debtors, leftover_creditors = _split_debtors_creditors(remaining, epsilon)
    if leftover_debtors and leftover_creditors:
        logger.info(
            "Settling sub-cent remainders of %d participants",
            len(leftover_debtors) + len(leftover_creditors)
        )
        settlements.extend(_match_greedy(leftover_debtors, leftover_creditors, epsilon))

    return settlements


def apply_settlements(balances: dict, settlements: list[dict]) -> dict:
    """
    Apply settlement transactions to a copy of the balances.

    The payer's balance rises by the amount and the receiver's falls by it,
    so a correct settlement leaves every balance near zero.

    Returns:
        dict: participant_id -> Decimal remaining balance.
    """
    remaining = {pid: to_decimal(balance) for pid, balance in balances.items()}

    for settlement in settlements:
        amount = to_decimal(settlement["amount"])
        remaining[settlement["from_participant"]] += amount
        remaining[settlement["to_participant"]] -= amount

    return remaining
