from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence


@dataclass
class Pot:
    amount: int
    eligible: List[int] = field(default_factory=list)


def build_side_pots(contributions: Sequence[int], folded: Sequence[bool]) -> List[Pot]:
    """Split per-seat hand contributions into layered pots.

    Each distinct contribution level forms a layer funded by every seat that put
    in at least that much; only the non-folded funders may win it. Layers whose
    funders all folded are merged into the closest layer that has a live seat.
    """
    if len(contributions) != len(folded):
        raise ValueError("contributions and folded must be the same length")
    if any(amount < 0 for amount in contributions):
        raise ValueError("Contributions cannot be negative")

    levels = sorted({amount for amount in contributions if amount > 0})
    layers: List[Pot] = []
    previous = 0
    for level in levels:
        funders = [seat for seat, amount in enumerate(contributions) if amount >= level]
        layers.append(
            Pot(
                amount=(level - previous) * len(funders),
                eligible=[seat for seat in funders if not folded[seat]],
            )
        )
        previous = level
    return _merge_orphans(layers)


def _merge_orphans(layers: List[Pot]) -> List[Pot]:
    if all(pot.eligible for pot in layers) or not any(pot.eligible for pot in layers):
        return layers

    merged: List[Pot] = []
    carry = 0
    for pot in layers:
        if not pot.eligible:
            if merged:
                merged[-1].amount += pot.amount
            else:
                carry += pot.amount
            continue
        merged.append(Pot(amount=pot.amount + carry, eligible=list(pot.eligible)))
        carry = 0
    return merged


def total_contributed(pots: Sequence[Pot]) -> int:
    return sum(pot.amount for pot in pots)
