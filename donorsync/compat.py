from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .blood_types import ALL_TYPES, RARITY_WEIGHTS, lookup

INVALID_REASON = "Invalid blood type"


@dataclass(frozen=True)
class CompatibilityResult:
    can_donate: bool
    can_receive: bool
    reason: str


def check_compatibility(donor: str, recipient: str) -> CompatibilityResult:
    """
    ABO + Rh check for an ordered (donor, recipient) pair.

    ABO rules are evaluated in a fixed priority order and the first match names
    the reason. An ABO failure overrides any Rh reason. Unknown types fail
    closed instead of raising because the matrix view calls this for all pairs.
    """
    d = lookup(donor)
    r = lookup(recipient)
    if d is None or r is None:
        return CompatibilityResult(False, False, INVALID_REASON)

    abo_ok = True
    if not d.antigen_a and not d.antigen_b:
        reason = "Type O is universal donor for ABO system"
    elif r.antigen_a and r.antigen_b:
        reason = "Type AB is universal recipient for ABO system"
    elif d.antigen_a == r.antigen_a and d.antigen_b == r.antigen_b:
        reason = "Same ABO blood group"
    elif d.antigen_a and not d.antigen_b and r.antigen_a and r.antigen_b:
        reason = "Type A can donate to Type AB"
    elif d.antigen_b and not d.antigen_a and r.antigen_a and r.antigen_b:
        reason = "Type B can donate to Type AB"
    else:
        abo_ok = False
        reason = ""

    rh_ok = not d.rh_positive or r.rh_positive

    if not abo_ok:
        reason = "ABO blood group incompatibility"
    elif not rh_ok:
        reason = "Rh factor incompatibility (Rh+ cannot donate to Rh-)"

    ok = abo_ok and rh_ok
    return CompatibilityResult(can_donate=ok, can_receive=ok, reason=reason)


def compatible_donors_for(recipient: str) -> List[str]:
    return [bt for bt in ALL_TYPES if check_compatibility(bt, recipient).can_donate]


def compatible_recipients_for(donor: str) -> List[str]:
    return [bt for bt in ALL_TYPES if check_compatibility(donor, bt).can_donate]


def compatibility_matrix() -> Dict[Tuple[str, str], CompatibilityResult]:
    return {(d, r): check_compatibility(d, r) for d in ALL_TYPES for r in ALL_TYPES}


def _donor_priority(recipient: str) -> List[str]:
    # Exact type first, then remaining compatible donors, most common first
    # so rare stock is preserved.
    others = [bt for bt in compatible_donors_for(recipient) if bt != recipient]
    others.sort(key=lambda bt: -RARITY_WEIGHTS.get(bt, 0))
    if lookup(recipient) is None:
        return others
    return [lookup(recipient).type] + others


def suggest_alternative(recipient: str, counts: Dict[str, int]) -> Optional[str]:
    """
    Return a rarity-aware compatible alternative when the exact recipient type is out of stock.
    - If requested type has stock -> None (no suggestion needed).
    - Otherwise pick among compatible types with stock > 0, preferring rarer blood types
      (smaller RARITY_WEIGHTS). Tie-break by enumeration order.
    """
    bt = lookup(recipient)
    if bt is None:
        return None
    if counts.get(bt.type, 0) > 0:
        return None

    candidates = [d for d in compatible_donors_for(bt.type) if counts.get(d, 0) > 0]
    if not candidates:
        return None
    candidates.sort(key=lambda d: (RARITY_WEIGHTS.get(d, 100), ALL_TYPES.index(d)))
    return candidates[0]


def plan_dispense(recipient: str, quantity: int,
                  counts: Dict[str, int]) -> Tuple[List[Dict], int]:
    """Greedy issue plan: [{"donor", "available", "take"}, ...] and the shortfall."""
    need = int(quantity)
    plan: List[Dict] = []
    for donor_bt in _donor_priority(recipient):
        if need <= 0:
            break
        avail = counts.get(donor_bt, 0)
        take = min(avail, need)
        if take <= 0:
            continue
        plan.append({"donor": donor_bt, "available": avail, "take": take})
        need -= take
    return plan, max(0, need)
