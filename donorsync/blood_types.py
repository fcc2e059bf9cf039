from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class BloodType:
    type: str
    antigen_a: bool
    antigen_b: bool
    rh_positive: bool


BLOOD_TYPES: List[BloodType] = [
    BloodType("O-",  antigen_a=False, antigen_b=False, rh_positive=False),
    BloodType("O+",  antigen_a=False, antigen_b=False, rh_positive=True),
    BloodType("A-",  antigen_a=True,  antigen_b=False, rh_positive=False),
    BloodType("A+",  antigen_a=True,  antigen_b=False, rh_positive=True),
    BloodType("B-",  antigen_a=False, antigen_b=True,  rh_positive=False),
    BloodType("B+",  antigen_a=False, antigen_b=True,  rh_positive=True),
    BloodType("AB-", antigen_a=True,  antigen_b=True,  rh_positive=False),
    BloodType("AB+", antigen_a=True,  antigen_b=True,  rh_positive=True),
]
ALL_TYPES: List[str] = [bt.type for bt in BLOOD_TYPES]

_BY_NAME: Dict[str, BloodType] = {bt.type: bt for bt in BLOOD_TYPES}

# Approximate population distribution weights (smaller = rarer, preferred to preserve)
RARITY_WEIGHTS: Dict[str, int] = {
    "O-":  6,  "O+": 37,
    "A-":  6,  "A+": 34,
    "B-":  2,  "B+":  9,
    "AB-": 1,  "AB+": 5,
}
RARE_WEIGHT_LIMIT = 6


class InvalidBloodType(ValueError):
    pass


def lookup(name: Optional[str]) -> Optional[BloodType]:
    if not isinstance(name, str):
        return None
    return _BY_NAME.get(name.strip().upper())


def is_valid(name: Optional[str]) -> bool:
    return lookup(name) is not None


def require(name: Optional[str]) -> str:
    bt = lookup(name)
    if bt is None:
        raise InvalidBloodType(f"Invalid blood type: {name}")
    return bt.type


def is_rare(name: str) -> bool:
    return RARITY_WEIGHTS.get(name, 100) <= RARE_WEIGHT_LIMIT


def is_universal_donor(name: str) -> bool:
    bt = lookup(name)
    return bt is not None and not (bt.antigen_a or bt.antigen_b or bt.rh_positive)


def is_universal_recipient(name: str) -> bool:
    bt = lookup(name)
    return bt is not None and bt.antigen_a and bt.antigen_b and bt.rh_positive
