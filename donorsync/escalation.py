from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

DEFAULT_STEP_MINUTES = 30

ACTIVE = "active"
PAUSED = "paused"
FULFILLED = "fulfilled"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class EscalationRule:
    level: int
    name: str
    description: str
    actions: Tuple[str, ...]
    contact_groups: Tuple[str, ...]


ESCALATION_RULES: List[EscalationRule] = [
    EscalationRule(1, "Level 1 - Local Network",
                   "Contact all donors and local blood banks in the immediate area",
                   ("SMS to all registered donors", "Call local blood banks",
                    "Mobile app push notifications"),
                   ("local_donors", "local_blood_banks")),
    EscalationRule(2, "Level 2 - Regional Network",
                   "Expand to regional hospitals and blood banks within 50km radius",
                   ("Regional hospital network alert", "Blood bank partnership network",
                    "Social media emergency post"),
                   ("regional_hospitals", "partner_blood_banks", "emergency_volunteers")),
    EscalationRule(3, "Level 3 - State Network",
                   "Contact state-level blood transfusion services and emergency services",
                   ("State Blood Transfusion Council", "Emergency services coordination",
                    "Media alert"),
                   ("state_officials", "emergency_services", "media_contacts")),
    EscalationRule(4, "Level 4 - National Emergency",
                   "Activate national emergency protocols and government intervention",
                   ("National Blood Transfusion Council", "Health Ministry notification",
                    "Inter-state coordination"),
                   ("national_officials", "health_ministry", "interstate_network")),
]
MAX_LEVEL = len(ESCALATION_RULES)


def rule_for(level: int) -> Optional[EscalationRule]:
    for rule in ESCALATION_RULES:
        if rule.level == level:
            return rule
    return None


@dataclass(frozen=True)
class EmergencyRequest:
    id: str
    blood_type: str
    hospital: str
    created_at: datetime
    units_needed: int = 1
    status: str = ACTIVE
    paused_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    manual_levels: int = 0


def _evaluated_at(request: EmergencyRequest, now: datetime) -> datetime:
    if request.status == PAUSED and request.paused_at is not None:
        return min(request.paused_at, now)
    if request.status in (FULFILLED, CANCELLED) and request.resolved_at is not None:
        return min(request.resolved_at, now)
    return now


def _elapsed_minutes(request: EmergencyRequest, now: datetime) -> float:
    elapsed = (_evaluated_at(request, now) - request.created_at).total_seconds() / 60
    return max(0.0, elapsed)


def escalation_level(request: EmergencyRequest, now: datetime,
                     step_minutes: int = DEFAULT_STEP_MINUTES) -> int:
    """Level derived from elapsed time only, so it survives restarts."""
    steps = int(_elapsed_minutes(request, now) // step_minutes)
    return min(MAX_LEVEL, 1 + steps + request.manual_levels)


def minutes_until_next_level(request: EmergencyRequest, now: datetime,
                             step_minutes: int = DEFAULT_STEP_MINUTES) -> Optional[int]:
    if request.status != ACTIVE or escalation_level(request, now, step_minutes) >= MAX_LEVEL:
        return None
    into_step = _elapsed_minutes(request, now) % step_minutes
    return int(step_minutes - into_step)


def level_progress(request: EmergencyRequest, now: datetime,
                   step_minutes: int = DEFAULT_STEP_MINUTES) -> float:
    into_step = _elapsed_minutes(request, now) % step_minutes
    return min(into_step / step_minutes * 100, 100.0)


def pause(request: EmergencyRequest, now: datetime) -> EmergencyRequest:
    if request.status != ACTIVE:
        return request
    return replace(request, status=PAUSED, paused_at=now)


def resume(request: EmergencyRequest, now: datetime) -> EmergencyRequest:
    if request.status != PAUSED or request.paused_at is None:
        return request
    paused_for = max(timedelta(0), now - request.paused_at)
    return replace(request, status=ACTIVE, paused_at=None,
                   created_at=request.created_at + paused_for)


def escalate_manually(request: EmergencyRequest) -> EmergencyRequest:
    if request.status not in (ACTIVE, PAUSED):
        return request
    return replace(request, manual_levels=request.manual_levels + 1)


def _close(request: EmergencyRequest, status: str, now: datetime) -> EmergencyRequest:
    if request.status not in (ACTIVE, PAUSED):
        return request
    # a paused request closes at the level it was frozen at
    request = resume(request, now)
    return replace(request, status=status, resolved_at=now)


def complete(request: EmergencyRequest, now: datetime) -> EmergencyRequest:
    return _close(request, FULFILLED, now)


def cancel(request: EmergencyRequest, now: datetime) -> EmergencyRequest:
    return _close(request, CANCELLED, now)


def pending_transitions(requests: List[EmergencyRequest], dispatched: Dict[str, int],
                        now: datetime, step_minutes: int = DEFAULT_STEP_MINUTES
                        ) -> List[Tuple[EmergencyRequest, int]]:
    """Every (request, level) reached by an active request but not yet dispatched."""
    out: List[Tuple[EmergencyRequest, int]] = []
    for req in requests:
        if req.status != ACTIVE:
            continue
        current = escalation_level(req, now, step_minutes)
        for level in range(dispatched.get(req.id, 0) + 1, current + 1):
            out.append((req, level))
    return out
