# sentinel/integrations/compliance.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceResult:
    allowed: bool
    reasons: tuple[str, ...] = ()


class ComplianceGate(Protocol):
    """Do-not-call / consent scrubbing, owned by the dialer side."""

    async def is_contact_allowed(self, phone: str, user_id: str, override: bool = False) -> ComplianceResult:
        ...


@dataclass(frozen=True)
class ContactCandidate:
    lead_id: int
    phone: str


@dataclass
class FilteredQueue:
    allowed: list[ContactCandidate] = field(default_factory=list)
    blocked: list[tuple[ContactCandidate, tuple[str, ...]]] = field(default_factory=list)


async def filter_contactable(
    queue: Sequence[ContactCandidate],
    gate: ComplianceGate,
    *,
    user_id: str,
    override: bool = False,
) -> FilteredQueue:
    """
    Every candidate goes through the gate; there is no path that skips it.
    Candidates without a phone number are blocked locally.
    """
    out = FilteredQueue()
    for c in queue:
        if not (c.phone or "").strip():
            out.blocked.append((c, ("missing_phone",)))
            continue
        res = await gate.is_contact_allowed(c.phone, user_id, override)
        if res.allowed:
            out.allowed.append(c)
        else:
            out.blocked.append((c, tuple(res.reasons)))
    if out.blocked:
        log.info("compliance: blocked %d of %d candidates for %s", len(out.blocked), len(queue), user_id)
    return out
