# tests/test_compliance.py
import pytest

from sentinel.integrations.compliance import ComplianceResult, ContactCandidate, filter_contactable


class FakeGate:
    def __init__(self, blocked: set[str]):
        self.blocked = blocked
        self.seen: list[tuple[str, str, bool]] = []

    async def is_contact_allowed(self, phone, user_id, override=False):
        self.seen.append((phone, user_id, override))
        if phone in self.blocked and not override:
            return ComplianceResult(allowed=False, reasons=("dnc",))
        return ComplianceResult(allowed=True)


@pytest.mark.asyncio
async def test_every_candidate_goes_through_gate():
    gate = FakeGate(blocked={"555-0100"})
    queue = [ContactCandidate(1, "555-0100"), ContactCandidate(2, "555-0199"), ContactCandidate(3, "  ")]

    out = await filter_contactable(queue, gate, user_id="agent-7")

    assert [c.lead_id for c in out.allowed] == [2]
    assert [(c.lead_id, reasons) for c, reasons in out.blocked] == [(1, ("dnc",)), (3, ("missing_phone",))]
    assert [p for p, _, _ in gate.seen] == ["555-0100", "555-0199"]


@pytest.mark.asyncio
async def test_override_is_passed_to_gate():
    gate = FakeGate(blocked={"555-0100"})
    out = await filter_contactable([ContactCandidate(1, "555-0100")], gate, user_id="admin", override=True)
    assert len(out.allowed) == 1
    assert gate.seen == [("555-0100", "admin", True)]
