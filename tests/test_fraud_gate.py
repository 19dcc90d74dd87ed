import asyncio

import pytest
import requests

from fakes import RECIPIENT, SENDER, FakeClient, assessment, make_draft
from streampay_client.errors import AttemptInProgress, FraudBlocked, FraudServiceError, GateStateError
from streampay_client.fraud_gate import (
    FALLBACK_ASSESSMENT,
    FraudCheckClient,
    FraudGate,
    GateState,
    build_request,
    risk_band,
)
from streampay_client.settings import Settings
from streampay_client.types import Recommendation


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self.body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def http_client(session: FakeSession) -> FraudCheckClient:
    return FraudCheckClient(Settings(FRAUD_CHECK_URL="http://fraud.test/api/check-fraud"), session=session)


def test_request_uses_wire_field_names() -> None:
    req = build_request(make_draft(total_amount=" 0.1 ", duration_hours="2"), SENDER)
    assert req.to_payload() == {
        "recipient": RECIPIENT,
        "amount": "0.1",
        "duration": 7200,
        "senderAddress": SENDER,
    }


def test_http_client_parses_assessment() -> None:
    body = {"riskScore": 85, "riskFactors": ["New recipient", "Large amount"], "recommendation": "block", "message": "No"}
    session = FakeSession(FakeResponse(200, body))
    gate = FraudGate(http_client(session))

    outcome = asyncio.run(gate.check(make_draft(), SENDER))

    assert not outcome.degraded
    assert outcome.assessment.risk_score == 85
    assert outcome.assessment.risk_factors == ("New recipient", "Large amount")
    assert outcome.assessment.recommendation is Recommendation.BLOCK
    url, payload, timeout = session.posts[0]
    assert url == "http://fraud.test/api/check-fraud"
    assert payload["senderAddress"] == SENDER
    assert timeout == 10.0


def test_null_risk_factors_are_empty() -> None:
    body = {"riskScore": 5, "riskFactors": None, "recommendation": "proceed", "message": "ok"}
    outcome = asyncio.run(FraudGate(http_client(FakeSession(FakeResponse(200, body)))).check(make_draft(), SENDER))
    assert outcome.assessment.risk_factors == ()


def test_block_with_null_message_still_blocks() -> None:
    body = {"riskScore": 90, "riskFactors": ["Known scam"], "recommendation": "block", "message": None}
    gate = FraudGate(http_client(FakeSession(FakeResponse(200, body))))

    outcome = asyncio.run(gate.check(make_draft(), SENDER))

    assert not outcome.degraded
    assert outcome.assessment.recommendation is Recommendation.BLOCK
    assert outcome.assessment.risk_score == 90
    assert outcome.assessment.message == ""
    with pytest.raises(FraudBlocked):
        gate.confirm()


@pytest.mark.parametrize(
    "body, score, factors",
    [
        ({"riskScore": 150, "riskFactors": ["Known scam"], "recommendation": "block"}, 100, ("Known scam",)),
        ({"riskScore": "high", "riskFactors": None, "recommendation": "BLOCK", "message": 7}, 100, ()),
        ({"riskScore": 70, "riskFactors": "Known scam", "recommendation": " block "}, 70, ()),
    ],
)
def test_malformed_block_is_not_downgraded(body, score, factors) -> None:
    client = http_client(FakeSession(FakeResponse(200, body)))
    result = asyncio.run(client.assess(build_request(make_draft(), SENDER)))

    assert result.recommendation is Recommendation.BLOCK
    assert result.risk_score == score
    assert result.risk_factors == factors
    assert result.message == ""


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.ConnectionError("connection refused")),
        FakeSession(error=requests.Timeout("read timed out")),
        FakeSession(FakeResponse(503, {})),
        FakeSession(FakeResponse(200, ValueError("Expecting value"))),
        FakeSession(FakeResponse(200, {"riskScore": 150, "riskFactors": [], "recommendation": "proceed"})),
        FakeSession(FakeResponse(200, {"riskScore": 10, "riskFactors": [], "recommendation": "maybe"})),
    ],
)
def test_http_failures_become_service_errors(session: FakeSession) -> None:
    client = http_client(session)
    request = build_request(make_draft(), SENDER)
    with pytest.raises(FraudServiceError):
        asyncio.run(client.assess(request))


def test_service_failure_fails_open() -> None:
    gate = FraudGate(http_client(FakeSession(error=requests.ConnectionError("connection refused"))))
    outcome = asyncio.run(gate.check(make_draft(), SENDER))

    assert outcome.degraded
    assert outcome.assessment == FALLBACK_ASSESSMENT
    assert outcome.assessment.recommendation is Recommendation.PROCEED
    assert outcome.assessment.risk_score == 30
    assert outcome.assessment.risk_factors == ("Detection service error",)
    assert gate.state is GateState.ASSESSED


def test_network_error_from_any_client_fails_open() -> None:
    gate = FraudGate(FakeClient(error=ConnectionError("network unreachable")))
    outcome = asyncio.run(gate.check(make_draft(), SENDER))
    assert outcome.assessment == FALLBACK_ASSESSMENT
    assert "network unreachable" in outcome.service_error


def test_unexpected_client_bug_propagates_and_resets() -> None:
    gate = FraudGate(FakeClient(error=KeyError("oops")))
    with pytest.raises(KeyError):
        asyncio.run(gate.check(make_draft(), SENDER))
    assert gate.state is GateState.IDLE


def test_block_only_allows_close() -> None:
    gate = FraudGate(FakeClient(assessment(Recommendation.BLOCK, score=85)))
    asyncio.run(gate.check(make_draft(), SENDER))

    with pytest.raises(FraudBlocked):
        gate.confirm()
    with pytest.raises(GateStateError):
        gate.cancel()
    gate.close()
    assert gate.state is GateState.BLOCKED_CLOSED


def test_proceed_and_warn_need_a_decision() -> None:
    for rec in (Recommendation.PROCEED, Recommendation.WARN):
        gate = FraudGate(FakeClient(assessment(rec)))
        asyncio.run(gate.check(make_draft(), SENDER))
        with pytest.raises(GateStateError):
            gate.close()
        assert gate.confirm().recommendation is rec
        assert gate.state is GateState.CONFIRMED

    gate = FraudGate(FakeClient(assessment(Recommendation.WARN)))
    asyncio.run(gate.check(make_draft(), SENDER))
    gate.cancel()
    assert gate.state is GateState.CANCELLED


def test_decisions_require_an_assessment() -> None:
    gate = FraudGate(FakeClient(assessment(Recommendation.PROCEED)))
    for action in (gate.confirm, gate.cancel, gate.close):
        with pytest.raises(GateStateError):
            action()


def test_only_one_check_in_flight() -> None:
    client = FakeClient(assessment(Recommendation.PROCEED))
    gate = FraudGate(client)

    async def scenario() -> None:
        client.hold()
        first = asyncio.create_task(gate.check(make_draft(), SENDER))
        await asyncio.sleep(0)
        assert gate.busy
        with pytest.raises(AttemptInProgress):
            await gate.check(make_draft(), SENDER)
        client.release.set()
        await first

    asyncio.run(scenario())
    assert len(client.requests) == 1
    assert gate.state is GateState.ASSESSED


def test_new_check_requires_reset() -> None:
    client = FakeClient(assessment(Recommendation.PROCEED))
    gate = FraudGate(client)
    asyncio.run(gate.check(make_draft(), SENDER))
    with pytest.raises(GateStateError):
        asyncio.run(gate.check(make_draft(), SENDER))

    gate.reset()
    assert gate.assessment is None
    asyncio.run(gate.check(make_draft(), SENDER))
    assert len(client.requests) == 2


def test_sender_address_is_required() -> None:
    client = FakeClient(assessment(Recommendation.PROCEED))
    gate = FraudGate(client)
    with pytest.raises(ValueError):
        asyncio.run(gate.check(make_draft(), "  "))
    assert gate.state is GateState.IDLE
    assert client.requests == []


def test_gate_remembers_the_checked_draft() -> None:
    gate = FraudGate(FakeClient(assessment(Recommendation.PROCEED)))
    asyncio.run(gate.check(make_draft(), SENDER))
    assert gate.matches(make_draft())
    assert not gate.matches(make_draft(total_amount="0.2"))


def test_risk_band() -> None:
    assert risk_band(0) == "low"
    assert risk_band(29) == "low"
    assert risk_band(30) == "medium"
    assert risk_band(59) == "medium"
    assert risk_band(60) == "high"
    assert risk_band(100) == "high"
