from __future__ import annotations

import asyncio

import pytest

from free_agent.agent_core.control.interrupts import InterruptController
from free_agent.agent_core.errors import AssistanceResolutionError, ToolValidationError
from free_agent.agent_core.schemas.domain import AssistanceInputType, Session, SessionStatus


@pytest.fixture
def session() -> Session:
    return Session(model="test", prompt="p", status=SessionStatus.needs_assistance)


@pytest.fixture
def interrupts(session) -> InterruptController:
    return InterruptController(session)


def test_request_rejects_empty_question(interrupts):
    with pytest.raises(ToolValidationError):
        interrupts.request("   ")


def test_resolve_with_wrong_id_leaves_request_pending(interrupts, session):
    request = interrupts.request("Which region?", input_type=AssistanceInputType.choice, choices=["EU", "US"])

    with pytest.raises(AssistanceResolutionError):
        interrupts.resolve("not-the-id", selected_choice="EU")
    with pytest.raises(AssistanceResolutionError):
        interrupts.resolve(request.id, selected_choice="APAC")
    with pytest.raises(AssistanceResolutionError):
        interrupts.resolve(request.id)

    assert session.pending_assistance == request
    assert session.status == SessionStatus.needs_assistance
    assert interrupts.last_resolved is None


def test_request_is_resolved_exactly_once(interrupts, session):
    request = interrupts.request("Deadline?")
    resolved = interrupts.resolve(request.id, response="Friday")

    assert resolved.resolved
    assert resolved.response == "Friday"
    assert session.pending_assistance is None
    with pytest.raises(AssistanceResolutionError):
        interrupts.resolve(request.id, response="Monday")

    assert interrupts.take_answer() == resolved
    assert interrupts.take_answer() is None


@pytest.mark.asyncio
async def test_interjection_signal_is_consumed_once(interrupts):
    waiter = asyncio.create_task(interrupts.wait_interjection())
    await asyncio.sleep(0)
    assert not waiter.done()

    interrupts.signal_interjection()
    await asyncio.wait_for(waiter, 1)

    assert interrupts.consume_interjection() is True
    assert interrupts.consume_interjection() is False


def test_clear_drops_pending_request_and_signal(interrupts, session):
    interrupts.request("Anything else?")
    interrupts.signal_interjection()
    interrupts.clear()

    assert session.pending_assistance is None
    assert interrupts.consume_interjection() is False
