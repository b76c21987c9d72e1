from __future__ import annotations

import pytest

from free_agent.agent_core.errors import FeatureDisabledError, SpawnValidationError
from free_agent.agent_core.orchestration.spawn import SpawnSlot, validate_spawn
from free_agent.agent_core.schemas.domain import AdvancedFeatures, Orchestration, Session, SessionRole


def _session(**features) -> Session:
    return Session(
        model="test",
        prompt="coordinate",
        advanced_features=AdvancedFeatures(spawn_enabled=True, max_children=3, child_max_iterations=7, **features),
    )


def test_defaults_fill_budget_and_threshold():
    request = validate_spawn({"children": [{"name": "a", "task": "x"}, {"name": "b", "task": "y"}]}, _session())

    assert [c.max_iterations for c in request.children] == [7, 7]
    assert request.completion_threshold == 2


def test_explicit_budget_and_threshold_are_kept():
    request = validate_spawn(
        {"children": [{"name": "a", "task": "x", "maxIterations": 2}, {"name": "b", "task": "y"}], "completionThreshold": 1},
        _session(),
    )
    assert request.children[0].max_iterations == 2
    assert request.completion_threshold == 1


def test_disabled_feature_is_rejected():
    session = Session(model="test", prompt="p")
    with pytest.raises(FeatureDisabledError):
        validate_spawn({"children": [{"name": "a", "task": "x"}]}, session)


def test_children_cannot_spawn():
    session = _session()
    session.orchestration = Orchestration(role=SessionRole.child, parent_id="parent")
    with pytest.raises(SpawnValidationError, match="cannot spawn"):
        validate_spawn({"children": [{"name": "a", "task": "x"}]}, session)


@pytest.mark.parametrize(
    "params, message",
    [
        ({}, "No children specified"),
        ({"children": []}, "No children specified"),
        ({"children": [{"name": str(i), "task": "t"} for i in range(4)]}, "Too many children"),
        ({"children": [{"name": "a", "task": "x"}, {"name": "a", "task": "y"}]}, "Duplicate child name"),
        ({"children": [{"name": "a", "task": ""}]}, "non-empty 'task'"),
        ({"children": [{"name": "a", "task": "x", "maxIterations": 0}]}, "invalid maxIterations"),
        ({"children": [{"name": "a", "task": "x"}], "completionThreshold": 2}, "completionThreshold"),
        ({"children": [{"name": "a", "task": "x"}], "completionThreshold": 0}, "completionThreshold"),
        ({"children": ["a"]}, "must be an object"),
    ],
)
def test_malformed_requests_are_rejected(params, message):
    with pytest.raises(SpawnValidationError, match=message):
        validate_spawn(params, _session())


def test_slot_take_empties_it():
    slot = SpawnSlot()
    request = validate_spawn({"children": [{"name": "a", "task": "x"}]}, _session())
    slot.claim(request)

    assert slot.take() == request
    assert slot.take() is None
