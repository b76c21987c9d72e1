"""Spawn coordination.

A ``spawn`` tool call only validates its request and records it in the
iteration's ``SpawnSlot``. At the iteration boundary the engine hands the
request to ``SpawnCoordinator.start``, which:

1. creates one child ``Session`` per spec in the arena, seeded with a deep
   copy of the parent's blackboard, scratchpad and attributes,
2. marks the parent as an orchestrator,
3. launches every child loop.

When a child reaches a terminal status ``child_settled`` merges its outcome
into the parent (an observation on the blackboard plus its artifacts). Once
the completion threshold of the current batch is met the parent is resumed,
exactly once. Children finishing later are still merged but never resume the
parent again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from pydantic import Field

from ..errors import FeatureDisabledError, SpawnValidationError
from ..schemas.base import BaseSchema
from ..schemas.domain import (
    BlackboardCategory,
    ChildSession,
    Orchestration,
    Session,
    SessionEventType,
    SessionMemory,
    SessionRole,
    SessionStatus,
)

if TYPE_CHECKING:
    from ..repos.memory import SessionArena
    from ..runtime.models import SessionRuntime

logger = logging.getLogger(__name__)


class ChildSpec(BaseSchema):
    name: str
    task: str
    max_iterations: int = Field(ge=1)


class SpawnRequest(BaseSchema):
    children: List[ChildSpec]
    completion_threshold: int = Field(ge=1)


def validate_spawn(params: Dict[str, Any], session: Session) -> SpawnRequest:
    """Validate raw ``spawn`` params against the session's feature flags."""
    features = session.advanced_features
    if not features.spawn_enabled:
        raise FeatureDisabledError("Spawn", "spawn")
    if session.is_child:
        raise SpawnValidationError("Child agents cannot spawn further children")

    raw_children = params.get("children")
    if not isinstance(raw_children, list) or not raw_children:
        raise SpawnValidationError(
            "No children specified. Provide an array of child specifications with 'name' and 'task'."
        )
    if len(raw_children) > features.max_children:
        raise SpawnValidationError(
            f"Too many children ({len(raw_children)}). Maximum allowed: {features.max_children}"
        )

    specs: List[ChildSpec] = []
    seen = set()
    for raw in raw_children:
        if not isinstance(raw, dict):
            raise SpawnValidationError("Each child must be an object with 'name' and 'task'")
        name = raw.get("name")
        task = raw.get("task")
        if not isinstance(name, str) or not name.strip():
            raise SpawnValidationError("Each child must have a non-empty 'name' string")
        if not isinstance(task, str) or not task.strip():
            raise SpawnValidationError(f"Child '{name}' must have a non-empty 'task' string")
        if name in seen:
            raise SpawnValidationError(f"Duplicate child name: {name}. Names must be unique.")
        seen.add(name)

        max_iterations = raw.get("maxIterations", raw.get("max_iterations"))
        if max_iterations is None:
            max_iterations = features.child_max_iterations
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1:
            raise SpawnValidationError(f"Child '{name}' has an invalid maxIterations: {max_iterations!r}")
        specs.append(ChildSpec(name=name, task=task, max_iterations=max_iterations))

    threshold = params.get("completionThreshold", params.get("completion_threshold"))
    if threshold is None:
        threshold = len(specs)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or not 1 <= threshold <= len(specs):
        raise SpawnValidationError(f"completionThreshold must be between 1 and {len(specs)}, got {threshold!r}")

    return SpawnRequest(children=specs, completion_threshold=threshold)


class SpawnSlot:
    """Holds at most one accepted spawn request for the current iteration."""

    def __init__(self) -> None:
        self.pending: Optional[SpawnRequest] = None

    def claim(self, request: SpawnRequest) -> None:
        if self.pending is not None:
            raise SpawnValidationError("Only one spawn call is allowed per iteration")
        self.pending = request

    def take(self) -> Optional[SpawnRequest]:
        request, self.pending = self.pending, None
        return request


Emit = Callable[[str, SessionEventType, Dict[str, Any]], Awaitable[None]]


class SpawnCoordinator:
    def __init__(
        self,
        arena: "SessionArena",
        *,
        create_runtime: Callable[[Session], "SessionRuntime"],
        launch: Callable[["SessionRuntime"], None],
        emit: Emit,
    ) -> None:
        self._arena = arena
        self._create_runtime = create_runtime
        self._launch = launch
        self._emit = emit

    async def start(self, parent_rt: "SessionRuntime", request: SpawnRequest) -> List[ChildSession]:
        parent = parent_rt.session
        seed = parent_rt.store.snapshot()

        refs: List[ChildSession] = []
        runtimes: List["SessionRuntime"] = []
        for spec in request.children:
            child = Session(
                model=parent.model,
                prompt=spec.task,
                files=[f.model_copy(deep=True) for f in parent.files],
                max_iterations=spec.max_iterations,
                memory=SessionMemory(
                    blackboard=list(seed.blackboard),
                    scratchpad=seed.scratchpad,
                    attributes=dict(seed.attributes),
                    attribute_counter=seed.attribute_counter,
                ),
                orchestration=Orchestration(role=SessionRole.child, parent_id=parent.id),
                advanced_features=parent.advanced_features.model_copy(update={"spawn_enabled": False}),
                prompt_configuration=parent.prompt_configuration.model_copy(deep=True),
            )
            rt = self._create_runtime(child)
            runtimes.append(rt)
            refs.append(
                ChildSession(session_id=child.id, name=spec.name, task=spec.task, max_iterations=spec.max_iterations)
            )

        parent.orchestration = parent.orchestration.model_copy(
            update={
                "role": SessionRole.orchestrator,
                "children": [*parent.orchestration.children, *refs],
                "current_batch": [r.session_id for r in refs],
                "completion_threshold": request.completion_threshold,
                "resumed": False,
            }
        )
        await self._emit(
            parent.id,
            SessionEventType.children_spawned,
            {
                "children": [r.model_dump() for r in refs],
                "completion_threshold": request.completion_threshold,
            },
        )
        logger.info(
            f"Session {parent.id} spawned {len(refs)} child(ren), threshold {request.completion_threshold}"
        )
        for rt in runtimes:
            self._launch(rt)
        return refs

    async def child_settled(self, child_rt: "SessionRuntime") -> None:
        child = child_rt.session
        parent_id = child.orchestration.parent_id
        parent_rt = self._arena.find(parent_id) if parent_id else None
        if parent_rt is None:
            # Parent was reset; nothing to reconcile.
            return

        parent = parent_rt.session
        if self._pending_ref(parent, child.id) is None:
            return

        summary = child.final_report.summary if child.final_report else (child.error_message or "")
        async with parent_rt.store.transaction(iteration=parent.current_iteration) as memory:
            # A reset or continue may have detached the child while the lock was held elsewhere.
            ref = self._pending_ref(parent, child.id)
            if ref is None:
                return
            memory.append_blackboard(
                BlackboardCategory.observation,
                f"Child agent '{ref.name}' finished with status {child.status.value}: {summary}".rstrip(": "),
                {
                    "child_id": child.id,
                    "name": ref.name,
                    "status": child.status.value,
                    "summary": summary,
                    "error_reason": child.error_reason.value if child.error_reason else None,
                    "iterations": child.current_iteration,
                },
            )
            known = {a.id for a in memory.memory.artifacts}
            for artifact in child.memory.artifacts:
                if artifact.id not in known:
                    memory.add_artifact(artifact)

            parent.orchestration = parent.orchestration.model_copy(
                update={
                    "children": [
                        r.model_copy(update={"merged": True}) if r.session_id == child.id else r
                        for r in parent.orchestration.children
                    ]
                }
            )

        resume = self._should_resume(parent, child.id)
        if resume:
            # Claimed before any await so a concurrent stop, reset or continue sees it.
            parent.orchestration = parent.orchestration.model_copy(update={"resumed": True})
            self._launch(parent_rt)

        await self._emit(
            parent.id, SessionEventType.child_settled, {"child_id": child.id, "status": child.status.value}
        )
        if resume:
            settled = self._settled_count(parent.orchestration)
            await self._emit(parent.id, SessionEventType.parent_resumed, {"settled": settled})
            logger.info(f"Session {parent.id} resuming after {settled} child(ren) settled")

    @staticmethod
    def _pending_ref(parent: Session, child_id: str) -> Optional[ChildSession]:
        ref = next((r for r in parent.orchestration.children if r.session_id == child_id), None)
        if ref is None or ref.merged:
            return None
        return ref

    @staticmethod
    def _settled_count(orchestration: Orchestration) -> int:
        return sum(1 for r in orchestration.children if r.merged and r.session_id in orchestration.current_batch)

    def _should_resume(self, parent: Session, child_id: str) -> bool:
        """Whether this settle completes the current batch of a parent still waiting on it."""
        orchestration = parent.orchestration
        if orchestration.resumed or child_id not in orchestration.current_batch:
            return False
        if parent.status != SessionStatus.waiting:
            return False
        threshold = orchestration.completion_threshold or len(orchestration.current_batch)
        return self._settled_count(orchestration) >= threshold
