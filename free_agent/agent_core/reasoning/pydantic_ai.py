"""Pydantic AI reasoning collaborator.

Turns a ``ReasoningRequest`` into a single model run: the effective
instructions become the system prompt, the rendered memory snapshot becomes
the user prompt, and the text output is handed to the decision parser. The
model is whatever pydantic-ai accepts (a ``provider:model`` string or a
``Model`` instance), so the engine stays provider-agnostic.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

from pydantic_ai import Agent

from free_agent.core.logging_config import get_logger

from .base import ReasoningRequest, ReasoningResponse

logger = get_logger(__name__)


class PydanticAIReasoner:
    """Reasoning collaborator backed by a pydantic-ai ``Agent``.

    Attributes:
        model_override: Optional model object used instead of the session's
            model selector (for example a ``FunctionModel`` in tests)
        model_settings: Extra pydantic-ai model settings (temperature, ...)
        max_agents: How many agents (one per model and instructions pair)
            stay cached; the least recently used is dropped first
    """

    def __init__(
        self,
        model_override: Any = None,
        model_settings: Optional[Dict[str, Any]] = None,
        max_agents: int = 64,
    ) -> None:
        self.model_override = model_override
        self.model_settings = model_settings
        self.max_agents = max_agents
        self._agents: "OrderedDict[Tuple[str, str], Agent]" = OrderedDict()

    def _agent_for(self, request: ReasoningRequest) -> Agent:
        model = self.model_override if self.model_override is not None else request.model
        key = (repr(model), request.instructions)
        agent = self._agents.get(key)
        if agent is not None:
            self._agents.move_to_end(key)
            return agent

        kwargs: Dict[str, Any] = {"output_type": str, "system_prompt": request.instructions}
        if self.model_settings:
            kwargs["model_settings"] = self.model_settings
        agent = Agent(model, **kwargs)
        self._agents[key] = agent
        while len(self._agents) > self.max_agents:
            self._agents.popitem(last=False)
        return agent

    async def decide(self, request: ReasoningRequest) -> ReasoningResponse:
        agent = self._agent_for(request)
        logger.debug(
            f"Requesting decision for session {request.session_id} "
            f"(iteration {request.snapshot.iteration}, input {len(request.rendered_input)} chars)"
        )
        result = await agent.run(request.rendered_input)
        text = result.output if isinstance(result.output, str) else str(result.output)
        response = ReasoningResponse.from_text(text)
        if not response.ok:
            logger.warning(f"Unparseable decision for session {request.session_id}: {response.parse_error.message}")
        return response
