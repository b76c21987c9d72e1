"""Free Agent.

This package contains the engine behind the Free Agent dashboard: an
autonomous, tool-using agent loop with working memory, concurrent tool
dispatch, child agents and human control points.

High-level architecture
-----------------------

- **Iteration loop**: each iteration sends a bounded memory snapshot to a
  reasoning collaborator, receives a structured decision (tool calls plus
  commentary) and folds the tool results back into memory.
- **Memory**: an append-only blackboard, a free-form scratchpad, named tool
  result attributes referenced by ``{{name}}`` placeholders, and artifacts.
- **Control plane**: assistance requests, interjections and guarded
  self-authoring of the agent's own prompt configuration.

Core subpackages
----------------

- ``free_agent.agent_core``: schemas, memory store, tools and dispatcher, the
  LangGraph engine, spawn coordination and the session service.
- ``free_agent.core``: settings and logging configuration.
- ``free_agent.server``: FastAPI command surface and event stream.

Typical workflow
----------------

1. Build a ``FreeAgentService`` with ``agent_core.factory.build_service``.
2. ``start`` a session with a prompt (and optional files).
3. Watch its events; answer assistance requests when it asks.
4. Read the final report once it completes, or retry / continue / reset.
"""
