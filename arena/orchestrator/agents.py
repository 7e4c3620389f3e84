"""
Contract for the external agents (text-generation services) playing the match.

Transport details (HTTP, SSE, provider specific payloads) live behind these protocols.
Agents are handed to the orchestrator per color when it is constructed.
"""

from typing import AsyncIterator, Callable, Optional, Protocol, runtime_checkable

DeltaCallback = Callable[[str], None]


@runtime_checkable
class AgentAdapter(Protocol):
    """One-shot completion: send a prompt, get the full reply text back."""

    name: str

    async def request_move(self, prompt: str) -> str: ...


@runtime_checkable
class StreamingAgentAdapter(AgentAdapter, Protocol):
    """Incremental completion: the reply arrives as an async stream of text deltas."""

    def stream_move(self, prompt: str) -> AsyncIterator[str]: ...


async def collect_reply(
    agent: AgentAdapter,
    prompt: str,
    use_streaming: bool = False,
    on_delta: Optional[DeltaCallback] = None,
) -> str:
    """
    Get the complete reply text from an agent.

    Streams when asked to and the agent supports it, otherwise falls back to the one-shot request.
    Cancelling the awaiting task aborts the request either way.
    """
    if not (use_streaming and isinstance(agent, StreamingAgentAdapter)):
        return await agent.request_move(prompt)

    chunks: list[str] = []
    async for delta in agent.stream_move(prompt):
        chunks.append(delta)
        if on_delta is not None:
            on_delta(delta)
    return "".join(chunks)
