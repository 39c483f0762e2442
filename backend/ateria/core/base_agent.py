"""
Ateria - Base Agent Abstract Class

Defines the common interface for the optional external capabilities
(intent classifier, result ranker, response writer). Every capability
inherits from BaseAgent and implements process(); callers use execute(),
which bounds the call with a timeout and never raises.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Type variables for input/output types
InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


class AgentError(Exception):
    """Base exception for external capability errors."""

    def __init__(self, agent_name: str, message: str, original_error: Exception | None = None):
        self.agent_name = agent_name
        self.message = message
        self.original_error = original_error
        super().__init__(f"[{agent_name}] {message}")


class AgentResult(BaseModel):
    """Wrapper for agent execution results with metadata."""
    success: bool
    output: Any
    error: str | None = None
    timed_out: bool = False
    latency_ms: int = 0
    agent_name: str = ""


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for pluggable external capabilities.

    All agents follow the same pattern:
    1. Receive typed input (Pydantic model)
    2. Process the input (usually one call to an external service)
    3. Return typed output (Pydantic model)

    execute() races process() against a timer. On expiry the task is
    cancelled and its partial result discarded; on any exception the
    failure is logged and returned as an unsuccessful AgentResult so the
    caller can continue on its deterministic path.

    Usage:
        class MyAgent(BaseAgent[MyInput, MyOutput]):
            @property
            def name(self) -> str:
                return "MyAgent"

            async def process(self, input: MyInput) -> MyOutput:
                return MyOutput(...)

        result = await MyAgent(timeout_seconds=5).execute(MyInput(...))
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Initialize the agent.

        Args:
            timeout_seconds: Default bound for execute(); None waits forever
        """
        self.timeout_seconds = timeout_seconds
        self._logger = logging.getLogger(f"ateria.agent.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the agent's name for logging and tracing."""
        pass

    @abstractmethod
    async def process(self, input: InputT) -> OutputT:
        """
        Process the input and return output.

        Raises:
            AgentError: If the external capability fails
        """
        pass

    async def execute(self, input: InputT, timeout: Optional[float] = None) -> AgentResult:
        """
        Execute the agent with a timeout and error handling.

        Args:
            input: Typed input data
            timeout: Overrides the agent's default timeout for this call

        Returns:
            AgentResult with success status, output, and metadata
        """
        start_time = time.time()
        limit = timeout if timeout is not None else self.timeout_seconds

        self._log_payload("Input", input)

        try:
            output = await asyncio.wait_for(self.process(input), timeout=limit)
            latency_ms = int((time.time() - start_time) * 1000)

            self._logger.debug(f"{self.name} completed in {latency_ms}ms")
            self._log_payload("Output", output)

            return AgentResult(
                success=True,
                output=output,
                latency_ms=latency_ms,
                agent_name=self.name,
            )

        except asyncio.TimeoutError:
            latency_ms = int((time.time() - start_time) * 1000)
            self._logger.warning(f"{self.name} timed out after {limit}s, discarding result")

            return AgentResult(
                success=False,
                output=None,
                error=f"timeout after {limit}s",
                timed_out=True,
                latency_ms=latency_ms,
                agent_name=self.name,
            )

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            error_msg = str(e)

            self._logger.error(f"{self.name} failed after {latency_ms}ms: {error_msg}")

            return AgentResult(
                success=False,
                output=None,
                error=error_msg,
                latency_ms=latency_ms,
                agent_name=self.name,
            )

    def _log_payload(self, label: str, payload: BaseModel, truncate: int = 200):
        """Debug-log a model dump, truncated so candidate lists stay readable."""
        if not self._logger.isEnabledFor(logging.DEBUG):
            return
        text = str(payload.model_dump())
        if len(text) > truncate:
            text = text[:truncate] + "..."
        self._logger.debug(f"{label}: {text}")
