"""Base class for tools the voice agent can call mid-conversation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseTool(ABC):
    """A named, schema-described callable exposed to the remote agent.

    ``execute`` always returns a string: tool results are read by the
    agent, so failures are reported as text rather than raised.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name as the model sees it."""

    @property
    @abstractmethod
    def description(self) -> str:
        """One-paragraph description shown to the model."""

    @property
    @abstractmethod
    def parameters_schema(self) -> dict:
        """JSON schema of the tool's parameters (an ``object`` schema)."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run the tool and return its result text."""

    def to_call_tool(self) -> dict[str, Any]:
        """Client-side temporary tool definition for the call request.

        Each schema property becomes a body parameter; the voice client
        routes invocations back to ``execute``.
        """
        properties = self.parameters_schema.get("properties", {})
        required = set(self.parameters_schema.get("required", []))
        parameters = []
        for param_name, schema in properties.items():
            param: dict[str, Any] = {
                "name": param_name,
                "location": "PARAMETER_LOCATION_BODY",
                "schema": schema,
            }
            if param_name in required:
                param["required"] = True
            parameters.append(param)
        return {
            "temporaryTool": {
                "modelToolName": self.name,
                "description": self.description,
                "client": {},
                "dynamicParameters": parameters,
            }
        }
