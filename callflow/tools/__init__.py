"""LLM-callable tools for the appointment call agent."""

from .availability import CheckDesiredDateTool, check_availability
from .state import UpdateStateTool

__all__ = ["CheckDesiredDateTool", "UpdateStateTool", "check_availability"]
