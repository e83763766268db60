"""Call-creation payload handed to the voice session at call start.

The voice client creates the remote call with this body: the system prompt,
the Initial state's instruction as the first user message, and the tool
definitions the agent may invoke.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from callflow.config import Settings, settings as default_settings
from callflow.models.appointment import AppointmentDetails
from callflow.models.call_data import ConversationState
from callflow.prompts import get_system_prompt
from callflow.templates import render_instruction
from callflow.tools.availability import CheckDesiredDateTool
from callflow.tools.base import BaseTool

log = logging.getLogger("callflow.bootstrap")

HANG_UP_TOOL = {"toolName": "hangUp"}


def initial_message(
    details: AppointmentDetails, state: Optional[ConversationState] = None,
) -> dict[str, str]:
    """First message: the current (normally Initial) state's instruction."""
    state = state or ConversationState.initial()
    return {
        "role": "MESSAGE_ROLE_USER",
        "text": render_instruction(
            state.current_state, details, state.call_data, state.previous_state,
        ),
    }


def build_call_request(
    details: AppointmentDetails,
    state: Optional[ConversationState] = None,
    tools: Optional[list[BaseTool]] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Assemble the call-creation body for *details*.

    *tools* defaults to the availability tool alone; sessions pass their
    own ``updateState`` tool in as well.
    """
    settings = settings or default_settings
    tools = tools if tools is not None else [CheckDesiredDateTool()]

    selected_tools: list[dict[str, Any]] = [HANG_UP_TOOL]
    for tool in tools:
        definition = tool.to_call_tool()
        if tool.name == "updateState":
            definition["temporaryTool"]["defaultReaction"] = "AGENT_REACTION_SPEAKS_ONCE"
        selected_tools.append(definition)

    request = {
        "systemPrompt": get_system_prompt(
            details,
            include_state_listing=settings.include_state_listing,
            agent_name=settings.agent_name,
        ),
        "voice": settings.agent_voice,
        "firstSpeakerSettings": {"user": {}},
        "initialMessages": [initial_message(details, state)],
        "selectedTools": selected_tools,
    }
    log.debug("Call request built for %s with tools %s",
              details.client_name, [t.name for t in tools])
    return request
