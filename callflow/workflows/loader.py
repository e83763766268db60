"""Load JSONL workflow definitions into WorkflowDef objects."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from callflow.errors import WorkflowDefinitionError
from callflow.workflows.schema import TERMINAL_STATE, State, StateDef, WorkflowDef


def load_workflow_jsonl(path: str | Path) -> WorkflowDef:
    """Load and validate a single workflow from a JSONL file.

    The JSONL file contains exactly one JSON object (the workflow).
    States are nested inside the top-level ``states`` dict.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()

    # JSONL: one JSON object per line; take the first non-empty line
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise WorkflowDefinitionError(f"Malformed workflow JSON in {path}: {exc}") from exc
        workflow = _parse_workflow(data)
        validate_workflow(workflow)
        return workflow

    raise WorkflowDefinitionError(f"No workflow found in {path}")


def _parse_workflow(data: dict) -> WorkflowDef:
    """Parse a raw dict into a WorkflowDef."""
    raw_states = data.get("states", {})
    states: dict[str, StateDef] = {}
    for state_id, state_data in raw_states.items():
        if isinstance(state_data, dict):
            # Ensure id is set
            state_data = {"id": state_id, **state_data}
            try:
                states[state_id] = StateDef(**state_data)
            except ValidationError as exc:
                raise WorkflowDefinitionError(f"Invalid state {state_id!r}: {exc}") from exc
        else:
            raise WorkflowDefinitionError(f"State {state_id!r} must be an object")

    try:
        return WorkflowDef(**{**data, "states": states})
    except ValidationError as exc:
        raise WorkflowDefinitionError(f"Invalid workflow: {exc}") from exc


def validate_workflow(workflow: WorkflowDef) -> None:
    """Check the transition table is total over the declared states.

    Every state needs a definition keyed by its own id, the terminal state
    has no actions, every other state has at least one, and every action
    leads to a declared state.
    """
    problems: list[str] = []

    for state in State:
        state_def = workflow.states.get(state)
        if state_def is None:
            problems.append(f"state {state.value!r} has no definition")
            continue
        if state_def.id != state:
            problems.append(f"state {state.value!r} is defined with id {state_def.id.value!r}")
        if state == TERMINAL_STATE:
            if state_def.actions:
                problems.append(f"terminal state {state.value!r} declares actions")
        elif not state_def.actions:
            problems.append(f"state {state.value!r} has no actions")
        for action, action_def in state_def.actions.items():
            if action_def.next_state not in workflow.states:
                problems.append(
                    f"{state.value}.{action.value} targets undeclared state "
                    f"{action_def.next_state.value!r}"
                )

    if workflow.initial_state not in workflow.states:
        problems.append(f"initial state {workflow.initial_state.value!r} is not declared")

    if problems:
        raise WorkflowDefinitionError(
            f"Workflow {workflow.id!r} is invalid: " + "; ".join(problems)
        )
