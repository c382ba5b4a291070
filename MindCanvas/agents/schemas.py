"""
Response contracts for the remote model.

Each contract is a strict pydantic model: a missing field, an empty string
where text is required, or a value of the wrong JSON type fails validation,
and the model client then substitutes its deterministic fallback.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from ..infrastructure.errors import ResponseParseError


class _Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SuggestedTask(_Contract):
    title: StrictStr = Field(..., min_length=1)
    description: StrictStr = Field(..., min_length=1)
    reasoning: StrictStr = Field(..., min_length=1)


class IntentionAnalysis(_Contract):
    """{intentionAnalysis, suggestedTasks, progressEstimate}"""

    intention_analysis: StrictStr = Field(..., alias="intentionAnalysis", min_length=1)
    suggested_tasks: list[SuggestedTask] = Field(
        ..., alias="suggestedTasks", min_length=1, max_length=5
    )
    progress_estimate: StrictInt = Field(..., alias="progressEstimate", ge=0, le=100)


class TaskUpdate(_Contract):
    """{updatedDescription, status}"""

    updated_description: StrictStr = Field(..., alias="updatedDescription", min_length=1)
    status: Literal["spawning", "executing", "completed"]


class TaskSuggestions(_Contract):
    """{newTasks}"""

    new_tasks: list[SuggestedTask] = Field(..., alias="newTasks", max_length=5)


_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def parse_json_payload(content: str) -> Any:
    """
    Parse the textual payload as JSON.

    Models sometimes wrap JSON in a Markdown code fence; the fence is
    stripped before parsing.

    Raises:
        ResponseParseError: payload is not valid JSON
    """
    text = content.strip()
    match = _FENCE.search(text)
    if match:
        text = match.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Model response is not valid JSON: {e.msg}", original_error=e) from e
