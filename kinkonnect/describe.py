"""Name the relationship a path describes, using an LLM through litellm."""

import json
import logging
import os
from typing import Any

import litellm

from .errors import DescriberError
from .models import PathResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 1024

SYSTEM_PROMPT = """You are a genealogy expert. Given a relationship path from Person 1 to
Person 2, give the single, gender-correct genealogical term for what Person 2 is to Person 1,
and a short explanation that traces the path using the names of the people in it.

Each path step names a person and how that person is related to the step before it.
Combine every step; do not just repeat the last connection. For example:
- Admin -> Dad (Father) -> Perippa (Brother): Perippa is Admin's "Paternal Uncle".
- Admin -> Dad (Father) -> Perippa (Brother) -> Peri Wife (Spouse): "Paternal Uncle's Wife".
- User -> Mom (Mother) -> Sibling (Sister) -> Child (Son): "Nephew".
- A brother's female spouse is a "Sister-in-law"; a sister's male spouse is a "Brother-in-law".

Respond with only a JSON object: {"relationshipName": "...", "explanation": "..."}"""


def build_describer_input(result: PathResult) -> dict:
    """The describer's input for a found path, in its camelCase wire shape."""
    if not result.path_found or not result.path:
        raise ValueError("A found, non-empty path is required")
    start, end = result.path[0], result.path[-1]
    return {
        "person1Name": start.person_name,
        "person2Name": end.person_name,
        "person2Gender": end.gender,
        "path": [
            {
                "personName": step.person_name,
                "connectionToPreviousPerson": step.connection_to_previous,
                "gender": step.gender,
            }
            for step in result.path
        ],
    }


def _render_path(describer_input: dict) -> str:
    lines = [
        f"Person 1: {describer_input['person1Name']}",
        f"Person 2: {describer_input['person2Name']} "
        f"(gender: {describer_input.get('person2Gender') or 'unknown'})",
        "Path:",
    ]
    for step in describer_input["path"]:
        lines.append(
            f"- {step['personName']} (is the {step['connectionToPreviousPerson']} of the "
            f"person above, gender: {step.get('gender') or 'unknown'})"
        )
    return "\n".join(lines)


def _extract_text_response(response: Any) -> str:
    """Extract text content from a LiteLLM response."""
    if hasattr(response, "choices") and response.choices:
        message = response.choices[0].message
        if hasattr(message, "content") and message.content:
            return message.content
    return ""


def _parse_reply(text: str) -> dict:
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise DescriberError("The relationship describer returned no JSON object.")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise DescriberError(f"The relationship describer returned invalid JSON: {e}") from e
    if not data.get("relationshipName"):
        raise DescriberError("The relationship describer returned no relationship name.")
    return {
        "relationshipName": str(data["relationshipName"]),
        "explanation": str(data.get("explanation") or ""),
    }


async def describe_relationship(describer_input: dict, model: str | None = None) -> dict:
    """Ask the model for {"relationshipName", "explanation"} for a path.

    A single-step path between two people of the same name is the same person
    and is answered without a model call.

    Raises:
        DescriberError: the model call failed or its reply could not be used.
    """
    path = describer_input.get("path") or []
    if not path:
        raise DescriberError("A relationship path with at least one step is required.")
    if len(path) == 1 and describer_input.get("person1Name") == describer_input.get("person2Name"):
        return {"relationshipName": "Self (Same Person)", "explanation": "This is the same person."}

    model = model or os.getenv("KINKONNECT_DESCRIBE_MODEL", DEFAULT_MODEL)
    max_tokens = int(os.getenv("KINKONNECT_DESCRIBE_MAX_TOKENS", DEFAULT_MAX_TOKENS))
    try:
        response = await litellm.acompletion(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _render_path(describer_input)},
            ],
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.error("Relationship describer call to %s failed: %s", model, e)
        raise DescriberError(f"Error communicating with LLM: {e}") from e

    return _parse_reply(_extract_text_response(response))
