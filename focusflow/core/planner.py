"""
FocusFlow — AI Plan Generator.

Turns a free-text goal ("learn Spanish") or a photo of a timetable into a
structured habit plan using the configured LLM provider. The model's JSON
is validated against an explicit schema before anything reaches the store.

A plan is only a proposal: the user picks which tasks to keep through
`PlanSelection`, and only then do they become Goal records.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError, field_validator

from focusflow.core.llm import LLMImage, complete
from focusflow.data.models import Goal

logger = logging.getLogger(__name__)

PlanImage = LLMImage

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class PlanValidationError(ValueError):
    """Raised when the model's plan payload does not match the schema."""


# ---------------------------------------------------------------------------
# JSON contract
# ---------------------------------------------------------------------------

class PlanTask(BaseModel):
    """One proposed habit.

    JSON example:
    {
        "title": "Duolingo lesson",
        "frequency": "Daily",
        "suggestedTime": "07:30",
        "reasoning": "Short daily practice builds vocabulary."
    }
    """
    title: str = Field(min_length=1)
    frequency: str
    suggestedTime: str     # HH:MM in 24h format
    reasoning: str

    @field_validator("suggestedTime", mode="before")
    @classmethod
    def check_time(cls, v: str) -> str:
        v = str(v).strip()
        # Accept "7:30" and pad it
        if re.match(r"^\d:\d\d$", v):
            v = "0" + v
        if not _HHMM_RE.match(v):
            raise ValueError(f"suggestedTime must be HH:MM (24h), got {v!r}")
        return v


class AIPlan(BaseModel):
    """A named set of proposed habits."""
    planName: str
    tasks: list[PlanTask]


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are a habit planning engine for a personal habit tracker.
Return ONLY a JSON object matching this schema, with no markdown and no extra text:
{"planName": "string", "tasks": [{"title": "string", "frequency": "string", "suggestedTime": "HH:MM", "reasoning": "string"}]}

- "title" = short, actionable task name.
- "frequency" = e.g. "Daily", "Weekly", "Mon/Wed".
- "suggestedTime" = time of day in 24-hour HH:MM format.
- "reasoning" = why this habit helps, or where it was found in the schedule.
"""

_TEXT_PROMPT = """\
Create a structured habit plan for the user's goal: "{prompt}".
Break this down into 1-3 specific, actionable habits/tasks.
Suggest a time of day in HH:MM (24h) format that makes sense.
"""

_IMAGE_PROMPT = """\
Analyze this image of a timetable or schedule. Extract the specific events, classes, or tasks.
{context}Create a structured plan based on the exact times found in the image.
"""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def parse_plan(raw_text: str) -> AIPlan:
    """Validate a raw model response against the plan schema.

    Raises:
        PlanValidationError: On empty, non-JSON or wrongly shaped payloads.
    """
    cleaned = _clean_llm_response(raw_text or "")
    if not cleaned:
        raise PlanValidationError("Empty plan response")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise PlanValidationError(f"Plan response is not JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise PlanValidationError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return AIPlan.model_validate(data)
    except ValidationError as exc:
        raise PlanValidationError(str(exc)) from exc


def _build_prompt(prompt: str, image: PlanImage | None) -> str:
    if image is None:
        return _TEXT_PROMPT.format(prompt=prompt)
    context = f'Also consider this context: "{prompt}".\n' if prompt else ""
    return _IMAGE_PROMPT.format(context=context)


async def generate_plan(prompt: str, image: PlanImage | None = None) -> AIPlan | None:
    """Ask the LLM for a habit plan.

    Returns None (and logs) on any failure: network errors, non-JSON
    output, or a payload that fails schema validation.
    """
    prompt = (prompt or "").strip()
    if not prompt and image is None:
        logger.info("generate_plan called without prompt or image")
        return None

    raw_text = ""
    try:
        raw_text = await complete(
            system=_SYSTEM_PROMPT,
            user_message=_build_prompt(prompt, image),
            max_tokens=2048,
            image=image,
            json_output=True,
        )
        plan = parse_plan(raw_text)
        logger.info("Generated plan '%s' with %d tasks", plan.planName, len(plan.tasks))
        return plan
    except PlanValidationError as exc:
        logger.error("Malformed plan from LLM: %s — raw: '%s'", exc, raw_text[:200])
        return None
    except Exception as exc:
        logger.error("Error generating schedule: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Task selection → Goal records
# ---------------------------------------------------------------------------

class PlanSelection:
    """Which tasks of a generated plan the user wants to keep.

    All tasks start selected.
    """

    def __init__(self, plan: AIPlan) -> None:
        self.plan = plan
        self.selected: set[int] = set(range(len(plan.tasks)))

    def toggle(self, index: int) -> bool:
        """Flip one task's selection. Returns the new state."""
        if not 0 <= index < len(self.plan.tasks):
            raise IndexError(f"No task at index {index}")
        if index in self.selected:
            self.selected.discard(index)
            return False
        self.selected.add(index)
        return True

    def all_selected(self) -> bool:
        return len(self.selected) == len(self.plan.tasks)

    def toggle_all(self) -> None:
        """Deselect everything if all are selected, otherwise select all."""
        if self.all_selected():
            self.selected = set()
        else:
            self.selected = set(range(len(self.plan.tasks)))

    def selected_tasks(self) -> list[PlanTask]:
        return [t for i, t in enumerate(self.plan.tasks) if i in self.selected]

    def to_goals(self, now: datetime | None = None) -> list[Goal]:
        """Build new Goal records for the selected tasks, in plan order."""
        created_at = (now or datetime.now()).isoformat()
        return [
            Goal(
                id=str(uuid.uuid4()),
                title=task.title,
                schedule=task.frequency,
                time=task.suggestedTime,
                created_at=created_at,
                streak=0,
                category="other",
            )
            for task in self.selected_tasks()
        ]
