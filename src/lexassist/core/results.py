"""Structured payloads produced by the generators.

AnalysisResult is stored as JSON on completed documents and ChatReply backs
assistant messages. Both apply their defaults at parse time, so consumers
never have to deal with missing or oddly shaped fields from the model.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ReasoningStep(BaseModel):
    """One step of a reasoning log."""

    model_config = ConfigDict(populate_by_name=True)

    step: str
    explanation: str = Field(default="", validation_alias=AliasChoices("explanation", "reasoning"))


class Reference(BaseModel):
    """A cited statute, standard or publication."""

    title: str
    url: str | None = None


class InsightItem(BaseModel):
    """A titled risk or opportunity inside the foresight block."""

    title: str
    description: str = ""


class Foresight(BaseModel):
    """Predictive section of an analysis: predictions, risks, opportunities."""

    predictions: list[str] = Field(default_factory=list)
    risks: list[InsightItem] = Field(default_factory=list)
    opportunities: list[InsightItem] = Field(default_factory=list)

    @field_validator("predictions", mode="before")
    @classmethod
    def _coerce_predictions(cls, value: Any) -> list[str]:
        return _string_list(value)

    @field_validator("risks", mode="before")
    @classmethod
    def _coerce_risks(cls, value: Any) -> list[dict]:
        return _insight_list(value, default_title="Risk Factor")

    @field_validator("opportunities", mode="before")
    @classmethod
    def _coerce_opportunities(cls, value: Any) -> list[dict]:
        return _insight_list(value, default_title="Opportunity")


class AnalysisResult(BaseModel):
    """Result of analysing one document.

    Every field is optional. Model output is normalised on the way in: a
    single analysis string becomes a one-item list, bare risk strings become
    titled items, and entries that cannot be interpreted are dropped.
    """

    model_config = ConfigDict(populate_by_name=True)

    analysis: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=list)
    foresight: Foresight = Field(
        default_factory=Foresight,
        validation_alias=AliasChoices("foresight", "lexIntuition", "lex_intuition"),
    )
    reasoning_log: list[ReasoningStep] = Field(
        default_factory=list,
        validation_alias=AliasChoices("reasoning_log", "reasoningLog"),
    )

    @field_validator("analysis", "recommendations", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> list[str]:
        return _string_list(value)

    @field_validator("references", mode="before")
    @classmethod
    def _coerce_references(cls, value: Any) -> list[dict]:
        if not isinstance(value, list):
            return []
        references: list[dict] = []
        for item in value:
            if isinstance(item, Reference):
                references.append(item.model_dump())
            elif isinstance(item, str) and item.strip():
                references.append({"title": item.strip()})
            elif isinstance(item, dict) and isinstance(item.get("title"), str):
                url = item.get("url")
                references.append({"title": item["title"], "url": url if isinstance(url, str) else None})
        return references

    @field_validator("foresight", mode="before")
    @classmethod
    def _coerce_foresight(cls, value: Any) -> dict:
        if isinstance(value, (dict, Foresight)):
            return value
        return {}

    @field_validator("reasoning_log", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: Any) -> list[dict]:
        return _reasoning_list(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "AnalysisResult":
        """Build a result from a decoded JSON payload of unknown shape."""
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)

    @classmethod
    def error(cls, message: str) -> "AnalysisResult":
        """Minimal result whose only content explains why analysis is missing."""
        return cls(analysis=[message])

    def to_payload(self) -> dict:
        """JSON-ready dict for persistence and API responses."""
        return self.model_dump(mode="json")


class ChatReply(BaseModel):
    """Assistant reply to one conversational turn."""

    content: str
    reasoning_log: list[ReasoningStep] = Field(default_factory=list)

    def reasoning_payload(self) -> list[dict]:
        return [step.model_dump(mode="json") for step in self.reasoning_log]


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def _insight_list(value: Any, default_title: str) -> list[dict]:
    if not isinstance(value, list):
        return []
    items: list[dict] = []
    for item in value:
        if isinstance(item, InsightItem):
            items.append(item.model_dump())
        elif isinstance(item, str) and item.strip():
            items.append({"title": default_title, "description": item})
        elif isinstance(item, dict):
            title = item.get("title")
            description = item.get("description")
            if not isinstance(title, str) or not title.strip():
                title = default_title
            items.append({"title": title, "description": description if isinstance(description, str) else ""})
    return items


def _reasoning_list(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    steps: list[dict] = []
    for item in value:
        if isinstance(item, ReasoningStep):
            steps.append(item.model_dump())
            continue
        if not isinstance(item, dict) or not isinstance(item.get("step"), str):
            continue
        explanation = item.get("explanation", item.get("reasoning", ""))
        steps.append({"step": item["step"], "explanation": explanation if isinstance(explanation, str) else ""})
    return steps


__all__ = [
    "ReasoningStep",
    "Reference",
    "InsightItem",
    "Foresight",
    "AnalysisResult",
    "ChatReply",
]
