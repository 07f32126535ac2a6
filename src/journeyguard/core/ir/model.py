"""Attempt and flow definitions.

Steps, success conditions and validators are closed unions of frozen
dataclasses. Each kind carries only the fields it needs; consumers match on
the concrete class and end with ``assert_never``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

BASE_URL_PLACEHOLDER = "$BASEURL"


@dataclass(frozen=True)
class Navigate:
    id: str
    url: str = BASE_URL_PLACEHOLDER
    optional: bool = False
    timeout_ms: int | None = None
    description: str = ""


@dataclass(frozen=True)
class Click:
    id: str
    target: tuple[str, ...]
    optional: bool = False
    timeout_ms: int | None = None
    description: str = ""
    wait_for_navigation: bool = False
    evaluate_outcome: bool = False  # submit-like click, judged by the outcome evaluator


@dataclass(frozen=True)
class Fill:
    id: str
    target: tuple[str, ...]
    value: str
    optional: bool = False
    timeout_ms: int | None = None
    description: str = ""


@dataclass(frozen=True)
class WaitFor:
    id: str
    target: tuple[str, ...]
    state: Literal["visible", "hidden", "attached", "detached"] = "visible"
    optional: bool = False
    timeout_ms: int | None = None
    description: str = ""


@dataclass(frozen=True)
class Wait:
    id: str
    duration_ms: int = 1000
    optional: bool = False
    timeout_ms: int | None = None
    description: str = ""


StepDefinition = Union[Navigate, Click, Fill, WaitFor, Wait]

_STEP_KINDS: dict[type, str] = {
    Navigate: "navigate",
    Click: "click",
    Fill: "type",
    WaitFor: "waitFor",
    Wait: "wait",
}


def step_kind(step: StepDefinition) -> str:
    return _STEP_KINDS[type(step)]


@dataclass(frozen=True)
class UrlCondition:
    pattern: str  # regular expression
    description: str = ""


@dataclass(frozen=True)
class SelectorCondition:
    target: str
    description: str = ""


SuccessCondition = Union[UrlCondition, SelectorCondition]


@dataclass(frozen=True)
class ElementVisible:
    selector: str


@dataclass(frozen=True)
class ElementNotVisible:
    selector: str


@dataclass(frozen=True)
class PageContainsAnyText:
    text_list: tuple[str, ...]


@dataclass(frozen=True)
class HtmlLangAttribute:
    lang: str


@dataclass(frozen=True)
class UrlIncludes:
    text: str


@dataclass(frozen=True)
class UrlMatches:
    pattern: str


@dataclass(frozen=True)
class NoConsoleErrorsAbove:
    min_severity: Literal["warning", "error"] = "error"


ValidatorSpec = Union[
    ElementVisible,
    ElementNotVisible,
    PageContainsAnyText,
    HtmlLangAttribute,
    UrlIncludes,
    UrlMatches,
    NoConsoleErrorsAbove,
]


@dataclass(frozen=True)
class AttemptDefinition:
    id: str
    name: str
    goal: str
    steps: tuple[StepDefinition, ...]
    success_conditions: tuple[SuccessCondition, ...] = ()
    validators: tuple[ValidatorSpec, ...] = ()
    risk_category: str = "UX"
    # Site introspection flag that must be true for the attempt to apply.
    requires: str | None = None
    not_applicable_reason: str = ""
    source: str = "manual"


@dataclass(frozen=True)
class FlowDefinition:
    """A curated, fixed-step journey. Only the first selector of each target is used."""

    id: str
    name: str
    steps: tuple[StepDefinition, ...]
    risk_category: str = "UX"
    description: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
