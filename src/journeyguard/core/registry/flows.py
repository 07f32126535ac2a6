"""Curated intent flows executed by the flow executor."""

from __future__ import annotations

from collections.abc import Iterable

from ..errors import UnknownAttempt
from ..ir.model import Click, Fill, FlowDefinition, Navigate, WaitFor

DEFAULT_FLOW_IDS = ("signup_flow", "login_flow", "checkout_flow")

SIGNUP_FLOW = FlowDefinition(
    id="signup_flow",
    name="Intent: Account Signup",
    description="User creates an account successfully",
    risk_category="LEAD",
    steps=(
        Navigate(id="navigate_home"),
        Click(
            id="open_signup",
            target=('a[data-guardian="account-signup-link"]', 'a:has-text("Account Signup")'),
            wait_for_navigation=True,
        ),
        Fill(id="fill_email", target=('[data-guardian="signup-email"]',), value="newuser@example.com"),
        Fill(id="fill_password", target=('[data-guardian="signup-password"]',), value="P@ssword123"),
        Click(
            id="submit",
            target=('[data-guardian="signup-account-submit"]', 'button:has-text("Sign up")'),
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_success", target=('[data-guardian="signup-account-success"]',), timeout_ms=7000),
    ),
)

LOGIN_FLOW = FlowDefinition(
    id="login_flow",
    name="Intent: Account Login",
    description="User logs in successfully",
    risk_category="TRUST/UX",
    steps=(
        Navigate(id="navigate_home"),
        Click(
            id="open_login",
            target=('a[data-guardian="account-login-link"]', 'a:has-text("Login")', 'a[href*="login"]'),
            wait_for_navigation=True,
        ),
        Fill(id="fill_email", target=('[data-guardian="login-email"]',), value="user@example.com"),
        Fill(id="fill_password", target=('[data-guardian="login-password"]',), value="password123"),
        Click(
            id="submit",
            target=('[data-guardian="login-submit"]', 'button:has-text("Login")'),
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_success", target=('[data-guardian="login-success"]',), timeout_ms=7000),
    ),
)

CHECKOUT_FLOW = FlowDefinition(
    id="checkout_flow",
    name="Intent: Checkout",
    description="User reviews cart and places order (no payment)",
    risk_category="REVENUE",
    steps=(
        Navigate(id="navigate_home"),
        Click(
            id="open_checkout",
            target=('a[data-guardian="checkout-link"]', 'a:has-text("Checkout")', 'a[href*="checkout"]'),
            wait_for_navigation=True,
        ),
        Click(
            id="place_order",
            target=('[data-guardian="checkout-place-order"]', 'button:has-text("Place order")'),
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_success", target=('[data-guardian="checkout-success"]',), timeout_ms=7000),
    ),
)


class FlowRegistry:
    def __init__(self, definitions: Iterable[FlowDefinition] = ()) -> None:
        self._definitions = {d.id: d for d in definitions}

    @classmethod
    def default(cls) -> FlowRegistry:
        return cls([SIGNUP_FLOW, LOGIN_FLOW, CHECKOUT_FLOW])

    def register(self, definition: FlowDefinition) -> None:
        self._definitions.setdefault(definition.id, definition)

    def get(self, flow_id: str) -> FlowDefinition:
        try:
            return self._definitions[flow_id]
        except KeyError:
            raise UnknownAttempt(f"Unknown flow: {flow_id}") from None

    def ids(self) -> list[str]:
        return list(self._definitions)

    def default_ids(self) -> list[str]:
        return [i for i in DEFAULT_FLOW_IDS if i in self._definitions]
