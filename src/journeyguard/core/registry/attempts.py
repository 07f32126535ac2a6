"""Attempt registry.

A registry is a plain value: build it once (``AttemptRegistry.default()``),
pass it to the engine and the run orchestrator, and give tests their own.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import UnknownAttempt
from ..ir.model import (
    AttemptDefinition,
    Click,
    ElementNotVisible,
    ElementVisible,
    Fill,
    HtmlLangAttribute,
    Navigate,
    NoConsoleErrorsAbove,
    PageContainsAnyText,
    SelectorCondition,
    WaitFor,
)

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_IDS = (
    "contact_form",
    "language_switch",
    "newsletter_signup",
    "signup",
    "login",
    "checkout",
)


def _targets(selectors: str) -> tuple[str, ...]:
    return tuple(s.strip() for s in selectors.split(", ") if s.strip())


CONTACT_FORM = AttemptDefinition(
    id="contact_form",
    name="Contact Form Submission",
    goal="User submits the contact form successfully",
    risk_category="LEAD",
    requires="hasContactForm",
    not_applicable_reason="No contact form detected",
    steps=(
        Navigate(id="navigate_form", description="Navigate to contact form"),
        Click(
            id="open_contact_page",
            target=_targets(
                'a[data-guardian="contact-link"], a[data-testid="contact-link"], '
                'a:has-text("Contact"), a[href*="/contact"]'
            ),
            optional=True,
            wait_for_navigation=True,
            description="Open contact page",
        ),
        Fill(
            id="fill_name",
            target=_targets('input[name="name"], input[data-testid="name"], input[data-guardian="name"]'),
            value="Test User",
            timeout_ms=5000,
        ),
        Fill(
            id="fill_email",
            target=_targets(
                'input[name="email"], input[data-testid="email"], '
                'input[type="email"], input[data-guardian="email"]'
            ),
            value="test@example.com",
            timeout_ms=5000,
        ),
        Fill(
            id="fill_message",
            target=_targets(
                'textarea[name="message"], textarea[data-testid="message"], '
                'input[name="message"], textarea[data-guardian="message"]'
            ),
            value="This is a test message.",
            timeout_ms=5000,
        ),
        Click(
            id="submit_form",
            target=_targets(
                'button[type="submit"], button:has-text("Submit"), '
                'button:has-text("Send"), button[data-guardian="submit"]'
            ),
            timeout_ms=5000,
            evaluate_outcome=True,
            description="Submit form",
        ),
    ),
    success_conditions=(
        SelectorCondition('[data-guardian="success"], [data-testid="success"]', "Success message element visible"),
    ),
    validators=(
        ElementVisible('[data-guardian="success"], [data-testid="success"], .success-message, .alert-success'),
        PageContainsAnyText(("success", "submitted", "thank you", "message received")),
        ElementNotVisible('.error, [role="alert"], .form-error, .error-message'),
    ),
)

LANGUAGE_SWITCH = AttemptDefinition(
    id="language_switch",
    name="Language Toggle",
    goal="User switches language successfully",
    risk_category="TRUST/UX",
    requires="hasLanguageSwitch",
    not_applicable_reason="No language switch detected",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        Click(
            id="open_language_page",
            target=_targets('a[data-guardian="language-link"], a:has-text("Language Switch")'),
            timeout_ms=5000,
        ),
        Click(
            id="open_language_toggle",
            target=_targets('[data-guardian="lang-toggle"], button:has-text("Language"), button:has-text("Lang")'),
            timeout_ms=5000,
        ),
        Click(
            id="select_language",
            target=_targets(
                '[data-guardian="lang-option-de"], [data-testid="lang-option-de"], button:has-text("DE")'
            ),
            timeout_ms=5000,
        ),
        WaitFor(
            id="verify_language",
            target=('[data-guardian="lang-current"]:has-text("DE")',),
            timeout_ms=5000,
        ),
    ),
    success_conditions=(
        SelectorCondition('[data-guardian="lang-current"]:has-text("DE")', "Current language shows DE"),
        SelectorCondition('[data-guardian="lang-current"], [data-testid="lang-current"]', "Language indicator visible"),
    ),
    validators=(
        HtmlLangAttribute("de"),
        PageContainsAnyText(("Deutsch", "German", "Sprache")),
    ),
)

NEWSLETTER_SIGNUP = AttemptDefinition(
    id="newsletter_signup",
    name="Newsletter Signup",
    goal="User signs up for newsletter",
    risk_category="LEAD",
    requires="hasNewsletter",
    not_applicable_reason="No newsletter signup detected",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        Click(
            id="open_signup_page",
            target=_targets(
                'a[data-guardian="signup-link"], a[data-testid="signup-link"], a:has-text("Sign up"), '
                'a:has-text("Signup"), a[href*="signup"], a[href*="newsletter"]'
            ),
            optional=True,
            wait_for_navigation=True,
        ),
        Fill(
            id="fill_email",
            target=_targets(
                'input[type="email"], input[data-guardian="signup-email"], input[data-testid="signup-email"]'
            ),
            value="subscriber@example.com",
            timeout_ms=5000,
        ),
        Click(
            id="submit_signup",
            target=_targets(
                'button[type="submit"], button[data-guardian="signup-submit"], '
                'button:has-text("Subscribe"), button:has-text("Sign up")'
            ),
            timeout_ms=5000,
            evaluate_outcome=True,
        ),
    ),
    success_conditions=(
        SelectorCondition('[data-guardian="signup-success"], [data-testid="signup-success"]', "Signup success message visible"),
    ),
    validators=(
        ElementVisible(
            '[data-guardian="signup-success"], [data-testid="signup-success"], .signup-success, .toast-success'
        ),
        PageContainsAnyText(("confirmed", "subscribed", "thank you", "welcome", "subscription")),
        ElementNotVisible('.error, [role="alert"], .signup-error, .error-message'),
    ),
)

SIGNUP = AttemptDefinition(
    id="signup",
    name="Account Signup",
    goal="User creates an account successfully",
    risk_category="LEAD",
    requires="hasSignup",
    not_applicable_reason="No signup elements detected",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        Click(
            id="open_account_signup",
            target=_targets('a[data-guardian="account-signup-link"], a:has-text("Account Signup")'),
            optional=True,
            wait_for_navigation=True,
            timeout_ms=5000,
        ),
        Fill(id="fill_signup_email", target=('[data-guardian="signup-email"]',), value="newuser@example.com", timeout_ms=5000),
        Fill(id="fill_signup_password", target=('[data-guardian="signup-password"]',), value="P@ssword123", timeout_ms=5000),
        Click(
            id="submit_signup_account",
            target=_targets('[data-guardian="signup-account-submit"], button:has-text("Sign up")'),
            timeout_ms=5000,
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_signup_success", target=('[data-guardian="signup-account-success"]',), timeout_ms=7000),
    ),
    success_conditions=(
        SelectorCondition('[data-guardian="signup-account-success"]', "Account signup success visible"),
    ),
    validators=(
        ElementVisible('[data-guardian="signup-account-success"]'),
        PageContainsAnyText(("Account created", "created", "welcome aboard")),
        ElementNotVisible('[data-guardian="signup-account-error"], .error, [role="alert"]'),
    ),
)

LOGIN = AttemptDefinition(
    id="login",
    name="Account Login",
    goal="User logs in successfully (single session)",
    risk_category="TRUST/UX",
    requires="hasLogin",
    not_applicable_reason="No login elements detected",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        Click(
            id="open_login_page",
            target=_targets('a[data-guardian="account-login-link"], a:has-text("Login"), a[href*="login"]'),
            optional=True,
            wait_for_navigation=True,
            timeout_ms=5000,
        ),
        Fill(id="fill_login_email", target=('[data-guardian="login-email"]',), value="user@example.com", timeout_ms=5000),
        Fill(id="fill_login_password", target=('[data-guardian="login-password"]',), value="password123", timeout_ms=5000),
        Click(
            id="submit_login",
            target=_targets('[data-guardian="login-submit"], button:has-text("Login")'),
            timeout_ms=5000,
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_login_success", target=('[data-guardian="login-success"]',), timeout_ms=7000),
    ),
    success_conditions=(SelectorCondition('[data-guardian="login-success"]', "Login success visible"),),
    validators=(
        ElementVisible('[data-guardian="login-success"]'),
        PageContainsAnyText(("logged in", "welcome back", "logged")),
        ElementNotVisible('[data-guardian="login-error"], .error, [role="alert"]'),
    ),
)

CHECKOUT = AttemptDefinition(
    id="checkout",
    name="Checkout Review",
    goal="User places order without payment",
    risk_category="REVENUE",
    requires="hasCheckout",
    not_applicable_reason="No checkout elements detected",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        Click(
            id="open_checkout",
            target=_targets('a[data-guardian="checkout-link"], a:has-text("Checkout"), a[href*="checkout"]'),
            optional=True,
            wait_for_navigation=True,
            timeout_ms=5000,
        ),
        Click(
            id="place_order",
            target=_targets(
                '[data-guardian="checkout-place-order"], button:has-text("Place order"), button:has-text("Place Order")'
            ),
            timeout_ms=5000,
            evaluate_outcome=True,
        ),
        WaitFor(id="wait_order_success", target=('[data-guardian="checkout-success"]',), timeout_ms=7000),
    ),
    success_conditions=(SelectorCondition('[data-guardian="checkout-success"]', "Checkout success visible"),),
    validators=(
        ElementVisible('[data-guardian="checkout-success"]'),
        PageContainsAnyText(("order placed", "order confirmed")),
        ElementNotVisible('[data-guardian="checkout-error"], .error, [role="alert"]'),
    ),
)

UNIVERSAL_REALITY = AttemptDefinition(
    id="universal_reality",
    name="Universal Reality Pack",
    goal="Basic site usability and safety checks",
    risk_category="TRUST/UX",
    steps=(
        Navigate(id="navigate_home", description="Navigate to home page"),
        WaitFor(id="wait_for_body", target=("body",), timeout_ms=5000),
        Click(
            id="probe_safe_nav",
            target=(
                "nav a[href]",
                "header a[href]",
                'a[href]:not([href^="mailto:"]):not([href^="tel:"]):not([href^="javascript:"])',
            ),
            optional=True,
            wait_for_navigation=True,
        ),
    ),
    success_conditions=(SelectorCondition("body", "Page loaded and visible"),),
    validators=(
        ElementVisible("nav, header"),
        PageContainsAnyText(("home", "about", "contact", "privacy", "terms")),
        NoConsoleErrorsAbove("error"),
    ),
)


class AttemptRegistry:
    def __init__(self, definitions: Iterable[AttemptDefinition] = ()) -> None:
        self._definitions: dict[str, AttemptDefinition] = {}
        for definition in definitions:
            self.register(definition)

    @classmethod
    def default(cls) -> AttemptRegistry:
        return cls(
            [
                CONTACT_FORM,
                LANGUAGE_SWITCH,
                NEWSLETTER_SIGNUP,
                SIGNUP,
                LOGIN,
                CHECKOUT,
                UNIVERSAL_REALITY,
            ]
        )

    def register(self, definition: AttemptDefinition) -> None:
        if not definition.id:
            raise ValueError("Cannot register attempt: missing id")
        if definition.id in self._definitions:
            logger.warning("Attempt %s already registered, skipping", definition.id)
            return
        self._definitions[definition.id] = definition

    def get(self, attempt_id: str) -> AttemptDefinition:
        try:
            return self._definitions[attempt_id]
        except KeyError:
            raise UnknownAttempt(f"Unknown attempt: {attempt_id}") from None

    def __contains__(self, attempt_id: object) -> bool:
        return attempt_id in self._definitions

    def ids(self) -> list[str]:
        return list(self._definitions)

    def default_ids(self) -> list[str]:
        return [i for i in DEFAULT_ATTEMPT_IDS if i in self._definitions]
