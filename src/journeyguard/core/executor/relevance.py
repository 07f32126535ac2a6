"""Site introspection and attempt applicability.

One page evaluation reports which capabilities the landing page exposes.
An attempt whose ``requires`` flag is false is NOT_APPLICABLE and is never
executed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from ..ir.model import AttemptDefinition

logger = logging.getLogger(__name__)

_INTROSPECTION_SCRIPT = r"""() => {
    const pathOf = (href) => {
        if (!href) return null;
        const h = href.trim().toLowerCase();
        if (h.startsWith('javascript:') || h.startsWith('#')) return null;
        try { return new URL(h, window.location.origin).pathname.toLowerCase(); }
        catch (_) { return null; }
    };
    const links = Array.from(document.querySelectorAll('a'));
    const forms = Array.from(document.querySelectorAll('form'));
    const linkTo = (re) => links.some((a) => { const p = pathOf(a.getAttribute('href')); return p !== null && re.test(p); });

    const hasLogin = document.querySelectorAll('input[type="password"]').length > 0
        || linkTo(/(\/login|\/signin|\/sign-in|\/auth\/login)$|\/(login|signin)(\/|$)/);

    const hasSignup = forms.some((f) => {
        if (!f.querySelector('input[type="password"]')) return false;
        return /\b(sign ?up|register|create account|join|get started)\b/.test((f.textContent || '').toLowerCase());
    }) || linkTo(/(\/signup|\/register|\/sign-up|\/auth\/signup)$|\/(signup|register|sign-up)(\/|$)/);

    const hasCheckout = linkTo(/(\/cart|\/checkout|\/basket)$|\/(cart|checkout|basket)(\/|$)/)
        || Array.from(document.querySelectorAll('button, input[type="submit"]')).some((b) =>
            /\b(add to cart|buy now|checkout|purchase)\b/.test((b.textContent || b.value || '').toLowerCase()))
        || document.querySelectorAll('[id*="cart" i], [class*="cart" i], [class*="basket" i]').length > 0;

    const hasNewsletter = Array.from(document.querySelectorAll('input[type="email"]')).some((i) =>
            /newsletter|subscribe|email/.test((i.placeholder || '').toLowerCase())
            || /newsletter|subscribe/.test((i.id || '').toLowerCase())
            || /newsletter|subscribe/.test((i.name || '').toLowerCase()))
        || Array.from(document.querySelectorAll('form, div')).some((el) =>
            /\b(newsletter|subscribe to|stay updated|get updates)\b/.test((el.textContent || '').toLowerCase()));

    const hasContactForm = links.some((a) =>
            /\b(contact|contact us|get in touch)\b/.test((a.textContent || '').toLowerCase())
            || /\/contact/.test((a.href || '').toLowerCase()))
        || forms.some((f) => /contact|message|inquiry/.test((f.textContent || '').toLowerCase())
            && f.querySelectorAll('input[name*="name"]').length > 0
            && f.querySelectorAll('input[type="email"]').length > 0
            && f.querySelectorAll('textarea').length > 0);

    const hasLanguageSwitch = Array.from(document.querySelectorAll('select')).some((s) =>
            /lang|language/.test((s.id || '').toLowerCase()) || /lang|language/.test((s.name || '').toLowerCase()))
        || Array.from(document.querySelectorAll('a, button')).some((el) => {
            const text = (el.textContent || '').toLowerCase().trim();
            const aria = (el.getAttribute('aria-label') || '').toLowerCase();
            return /^(en|es|fr|de|it|pt|ja|zh|ko|ru)$/.test(text) || /language|lang/.test(aria)
                || /\b(english|español|français|deutsch)\b/.test(text);
        })
        || document.querySelectorAll('[class*="globe"], [class*="lang"], [class*="language"]').length > 0;

    return { hasLogin, hasSignup, hasCheckout, hasNewsletter, hasContactForm, hasLanguageSwitch };
}"""


@dataclass(frozen=True)
class SiteIntrospection:
    hasLogin: bool = False  # noqa: N815 - flag names match AttemptDefinition.requires
    hasSignup: bool = False  # noqa: N815
    hasCheckout: bool = False  # noqa: N815
    hasNewsletter: bool = False  # noqa: N815
    hasContactForm: bool = False  # noqa: N815
    hasLanguageSwitch: bool = False  # noqa: N815

    def flag(self, name: str) -> bool:
        return bool(asdict(self).get(name, False))


async def inspect_site(page: Any) -> SiteIntrospection:
    raw = await page.evaluate(_INTROSPECTION_SCRIPT) or {}
    known = SiteIntrospection.__dataclass_fields__
    return SiteIntrospection(**{k: bool(v) for k, v in raw.items() if k in known})


def check_relevance(
    definition: AttemptDefinition, introspection: SiteIntrospection | None
) -> tuple[bool, str | None]:
    """Return ``(applicable, reason)``. Without introspection everything applies."""
    if definition.requires is None or introspection is None:
        return True, None
    if introspection.flag(definition.requires):
        return True, None
    reason = definition.not_applicable_reason or f"Site lacks {definition.requires}"
    return False, reason
