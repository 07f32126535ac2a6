from __future__ import annotations

from .policy import PolicyDefinition

STARTUP = PolicyDefinition(
    name="startup",
    fail_on_severity="CRITICAL",
    max_warnings=10,
    fail_on_new_regressions=False,
    require_baseline=False,
    fail_on_flow_failure=False,
)

SAAS = PolicyDefinition(
    name="saas",
    fail_on_severity="CRITICAL",
    max_warnings=5,
    fail_on_new_regressions=True,
    require_baseline=False,
    fail_on_flow_failure=True,
)

ENTERPRISE = PolicyDefinition(
    name="enterprise",
    fail_on_severity="WARNING",
    max_warnings=0,
    fail_on_new_regressions=True,
    require_baseline=True,
    fail_on_flow_failure=True,
    min_coverage=0.7,
    min_evidence_completeness=1.0,
    required_evidence=["manifest", "screenshots", "snapshot"],
)

PRESETS = {p.name: p for p in (STARTUP, SAAS, ENTERPRISE)}
