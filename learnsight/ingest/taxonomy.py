"""
Category taxonomy resolution.

The taxonomy itself is owned by the content collaborator. The engine only
needs an explicit lookup from raw category strings to canonical ids; there
is no substring guessing, so anything not in the table stays unresolved.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class TaxonomyResolver(Protocol):
    """Resolves a raw category string to a canonical id, or None."""

    def resolve(self, raw: str | None) -> str | None:
        ...


# Main categories and industry categories.
DEFAULT_CATEGORIES: tuple[str, ...] = (
    "communication_presentation",
    "logical_thinking_problem_solving",
    "strategy_management",
    "finance",
    "marketing_sales",
    "leadership_hr",
    "ai_digital_utilization",
    "project_operations",
    "business_process_analysis",
    "risk_crisis_management",
    "consulting_industry",
    "si_industry",
    "trading_company_industry",
)

# Subcategory ids that roll up into a main category.
DEFAULT_ALIASES: dict[str, str] = {
    "presentation": "communication_presentation",
    "communication": "communication_presentation",
    "negotiation": "communication_presentation",
    "negotiation_coordination": "communication_presentation",
    "logic": "logical_thinking_problem_solving",
    "problem_solving": "logical_thinking_problem_solving",
    "critical_thinking": "logical_thinking_problem_solving",
    "logical_thinking_analysis": "logical_thinking_problem_solving",
    "strategy": "strategy_management",
    "management": "strategy_management",
    "business_strategy_planning": "strategy_management",
    "accounting": "finance",
    "investment": "finance",
    "financial_accounting_analysis": "finance",
    "marketing": "marketing_sales",
    "sales": "marketing_sales",
    "branding": "marketing_sales",
    "sales_marketing": "marketing_sales",
    "market_competitive_analysis": "marketing_sales",
    "leadership": "leadership_hr",
    "team_management_development": "leadership_hr",
    "organizational_development_transformation": "leadership_hr",
    "ai": "ai_digital_utilization",
    "digital": "ai_digital_utilization",
    "technology": "ai_digital_utilization",
    "data_analysis_interpretation": "ai_digital_utilization",
    "project": "project_operations",
    "operations": "project_operations",
    "project_management": "project_operations",
    "operations_improvement": "project_operations",
    "process": "business_process_analysis",
    "risk": "risk_crisis_management",
    "crisis": "risk_crisis_management",
    "compliance": "risk_crisis_management",
}


class StaticTaxonomyResolver:
    """
    Table-driven resolver.

    Lookups are exact after trimming and lower-casing. Canonical ids resolve
    to themselves; aliases resolve to their target.
    """

    def __init__(
        self,
        categories: Iterable[str] = DEFAULT_CATEGORIES,
        aliases: Mapping[str, str] | None = None,
    ):
        self.categories = frozenset(c.lower() for c in categories)
        self.aliases = {
            k.lower(): v.lower()
            for k, v in (DEFAULT_ALIASES if aliases is None else aliases).items()
        }

    def resolve(self, raw: str | None) -> str | None:
        if not raw:
            return None
        key = raw.strip().lower()
        if key in self.categories:
            return key
        target = self.aliases.get(key)
        if target in self.categories:
            return target
        return None
