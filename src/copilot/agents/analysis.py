"""Keyword analyses the specialist agents run on an issue description.

Each analysis derives two facets from the description: a type, and a
severity (bugs) or scope (features and improvements). The first keyword
found in a ladder wins, otherwise the ladder's default applies. The
result also lists the impacted areas and recommendations for the
report.

The facets become Linear labels such as ``type:crash``,
``severity:high`` or ``scope:api``. Only labels that already exist in
the workspace are applied (see LinearClient.add_labels).

The performance analysis is metric based: it compares measured values
against thresholds and flags the metrics that matter for the context.
"""

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from src.copilot.routing.models import IssueCategory


Ladder = Tuple[Tuple[str, str], ...]

BUG_TYPES: Ladder = (
    ("crash", "crash"),
    ("security", "security"),
    ("performance", "performance"),
)
BUG_SEVERITIES: Ladder = (
    ("critical", "critical"),
    ("high", "high"),
    ("medium", "medium"),
)
FEATURE_TYPES: Ladder = (
    ("enhancement", "enhancement"),
    ("integration", "integration"),
    ("optimization", "optimization"),
)
FEATURE_SCOPES: Ladder = (
    ("core", "core"),
    ("api", "api"),
    ("ui", "ui"),
)
IMPROVEMENT_TYPES: Ladder = (
    ("performance", "performance"),
    ("security", "security"),
    ("maintainability", "maintainability"),
)
IMPROVEMENT_SCOPES: Ladder = (
    ("system-wide", "system-wide"),
    ("component", "component"),
)

BUG_AREAS: Dict[str, Tuple[str, ...]] = {
    "api": ("api", "endpoint"),
    "database": ("database", "data"),
    "ui": ("ui", "interface"),
    "authentication": ("auth", "login"),
    "integrations": ("integration",),
    "workflows": ("workflow", "process"),
}
QUALITY_AREAS: Dict[str, Tuple[str, ...]] = {
    "performance": ("performance", "speed"),
    "resource-usage": ("memory", "resource"),
    "maintainability": ("maintainability", "code quality"),
    "security": ("security", "vulnerability"),
    "scalability": ("scalability", "scale"),
    "reliability": ("reliability", "stability"),
}

TYPE_RECOMMENDATIONS: Dict[Tuple[IssueCategory, str], Tuple[str, ...]] = {
    (IssueCategory.BUG, "crash"): (
        "Gather crash reports and logs",
        "Check for recent deployments or changes",
    ),
    (IssueCategory.BUG, "security"): (
        "Assess potential data exposure",
        "Review authentication and authorization flows",
    ),
    (IssueCategory.BUG, "performance"): (
        "Collect performance metrics",
        "Review resource utilization",
    ),
    (IssueCategory.FEATURE, "integration"): (
        "Document integration requirements",
        "Define data exchange formats",
    ),
    (IssueCategory.FEATURE, "optimization"): (
        "Define performance metrics",
        "Set optimization targets",
    ),
    (IssueCategory.IMPROVEMENT, "performance"): (
        "Profile current performance bottlenecks",
        "Set up performance monitoring",
    ),
    (IssueCategory.IMPROVEMENT, "security"): (
        "Conduct a security audit",
        "Review security practices",
    ),
    (IssueCategory.IMPROVEMENT, "maintainability"): (
        "Review code complexity metrics",
        "Identify refactoring opportunities",
    ),
}

FACET_RECOMMENDATIONS: Dict[Tuple[IssueCategory, str], Tuple[str, ...]] = {
    (IssueCategory.BUG, "api"): ("Review API logs and error rates",),
    (IssueCategory.BUG, "database"): ("Check database performance and queries",),
    (IssueCategory.FEATURE, "api"): ("Design API endpoints", "Document API changes"),
    (IssueCategory.FEATURE, "ui"): ("Create wireframes or mockups", "Plan user testing"),
    (IssueCategory.IMPROVEMENT, "resource-usage"): (
        "Monitor resource utilization",
        "Identify optimization opportunities",
    ),
    (IssueCategory.IMPROVEMENT, "scalability"): (
        "Review scaling bottlenecks",
        "Plan capacity improvements",
    ),
}


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(keyword)}", re.IGNORECASE)


def mentions(text: str, keyword: str) -> bool:
    """True when a word in ``text`` starts with ``keyword``.

    "crash" matches "crashes" and "crashed" but not "uncrashable".
    """
    return bool(_keyword_pattern(keyword).search(text or ""))


def first_match(text: str, ladder: Ladder, default: str) -> str:
    for keyword, value in ladder:
        if mentions(text, keyword):
            return value
    return default


def matching_areas(text: str, areas: Mapping[str, Iterable[str]]) -> Tuple[str, ...]:
    return tuple(
        area
        for area, keywords in areas.items()
        if any(mentions(text, keyword) for keyword in keywords)
    )


class IssueAnalysis(BaseModel):
    """Result of analysing one issue description.

    Attributes:
        category: Which specialist produced the analysis.
        issue_type: The ``type:`` facet.
        facet: Name of the second facet ("severity" or "scope").
        facet_value: Value of the second facet.
        impacted_areas: Areas the description mentions.
        recommendations: Next steps, most specific last.
    """

    model_config = ConfigDict(frozen=True)

    category: IssueCategory
    issue_type: str
    facet: str
    facet_value: str
    impacted_areas: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    @property
    def label_names(self) -> List[str]:
        return [f"type:{self.issue_type}", f"{self.facet}:{self.facet_value}"]

    def to_report(self, applied_labels: Sequence[str] = ()) -> str:
        lines = [
            f"Type: {self.issue_type}",
            f"{self.facet.capitalize()}: {self.facet_value}",
            f"Impacted areas: {', '.join(self.impacted_areas) or 'none detected'}",
            f"Labels applied: {', '.join(applied_labels) or 'none'}",
            "Recommendations:",
        ]
        lines.extend(f"- {item}" for item in self.recommendations)
        return "\n".join(lines)


def _recommend(
    category: IssueCategory,
    checklist: Sequence[str],
    issue_type: str,
    facets: Iterable[str],
) -> Tuple[str, ...]:
    items = list(checklist)
    items.extend(TYPE_RECOMMENDATIONS.get((category, issue_type), ()))
    for facet in facets:
        items.extend(FACET_RECOMMENDATIONS.get((category, facet), ()))
    return tuple(items)


def analyze_bug(
    description: str,
    stack_trace: Optional[str] = None,
    environment: Optional[str] = None,
) -> IssueAnalysis:
    """Classify a bug report by type and severity.

    Example:
        >>> analyze_bug("Critical crash when saving").label_names
        ['type:crash', 'severity:critical']
    """
    issue_type = first_match(description, BUG_TYPES, "functional")
    areas = matching_areas(description, BUG_AREAS)
    checklist = [
        "Stack trace provided for debugging" if stack_trace else "Request a stack trace if reproducible",
        "Environment details available" if environment else "Request environment details",
    ]
    return IssueAnalysis(
        category=IssueCategory.BUG,
        issue_type=issue_type,
        facet="severity",
        facet_value=first_match(description, BUG_SEVERITIES, "low"),
        impacted_areas=areas,
        recommendations=_recommend(IssueCategory.BUG, checklist, issue_type, areas),
    )


def analyze_feature(
    description: str,
    user_story: Optional[str] = None,
    acceptance_criteria: Optional[Sequence[str]] = None,
) -> IssueAnalysis:
    """Classify a feature request by type and scope."""
    issue_type = first_match(description, FEATURE_TYPES, "new-feature")
    scope = first_match(description, FEATURE_SCOPES, "general")
    checklist = [
        "User story provided" if user_story else "Define a clear user story",
        "Acceptance criteria defined" if acceptance_criteria else "Define acceptance criteria",
    ]
    return IssueAnalysis(
        category=IssueCategory.FEATURE,
        issue_type=issue_type,
        facet="scope",
        facet_value=scope,
        impacted_areas=matching_areas(description, QUALITY_AREAS),
        recommendations=_recommend(IssueCategory.FEATURE, checklist, issue_type, [scope]),
    )


def analyze_improvement(
    description: str,
    current_metrics: Optional[Mapping[str, float]] = None,
    target_metrics: Optional[Mapping[str, float]] = None,
) -> IssueAnalysis:
    """Classify an improvement request by type and scope."""
    issue_type = first_match(description, IMPROVEMENT_TYPES, "technical-debt")
    areas = matching_areas(description, QUALITY_AREAS)
    checklist = [
        "Current metrics provided" if current_metrics is not None else "Define current performance metrics",
        "Target metrics defined" if target_metrics is not None else "Set target performance goals",
    ]
    return IssueAnalysis(
        category=IssueCategory.IMPROVEMENT,
        issue_type=issue_type,
        facet="scope",
        facet_value=first_match(description, IMPROVEMENT_SCOPES, "localized"),
        impacted_areas=areas,
        recommendations=_recommend(IssueCategory.IMPROVEMENT, checklist, issue_type, areas),
    )


class MetricFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric: str
    value: float
    threshold: float
    status: str = Field(..., description="exceeds, meets or below")
    critical: bool = False

    @property
    def recommendation(self) -> str:
        prefix = "[CRITICAL] " if self.critical else ""
        if self.status == "exceeds":
            return f"{prefix}Optimize {self.metric}: above its threshold"
        if self.status == "below":
            return f"{prefix}Improve {self.metric}: below its threshold"
        return f"{prefix}Maintain {self.metric}: meeting its threshold"


class PerformanceReport(BaseModel):
    """Metric-by-metric comparison against thresholds.

    Attributes:
        findings: One entry per measured metric, in input order.
        user_facing: The context mentions users or customers.
        high_traffic: The context mentions production or high traffic.
        resource_constrained: The context mentions mobile or limited resources.
    """

    model_config = ConfigDict(frozen=True)

    findings: Tuple[MetricFinding, ...] = ()
    user_facing: bool = False
    high_traffic: bool = False
    resource_constrained: bool = False

    @property
    def recommendations(self) -> List[str]:
        items = [finding.recommendation for finding in self.findings]
        if self.user_facing:
            items += ["Monitor user experience metrics", "Set up real user monitoring"]
        if self.high_traffic:
            items += ["Implement caching strategies", "Consider load balancing"]
        if self.resource_constrained:
            items += ["Optimize resource usage", "Load expensive resources lazily"]
        return items

    def count(self, status: str) -> int:
        return sum(1 for finding in self.findings if finding.status == status)

    def to_report(self) -> str:
        critical = sum(1 for finding in self.findings if finding.critical)
        lines = [
            f"{self.count('exceeds')} metrics exceeding thresholds, "
            f"{self.count('below')} below thresholds, "
            f"{critical} critical",
            "Recommendations:",
        ]
        lines.extend(f"- {item}" for item in self.recommendations)
        return "\n".join(lines)


def _is_critical(metric: str, report: PerformanceReport) -> bool:
    name = metric.lower()
    return (
        (report.user_facing and "latency" in name)
        or (report.high_traffic and "throughput" in name)
        or (report.resource_constrained and ("memory" in name or "cpu" in name))
    )


def analyze_performance(
    metrics: Mapping[str, float],
    thresholds: Mapping[str, float],
    context: str = "",
) -> PerformanceReport:
    """Compare metrics with their thresholds.

    A metric without a threshold is compared against 0.
    """
    flags = PerformanceReport(
        user_facing=mentions(context, "user") or mentions(context, "customer"),
        high_traffic=mentions(context, "high traffic") or mentions(context, "production"),
        resource_constrained=(
            mentions(context, "mobile") or mentions(context, "limited resources")
        ),
    )

    findings = []
    for metric, value in metrics.items():
        threshold = float(thresholds.get(metric, 0))
        value = float(value)
        if value > threshold:
            status = "exceeds"
        elif value == threshold:
            status = "meets"
        else:
            status = "below"
        findings.append(
            MetricFinding(
                metric=metric,
                value=value,
                threshold=threshold,
                status=status,
                critical=_is_critical(metric, flags),
            )
        )

    return flags.model_copy(update={"findings": tuple(findings)})
