"""Keyword/priority department classifier.

``KeywordRouter.route`` is a pure function of the text and the rule table:
each rule scores ``priority`` per keyword found as a substring of the
lower-cased text, the highest cumulative score wins and earlier rules win
ties. Tables are replaced wholesale (copy-on-write) so concurrent readers
always see either the old or the new table.
"""

from typing import Iterable, Optional, Sequence

from switchboard.errors import ConfigurationError
from switchboard.logging_config import get_logger
from switchboard.models.conversation import HUB_DEPARTMENT
from switchboard.models.routing import DepartmentInfo, DepartmentOption, RoutingResult, RoutingRule
from switchboard.services.intent_service import normalize_for_matching

logger = get_logger("keyword_router")

SUGGESTION_CUTOFF = 0.7

DEFAULT_DEPARTMENTS = (
    DepartmentInfo(
        id="general",
        name="General Chat",
        description="Main chat entry point - routes to specialized departments",
        selection_keywords=("general",),
    ),
    DepartmentInfo(
        id="sales",
        name="Sales Department",
        description="Product sales, pricing, and quotes",
        selection_keywords=("sales", "buy", "purchase"),
    ),
    DepartmentInfo(
        id="technical",
        name="Technical Support",
        description="Technical support and troubleshooting",
        selection_keywords=("technical", "tech"),
    ),
    DepartmentInfo(
        id="support",
        name="Customer Support",
        description="General customer support",
        selection_keywords=("support", "customer care"),
    ),
    DepartmentInfo(
        id="billing",
        name="Billing Department",
        description="Billing and payment support",
        selection_keywords=("billing", "payment", "bill"),
    ),
)

DEFAULT_RULES = (
    RoutingRule(
        department="sales",
        keywords=("buy", "purchase", "price", "cost", "quote", "product", "demo", "trial", "pricing", "payment plan"),
        priority=0.8,
    ),
    RoutingRule(
        department="technical",
        keywords=(
            "bug",
            "error",
            "issue",
            "problem",
            "not working",
            "broken",
            "technical",
            "support",
            "help",
            "troubleshoot",
            "won't turn on",
            "won't start",
            "doesn't work",
            "stopped working",
            "crash",
        ),
        priority=0.9,
    ),
    RoutingRule(
        department="billing",
        keywords=("bill", "invoice", "payment", "refund", "subscription", "charge", "account", "billing"),
        priority=0.85,
    ),
    RoutingRule(
        department="support",
        keywords=("complaint", "feedback", "warranty", "order status", "delivery", "shipping", "returns"),
        priority=0.75,
    ),
    RoutingRule(
        department="general",
        keywords=("hello", "hi", "information", "general", "question"),
        priority=0.3,
    ),
)


def _prepare(text: str) -> str:
    return (text or "").lower().replace("’", "'")


class KeywordRouter:
    def __init__(
        self,
        rules: Sequence[RoutingRule] = DEFAULT_RULES,
        departments: Sequence[DepartmentInfo] = DEFAULT_DEPARTMENTS,
        *,
        hub_department: str = HUB_DEPARTMENT,
        suggestion_cutoff: float = SUGGESTION_CUTOFF,
    ):
        self.hub_department = hub_department
        self.suggestion_cutoff = suggestion_cutoff
        self._departments: tuple[DepartmentInfo, ...] = ()
        self._rules: tuple[RoutingRule, ...] = ()
        self.set_departments(departments)
        self.set_rules(rules)

    @property
    def rules(self) -> tuple[RoutingRule, ...]:
        return self._rules

    @property
    def departments(self) -> tuple[DepartmentInfo, ...]:
        return self._departments

    def set_rules(self, rules: Iterable[RoutingRule]) -> None:
        rules = tuple(rules)
        known = {department.id for department in self._departments}
        unknown = [rule.department for rule in rules if rule.department not in known]
        if unknown:
            raise ConfigurationError(f"Routing rules reference unknown departments: {unknown}")
        normalized = tuple(
            RoutingRule(
                department=rule.department,
                keywords=tuple(keyword.lower() for keyword in rule.keywords),
                priority=rule.priority,
            )
            for rule in rules
        )
        self._rules = normalized
        logger.info(f"Routing table loaded: {len(normalized)} rules")

    def set_departments(self, departments: Iterable[DepartmentInfo]) -> None:
        departments = tuple(departments)
        if self.hub_department not in {department.id for department in departments}:
            raise ConfigurationError(f"Department catalog is missing hub {self.hub_department!r}")
        self._departments = departments

    def department(self, department_id: str) -> Optional[DepartmentInfo]:
        for department in self._departments:
            if department.id == department_id:
                return department
        return None

    def specialists(self, hub_department: Optional[str] = None) -> list[DepartmentInfo]:
        hub = hub_department or self.hub_department
        return [department for department in self._departments if department.id != hub]

    def suggestions(self, hub_department: Optional[str] = None) -> list[DepartmentOption]:
        return [
            DepartmentOption(id=department.id, name=department.name, description=department.description)
            for department in self.specialists(hub_department)
        ]

    def route(
        self,
        text: str,
        current_department: Optional[str] = None,
        hub_department: Optional[str] = None,
    ) -> RoutingResult:
        hub = hub_department or self.hub_department
        current = current_department or hub
        lowered = _prepare(text)

        best = RoutingResult(department=hub, score=0.0, confidence=0.0)
        for rule in self._rules:
            score = 0.0
            matched = []
            for keyword in rule.keywords:
                if keyword in lowered:
                    score += rule.priority
                    matched.append(keyword)

            if score > best.score:
                best = RoutingResult(
                    department=rule.department,
                    score=score,
                    confidence=min(score, 1.0),
                    reasons=[f"Matched keywords: {', '.join(matched)}"],
                )

        if best.score < self.suggestion_cutoff and current == hub:
            best.suggestions = self.suggestions(hub)

        logger.debug(
            "Routing analysis",
            extra={"context": {"text": text[:50], "department": best.department, "score": best.score}},
        )
        return best

    def find_department(
        self,
        text: str,
        candidates: Optional[Sequence[DepartmentInfo]] = None,
    ) -> Optional[DepartmentInfo]:
        """Resolve a free-text menu answer: position number, then name, then selection keywords."""
        options = list(candidates) if candidates is not None else self.specialists()
        normalized = normalize_for_matching(_prepare(text))
        if not normalized:
            return None

        if normalized.isdigit():
            index = int(normalized) - 1
            if 0 <= index < len(options):
                return options[index]
            return None

        for department in options:
            if department.name.lower() in normalized:
                return department

        for department in options:
            keywords = department.selection_keywords or (department.id,)
            if any(keyword in normalized for keyword in keywords):
                return department
        return None
