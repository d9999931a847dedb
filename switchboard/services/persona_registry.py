"""Department personas: identity, greeting and system-prompt text per department.

Readers get the current snapshot without locking. Every mutation builds a
complete new table, validates it and swaps the reference under a lock, so a
reader either sees the old personas or the new ones, never a mix.
"""

import json
import re
import threading
from pathlib import Path
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from switchboard.errors import ConfigurationError
from switchboard.logging_config import get_logger
from switchboard.models.conversation import Department
from switchboard.models.persona import Persona

logger = get_logger("persona_registry")

DEFAULT_CUSTOMER_NAME = "there"

_GREETING_TOKEN = re.compile(r"Hi!|Hello!")

BASE_INSTRUCTIONS = "You are a helpful AI assistant for Lightwave company. "

GREETING_TEMPLATES = {
    "general": (
        "Hi! I'm {name}, your {role}. Welcome to our support system! I can help you with any "
        "questions or connect you with the right specialist. What can I help you with today?"
    ),
    "sales": (
        "Hello! I'm {name} from our Sales team. I've been brought in to help you with your inquiry. "
        "I'd love to help you find the perfect solution for your needs!"
    ),
    "technical": (
        "Hi, I'm {name} from our Technical team. I understand you have a technical question or issue. "
        "Let me help you get this resolved quickly and efficiently."
    ),
    "support": (
        "Hello! I'm {name} from Customer Support. I've been assigned to help you with your inquiry. "
        "I'm here to ensure you have the best possible experience with Lightwave."
    ),
    "billing": (
        "Hi, I'm {name} from our Billing department. I've been brought in to help with your billing "
        "or payment question. I'll make sure we get this sorted out for you."
    ),
}


def greeting_template(department: str, name: str, role: str) -> str:
    template = GREETING_TEMPLATES.get(department, GREETING_TEMPLATES["general"])
    return template.format(name=name, role=role)


DEFAULT_PERSONAS = (
    Persona(
        department="general",
        name="Alex",
        role="Lightwave Assistant",
        style="friendly, professional, and routing-focused",
        capabilities=frozenset({"routing", "general_info", "department_transfer", "initial_triage"}),
        greeting=greeting_template("general", "Alex", "Lightwave Assistant"),
        is_main_router=True,
        instructions=BASE_INSTRUCTIONS
        + "You help with general inquiries and route customers to appropriate departments. "
        "If someone asks about technical issues, suggest they speak with technical support. "
        "If they ask about purchases or pricing, suggest they speak with sales.",
    ),
    Persona(
        department="sales",
        name="Sarah",
        role="Sales Specialist",
        style="enthusiastic, solution-focused, and consultative",
        capabilities=frozenset({"product_info", "pricing", "demos", "quotes", "sales_process"}),
        greeting=greeting_template("sales", "Sarah", "Sales Specialist"),
        specialization=True,
        instructions=BASE_INSTRUCTIONS
        + "You are a sales specialist. Help customers with product information, pricing, quotes, "
        "and purchasing decisions. Be friendly, informative, and focus on understanding their needs "
        "to recommend appropriate solutions.",
    ),
    Persona(
        department="technical",
        name="Mike",
        role="Technical Specialist",
        style="analytical, precise, and solution-oriented",
        capabilities=frozenset({"troubleshooting", "technical_guidance", "bug_reports", "system_help"}),
        greeting=greeting_template("technical", "Mike", "Technical Specialist"),
        specialization=True,
        instructions=BASE_INSTRUCTIONS
        + "You are a technical support specialist. Help customers troubleshoot issues, provide "
        "technical guidance, and solve problems with their products or services. Be precise, ask "
        "clarifying questions, and provide step-by-step solutions.",
    ),
    Persona(
        department="support",
        name="Emma",
        role="Customer Support Specialist",
        style="empathetic, patient, and customer-focused",
        capabilities=frozenset({"account_help", "service_issues", "general_support", "customer_care"}),
        greeting=greeting_template("support", "Emma", "Customer Support Specialist"),
        specialization=True,
        instructions=BASE_INSTRUCTIONS
        + "You are a customer support representative. Help with account issues, billing questions, "
        "service problems, and general customer care. Be empathetic and solution-focused.",
    ),
    Persona(
        department="billing",
        name="David",
        role="Billing Specialist",
        style="clear, professional, and detail-oriented",
        capabilities=frozenset({"billing_help", "payment_issues", "subscriptions", "invoicing"}),
        greeting=greeting_template("billing", "David", "Billing Specialist"),
        specialization=True,
        instructions=BASE_INSTRUCTIONS
        + "You are a billing specialist. Help customers with payment issues, invoice questions, "
        "subscription management, and financial inquiries. Be clear about policies and procedures.",
    ),
)

KNOWN_DEPARTMENTS = {department.value for department in Department}


def _check_table(personas: Mapping[str, Persona]) -> None:
    main_routers = [persona.department for persona in personas.values() if persona.is_main_router]
    if len(main_routers) != 1:
        raise ConfigurationError(f"Exactly one main router persona required, found {len(main_routers)}: {main_routers}")
    for department, persona in personas.items():
        if department not in KNOWN_DEPARTMENTS:
            raise ConfigurationError(f"Unknown department {department!r}")
        if persona.department != department:
            raise ConfigurationError(f"Persona for {department!r} is bound to {persona.department!r}")


class PersonaRegistry:
    def __init__(self, personas=DEFAULT_PERSONAS):
        table = {persona.department: persona for persona in personas}
        _check_table(table)
        self._base = table
        self._snapshot: dict[str, Persona] = dict(table)
        self._write_lock = threading.Lock()
        self._source: Optional[Path] = None

    def get(self, department: str) -> Optional[Persona]:
        return self._snapshot.get(department)

    def list(self) -> List[Persona]:
        return list(self._snapshot.values())

    def departments(self) -> List[str]:
        return list(self._snapshot)

    def main_router(self) -> Persona:
        for persona in self._snapshot.values():
            if persona.is_main_router:
                return persona
        raise ConfigurationError("No main router persona configured")

    def greeting_for(self, department: str, customer_name: Optional[str] = None, salutation: str = "Hi") -> str:
        """Persona greeting with the first "Hi!"/"Hello!" replaced by a personal salutation."""
        persona = self.get(department) or self.main_router()
        name = customer_name or DEFAULT_CUSTOMER_NAME
        return _GREETING_TOKEN.sub(f"{salutation} {name}!", persona.greeting, count=1)

    def upsert(self, department: str, partial: Mapping[str, Any]) -> Persona:
        return self.upsert_many({department: partial})[department]

    def upsert_many(self, changes: Mapping[str, Mapping[str, Any]]) -> dict[str, Persona]:
        """Apply several persona changes as one atomic swap.

        The only way to move the main-router flag to another persona is to
        clear it on the old one and set it on the new one in the same batch.
        """
        with self._write_lock:
            table = self._apply(self._snapshot, changes)
            self._snapshot = table
        logger.info(f"Personas updated: {sorted(changes)}")
        return {department: table[department] for department in changes}

    def load_file(self, path) -> None:
        """Load persona overrides (``{department: {field: value}}``) on top of the built-in table."""
        path = Path(path)
        try:
            changes = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read personas file {path}: {e}") from e
        if not isinstance(changes, dict):
            raise ConfigurationError(f"Personas file {path} must contain an object keyed by department")

        with self._write_lock:
            self._snapshot = self._apply(self._base, changes)
            self._source = path
        logger.info(f"Personas loaded from {path}", extra={"context": {"departments": sorted(changes)}})

    def reload(self) -> bool:
        if self._source is None:
            return False
        self.load_file(self._source)
        return True

    def _apply(self, current: Mapping[str, Persona], changes: Mapping[str, Mapping[str, Any]]) -> dict[str, Persona]:
        table = dict(current)
        for department, partial in changes.items():
            if department not in KNOWN_DEPARTMENTS:
                raise ConfigurationError(f"Unknown department {department!r}")
            partial = dict(partial)
            partial.pop("department", None)
            existing = table.get(department)
            data = existing.model_dump() if existing else {}
            data.update(partial)
            data["department"] = department

            renamed = existing is not None and (
                data.get("name") != existing.name or data.get("role") != existing.role
            )
            if ("greeting" not in partial and renamed) or ("greeting" not in data and "name" in data):
                data["greeting"] = greeting_template(department, data.get("name", ""), data.get("role", ""))

            try:
                table[department] = Persona.model_validate(data)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid persona for {department!r}: {e}") from e

        _check_table(table)
        return table
