from pydantic import BaseModel, ConfigDict, Field


class Persona(BaseModel):
    """AI identity bound to a department. Immutable; registry updates replace instances."""

    model_config = ConfigDict(frozen=True)

    department: str
    name: str
    role: str
    style: str = ""
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    greeting: str
    specialization: bool = False
    is_main_router: bool = False
    instructions: str = ""
