from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DepartmentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    selection_keywords: tuple[str, ...] = ()


class DepartmentOption(BaseModel):
    id: str
    name: str
    description: str = ""
    specialist: Optional[str] = None


class RoutingRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    department: str
    keywords: tuple[str, ...]
    priority: float = Field(ge=0.0, le=1.0)


class RoutingResult(BaseModel):
    department: str
    score: float = 0.0
    confidence: float = 0.0
    reasons: list[str] = Field(default_factory=list)
    suggestions: Optional[list[DepartmentOption]] = None
