from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    role: Role = "assistant"
    # Plain text or a list of upstream content blocks; passed through untouched.
    content: Any = None

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> str:
        # Anything that isn't literally "user" is treated as the model's turn.
        return "user" if value == "user" else "assistant"

    def to_upstream(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


class UsageTally(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class AggregatedResponse(BaseModel):
    content: str
    usage: UsageTally
    model: str


class ErrorResponse(BaseModel):
    error: str


class HealthConfig(BaseModel):
    maxTokens: int  # Matching frontend CamelCase expectation
    defaultTemperature: float


class HealthResponse(BaseModel):
    message: str
    status: str
    model: str
    config: HealthConfig
    endpoints: Dict[str, str]
    environment: str
