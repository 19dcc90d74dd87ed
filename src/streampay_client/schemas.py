"""
Wire contracts for the fraud-check endpoint.

Field names follow the endpoint's camelCase JSON; Python code uses the
snake_case attributes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .types import FraudAssessment, Recommendation


class FraudCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient: str = Field(..., min_length=1)
    amount: str = Field(..., min_length=1, description="Total amount in display units")
    duration: int = Field(..., gt=0, description="Stream duration in seconds")
    sender_address: str = Field(..., min_length=1, alias="senderAddress")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class FraudCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_score: int = Field(..., ge=0, le=100, alias="riskScore")
    risk_factors: list[str] = Field(default_factory=list, alias="riskFactors")
    recommendation: Recommendation = Field(...)
    message: str = Field(default="")

    @field_validator("risk_factors", mode="before")
    @classmethod
    def null_factors_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("message", mode="before")
    @classmethod
    def null_message_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_assessment(self) -> FraudAssessment:
        return FraudAssessment(
            risk_score=self.risk_score,
            risk_factors=tuple(self.risk_factors),
            recommendation=self.recommendation,
            message=self.message,
        )
