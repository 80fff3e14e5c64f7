from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, field_validator

RiskLevel = Literal["low", "medium", "high"]
Recommendation = Literal["approve", "reject", "revise"]
DPRStatus = Literal["pending", "analyzing", "reviewed", "approved", "rejected"]
FinalDecision = Literal["approved", "rejected", "pending_revision"]


class AssessmentResult(BaseModel):
    quality_score: int
    delay_risk: RiskLevel
    cost_overrun_risk: RiskLevel
    implementation_risk: RiskLevel
    missing_sections: List[str]
    weak_sections: List[str]
    explanation: str
    recommendation: Recommendation

    @field_validator("quality_score")
    @classmethod
    def clamp_score(cls, v: int) -> int:
        return max(0, min(100, v))


class AssessmentOut(AssessmentResult):
    id: str
    dpr_id: str
    created_at: datetime
    updated_at: datetime
    final_decision: Optional[FinalDecision] = None
    reviewer_comments: Optional[str] = None


class DPROut(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    title: str
    project_name: str
    description: Optional[str] = None
    file_name: str
    file_type: str
    status: DPRStatus
    used_placeholder: bool
    latest_assessment: Optional[AssessmentOut] = None


class AnalyzeRequest(BaseModel):
    dpr_id: Optional[str] = None


class AnalyzeResponse(BaseModel):
    success: bool
    assessment: AssessmentOut
    analysis: AssessmentResult


class DecisionRequest(BaseModel):
    decision: Literal["approve", "reject"]
    comments: str = ""


class DashboardStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    avg_score: int
    delay_risk: Dict[str, int]
    status_counts: Dict[str, int]
