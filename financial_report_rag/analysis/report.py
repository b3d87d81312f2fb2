"""
Analysis report schema

Pydantic models for the structured report produced by a model. Fields are
camelCase on the wire; snake_case names and a few legacy aliases are accepted
too. Unknown fields are ignored and missing optional fields default to empty
values.
"""

from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import (AliasChoices, BaseModel, BeforeValidator, ConfigDict,
                      Field)
from pydantic.alias_generators import to_camel


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UNVERIFIED"
    NOT_FOUND = "NOT_FOUND"


def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


Text = Annotated[str, BeforeValidator(_as_text)]


class ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel,
                              populate_by_name=True,
                              extra="ignore",
                              protected_namespaces=())


class MetricInsight(ReportModel):
    metric_name: Text = Field(
        "",
        validation_alias=AliasChoices("metricName", "name", "metric_name"),
        serialization_alias="metricName")
    value: Text = ""
    interpretation: Text = ""
    sentiment: Text = ""


class BusinessDriver(ReportModel):
    title: Text = ""
    description: Text = ""
    impact: Text = ""


class RiskFactor(ReportModel):
    category: Text = ""
    description: Text = ""
    severity: Text = ""


class Citation(ReportModel):
    section: Text = ""
    excerpt: Text = ""
    excerpt_zh: Text = ""
    verification_status: Text = ""


class DupontAnalysis(ReportModel):
    net_profit_margin: Text = ""
    asset_turnover: Text = ""
    equity_multiplier: Text = ""
    return_on_equity: Text = ""
    interpretation: Text = ""


class AccountingChange(ReportModel):
    policy_name: Text = ""
    change_description: Text = ""
    risk_assessment: Text = ""


class RootCause(ReportModel):
    metric: Text = ""
    reason: Text = ""
    evidence: Text = ""


class InsightEngine(ReportModel):
    accounting_changes: Annotated[List[AccountingChange],
                                  BeforeValidator(_as_list)] = Field(
                                      default_factory=list)
    root_cause_analysis: Annotated[List[RootCause],
                                   BeforeValidator(_as_list)] = Field(
                                       default_factory=list)


class BridgeItem(ReportModel):
    name: Text = ""
    impact: Text = ""
    description: Text = ""


class FactorAnalysis(ReportModel):
    revenue_bridge: Annotated[List[BridgeItem],
                              BeforeValidator(_as_list)] = Field(
                                  default_factory=list)
    margin_bridge: Annotated[List[BridgeItem],
                             BeforeValidator(_as_list)] = Field(
                                 default_factory=list)


class ReportMetadata(ReportModel):
    model_name: Text = ""
    generated_at: Text = ""
    language: Text = ""
    requested_model: Optional[str] = None
    fallback_used: bool = False
    evidence_mode: Text = ""
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class AnalysisReport(ReportModel):
    """Structured financial analysis produced by a model"""

    executive_summary: Text = ""
    key_metrics: Annotated[List[MetricInsight],
                           BeforeValidator(_as_list)] = Field(
                               default_factory=list)
    business_drivers: Annotated[List[BusinessDriver],
                                BeforeValidator(_as_list)] = Field(
                                    default_factory=list)
    risk_factors: Annotated[List[RiskFactor],
                            BeforeValidator(_as_list)] = Field(
                                default_factory=list)
    bull_case: Text = ""
    bear_case: Text = ""
    citations: Annotated[List[Citation],
                         BeforeValidator(_as_list)] = Field(
                             default_factory=list)
    dupont_analysis: Optional[DupontAnalysis] = None
    insight_engine: Optional[InsightEngine] = None
    factor_analysis: Optional[FactorAnalysis] = None
    metadata: Annotated[ReportMetadata,
                        BeforeValidator(lambda v: {} if v is None else v)] = Field(
                            default_factory=ReportMetadata)
    currency: Text = ""

    def to_dict(self) -> dict:
        """camelCase JSON-ready representation"""
        return self.model_dump(by_alias=True, mode="json")
