# This project was developed with assistance from AI tools.
"""Underwriting decision schemas."""

from pydantic import BaseModel, Field


class InquiryCounts(BaseModel):
    ex: int = 0
    eq: int = 0
    tu: int = 0
    total: int = 0


class Metrics(BaseModel):
    score: int | None = None
    utilization_pct: int | None = None
    negative_accounts: int = 0
    late_payment_events: int = 0
    inquiries: InquiryCounts = Field(default_factory=InquiryCounts)


class BureauSummary(BaseModel):
    """Per-bureau funding decomposition."""

    bureau: str
    label: str
    available: bool = False
    score: int | None = None
    utilization_pct: int | None = None
    negatives: int = 0
    late_payment_events: int = 0
    inquiries: int = 0
    revolving_count: int = 0
    installment_count: int = 0
    positive_tradelines: int = 0
    highest_revolving_limit: float = 0
    highest_installment_amount: float = 0
    has_any_revolving: bool = False
    has_any_installment: bool = False
    thin_file: bool = True
    file_all_negative: bool = False
    can_card_stack: bool = False
    can_loan_stack: bool = False
    can_dual_stack: bool = False
    card_funding: float = 0
    loan_funding: float = 0
    total_personal_funding: float = 0
    fundable: bool = False


class PersonalFunding(BaseModel):
    highest_revolving_limit: float = 0
    highest_installment_amount: float = 0
    can_card_stack: bool = False
    can_loan_stack: bool = False
    can_dual_stack: bool = False
    card_funding: float = 0
    loan_funding: float = 0
    total_personal_funding: float = 0


class BusinessFunding(BaseModel):
    business_age_months: float | None = None
    can_business_fund: bool = False
    business_multiplier: float = 0
    business_funding: float = 0


class FundingTotals(BaseModel):
    total_personal_funding: float = 0
    total_business_funding: float = 0
    total_combined_funding: float = 0


class Optimization(BaseModel):
    needs_util_reduction: bool = False
    target_util_pct: int | None = None
    needs_new_primary_revolving: bool = True
    needs_inquiry_cleanup: bool = False
    needs_negative_cleanup: bool = False
    needs_file_buildout: bool = True
    thin_file: bool = True
    file_all_negative: bool = False


class UnderwriteResult(BaseModel):
    """Deterministic underwriting decision for a merged profile."""

    fundable: bool = False
    primary_bureau: str = "experian"
    metrics: Metrics = Field(default_factory=Metrics)
    per_bureau: dict[str, BureauSummary] = Field(default_factory=dict)
    personal: PersonalFunding = Field(default_factory=PersonalFunding)
    business: BusinessFunding = Field(default_factory=BusinessFunding)
    totals: FundingTotals = Field(default_factory=FundingTotals)
    optimization: Optimization = Field(default_factory=Optimization)
    banner_funding: float = 15000
    fallback: bool = False
