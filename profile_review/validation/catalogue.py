"""Profile sections and field definitions, ordered by RM priority."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class FieldDefinition(BaseModel):
    key: str
    label: str
    priority: str = "medium"                # "high" | "medium" | "low"
    type: str = "text"                      # "text" | "date" | "enum" | "number" | "boolean" | "multi_select"


class SectionDefinition(BaseModel):
    id: str
    label: str
    fields: List[FieldDefinition]


def _f(key: str, label: str, priority: str, type: str = "text") -> FieldDefinition:
    return FieldDefinition(key=key, label=label, priority=priority, type=type)


PROFILE_SECTIONS: List[SectionDefinition] = [
    SectionDefinition(id="goals", label="Goals & Constraints", fields=[
        _f("goals_summary", "Goals Summary", "high"),
        _f("primary_goal_type", "Primary Goal", "high", "enum"),
        _f("primary_goal_horizon", "Goal Horizon", "high", "enum"),
        _f("constraints_summary", "Key Constraints", "high"),
        _f("goal_priority_style", "Priority Style", "medium", "enum"),
    ]),
    SectionDefinition(id="income", label="Income & Cashflow", fields=[
        _f("income_band_annual", "Annual Income", "high", "enum"),
        _f("income_stability", "Income Stability", "high", "enum"),
        _f("expense_band_monthly", "Monthly Expenses", "high", "enum"),
        _f("surplus_investable_band", "Investable Surplus", "high", "enum"),
        _f("upcoming_liquidity_events", "Upcoming Liquidity Events", "high"),
        _f("income_sources_secondary", "Secondary Sources", "low"),
    ]),
    SectionDefinition(id="risk", label="Risk Assessment", fields=[
        _f("risk_questionnaire_completed", "Questionnaire Done", "high", "boolean"),
        _f("risk_bucket", "Risk Bucket", "high", "enum"),
        _f("risk_discussion_notes", "Discussion Notes", "high"),
        _f("risk_anecdotes", "Risk Anecdotes", "medium"),
    ]),
    SectionDefinition(id="preferences", label="Investment Preferences", fields=[
        _f("investment_style_preference", "Investment Style", "high", "enum"),
        _f("liquidity_preference", "Liquidity Preference", "high", "enum"),
        _f("asset_class_preference", "Asset Classes", "medium", "multi_select"),
        _f("tax_sensitivity", "Tax Sensitivity", "medium", "enum"),
        _f("esg_preference", "ESG Preference", "low", "enum"),
    ]),
    SectionDefinition(id="professional", label="Professional", fields=[
        _f("occupation_type", "Occupation", "high", "enum"),
        _f("industry", "Industry", "medium", "enum"),
        _f("employer_business_name", "Employer/Business", "medium"),
        _f("job_title", "Job Title", "low"),
    ]),
    SectionDefinition(id="identity", label="Identity & Household", fields=[
        _f("full_name", "Full Name", "high"),
        _f("dob", "Date of Birth", "high", "date"),
        _f("city_of_residence", "City", "high"),
        _f("marital_status", "Marital Status", "medium", "enum"),
        _f("dependents_count", "Dependents", "medium", "number"),
        _f("gender", "Gender", "low", "enum"),
    ]),
    SectionDefinition(id="contact", label="Contact & Communication", fields=[
        _f("primary_mobile", "Primary Mobile", "high"),
        _f("email_primary", "Email", "high"),
        _f("preferred_channel", "Preferred Channel", "high", "enum"),
        _f("secondary_mobile", "Secondary Mobile", "low"),
        _f("email_secondary", "Secondary Email", "low"),
        _f("language_preference", "Language", "low", "enum"),
    ]),
    SectionDefinition(id="relationship", label="Relationship & Workflow", fields=[
        _f("next_follow_up_date", "Next Follow-up", "high", "date"),
        _f("next_follow_up_agenda", "Follow-up Agenda", "high"),
        _f("last_meeting_date", "Last Meeting", "high", "date"),
        _f("client_pain_points", "Pain Points", "medium"),
        _f("referral_source_name", "Referral Source", "low"),
    ]),
]

_FIELD_SECTIONS: Dict[str, SectionDefinition] = {
    field.key: section for section in PROFILE_SECTIONS for field in section.fields
}
_FIELDS: Dict[str, FieldDefinition] = {
    field.key: field for section in PROFILE_SECTIONS for field in section.fields
}


def get_field_definition(key: str) -> Optional[FieldDefinition]:
    return _FIELDS.get(key)


def get_section_for_field(key: str) -> Optional[SectionDefinition]:
    return _FIELD_SECTIONS.get(key)


def field_label(key: str) -> str:
    """Human label for a field key, falling back to the key itself."""
    definition = _FIELDS.get(key)
    return definition.label if definition else key.replace("_", " ").capitalize()


def is_field_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return True
    return False


def section_completeness(fields: Dict[str, Any], section: SectionDefinition) -> int:
    """Percentage (0-100) of the section's fields that hold a value."""
    total = len(section.fields)
    if total == 0:
        return 0
    filled = sum(1 for f in section.fields if not is_field_empty(fields.get(f.key)))
    return round(filled / total * 100)
