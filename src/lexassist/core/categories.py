"""Per-category vocabulary shared by the orchestrator and the generators.

Category strings are resolved into a DocumentCategory once, at the boundary;
everything downstream looks up its wording here instead of comparing strings.
"""

from dataclasses import dataclass

from lexassist.core.models import DocumentCategory


@dataclass(frozen=True)
class CategoryProfile:
    """Wording and prompt focus for one document category.

    Attributes:
        category: The category this profile describes.
        label: Title-case name used in activity titles ("Tax Analysis").
        service_name: Name of the analysis service in prose.
        framework: The body of rules the analysis applies.
        specialist: The professional a user should consult.
        prompt_focus: Category-specific direction for the AI prompt.
        insight_alert: Description of the foresight alert raised on completion.
    """

    category: DocumentCategory
    label: str
    service_name: str
    framework: str
    specialist: str
    prompt_focus: str
    insight_alert: str


CATEGORY_PROFILES: dict[DocumentCategory, CategoryProfile] = {
    DocumentCategory.FORENSIC: CategoryProfile(
        category=DocumentCategory.FORENSIC,
        label="Forensic Audit",
        service_name="forensic audit",
        framework="accounting standards",
        specialist="certified forensic accountant",
        prompt_focus=(
            "Look for financial irregularities, internal control weaknesses, "
            "fraud indicators and regulatory reporting risks."
        ),
        insight_alert="Potential irregularities detected in financial records",
    ),
    DocumentCategory.TAX: CategoryProfile(
        category=DocumentCategory.TAX,
        label="Tax Analysis",
        service_name="tax optimization",
        framework="tax regulations",
        specialist="tax professional",
        prompt_focus=(
            "Look for deduction opportunities, tax structure inefficiencies, "
            "documentation gaps and exposure to disallowance."
        ),
        insight_alert="Potential tax deduction opportunity identified in your filings",
    ),
    DocumentCategory.LEGAL: CategoryProfile(
        category=DocumentCategory.LEGAL,
        label="Legal Analysis",
        service_name="legal analysis",
        framework="legal precedents",
        specialist="legal professional",
        prompt_focus=(
            "Look for contract vulnerabilities, enforceability concerns, "
            "compliance gaps and missing protective clauses."
        ),
        insight_alert="Possible legal risk identified in contract terms",
    ),
}

INDIAN_JURISDICTIONS = frozenset({"IN", "IND", "INDIA"})


def resolve_category(value: DocumentCategory | str | None) -> DocumentCategory | None:
    """Map a raw category value to DocumentCategory, or None if unrecognised."""
    if isinstance(value, DocumentCategory):
        return value
    if not isinstance(value, str):
        return None
    try:
        return DocumentCategory(value)
    except ValueError:
        return None


def profile_for(category: DocumentCategory) -> CategoryProfile:
    return CATEGORY_PROFILES[category]


def is_indian_jurisdiction(jurisdiction: str | None) -> bool:
    """Return True for the region codes that select Indian content."""
    return (jurisdiction or "").strip().upper() in INDIAN_JURISDICTIONS
