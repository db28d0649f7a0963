"""
Labeled-line splitting for company note documents.

Notes are written from a template of ``Label: value`` lines. Company name and
URL are only ever read from their labeled lines; nothing downstream infers
them from free text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .normalize import clean_text

# Labels of the note template, in template order
TEMPLATE_LABELS: List[str] = [
    "Company Name",
    "URL",
    "Description",
    "Location",
    "Year founded",
    "Team size",
    "ARR Run Rate",
    "2024 rev",
    "2023 rev",
    "2022 rev",
    "Revenue Notes",
    "% SaaS Recurring",
    "Gross Margin",
    "# of Customers",
    "Customer Notes",
    "Competition",
    "ACV",
    "Logo Churn Annual",
    "Net Revenue Retention",
    "Blended CAC",
    "Payback Period",
    "Monthly Burn",
    "Cash",
    "Runway",
    "Raising",
    "Raised",
    "Active round / fundraise Notes",
    "Other Funding Notes",
    "Good",
    "Challenges",
    "Needs Action",
]

# Optional bullet / markdown emphasis before the label and around the colon
_LABEL_PATTERNS: Dict[str, re.Pattern] = {
    label: re.compile(
        rf"^[ \t>*\-•]*{re.escape(label)}[ \t*]*:[ \t*]*(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )
    for label in TEMPLATE_LABELS
}


def looks_like_url(value: str) -> bool:
    """
    Heuristic to check if a string looks like a URL or domain.
    """
    if not value:
        return False

    s = value.strip().lower()

    # Explicit protocol
    if s.startswith("http://") or s.startswith("https://"):
        return True

    # Starts with www.
    if s.startswith("www."):
        return True

    # Simple domain pattern: word.tld (where tld is 2+ chars)
    # e.g. "example.com", "google.co.uk", optionally with a path
    if re.match(r"^[a-z0-9-]+(\.[a-z0-9-]+)*\.[a-z]{2,}(/\S*)?$", s):
        return True

    return False


def normalize_website(value: Optional[str]) -> Optional[str]:
    """
    Return an absolute URL for a labeled URL value, or None if it is not one.
    """
    text = clean_text(value)
    if not text or not looks_like_url(text):
        return None
    text = text.rstrip("/")
    if "://" not in text:
        text = f"https://{text}"
    return text


def split_labeled_sections(text: str) -> Dict[str, str]:
    """
    Map every template label to its value; missing labels map to "".

    When a label appears more than once the first occurrence wins.
    """
    sections: Dict[str, str] = {}
    for label, pattern in _LABEL_PATTERNS.items():
        match = pattern.search(text or "")
        sections[label] = match.group(1).strip().strip("*").strip() if match else ""
    return sections


@dataclass(frozen=True)
class NoteDocument:
    """Raw note text plus its labeled sections; one per pipeline run."""

    document_id: str
    text: str
    sections: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_text(cls, document_id: str, text: str) -> "NoteDocument":
        return cls(
            document_id=document_id,
            text=text or "",
            sections=split_labeled_sections(text or ""),
        )

    @property
    def has_template(self) -> bool:
        return any(v for v in self.sections.values())

    def section(self, label: str) -> str:
        return self.sections.get(label, "")

    def filled_sections(self) -> Dict[str, str]:
        return {k: v for k, v in self.sections.items() if v}

    @property
    def company_name(self) -> Optional[str]:
        return clean_text(self.section("Company Name"))

    @property
    def website(self) -> Optional[str]:
        return normalize_website(self.section("URL"))
