"""Prompt templates for every model call made during ingestion.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

# ── 1. Document reading (vision) ──────────────────────────────────────

IMAGE_TEXT_PROMPT = """\
Extract ALL text from this image (menus, prices, policies, hours, contact info).
Return plain text; preserve prices exactly as shown."""

PDF_TEXT_PROMPT = """\
Extract ALL text from this PDF document (menus, prices, policies, hours, contact info).
Preserve item names and prices exactly as shown.
Return plain text only."""


# ── 2. Catalog structuring (proposal path) ───────────────────────────

KIND_PROMPTS = {
    "menuItems": "Extract menu items (food/drinks) with category, price, currency.",
    "services": "Extract services with name, description, price (if present), currency.",
    "offerings": "Extract offerings/packages with name, description, price, currency, category.",
    "tickets": "Extract ticket types with name, description, price, currency.",
    "roomTypes": "Extract room types with name, description, nightly price if present, currency.",
}

CATALOG_RULES = """\
Rules:
1) Output ONLY a JSON array (no markdown, no commentary).
2) Each item must have: name (string). Optional: description, price (number), currency (TRY|EUR|GBP|USD), category.
3) If price or currency is missing, use null.
4) Do not invent items that are not in the text.

JSON schema:
[{"name":"...","description":null,"price":null,"currency":null,"category":null}]"""


def kind_prompt(kind: str) -> str:
    return KIND_PROMPTS[kind]


def build_catalog_prompt(kind: str, text: str, max_chars: int = 60_000) -> str:
    """Build the single-shot structuring prompt for a catalog ingest job."""
    return "\n".join(
        [
            f"You are extracting structured listing data for kind: {kind}.",
            kind_prompt(kind),
            "",
            CATALOG_RULES,
            "",
            "TEXT:",
            text[:max_chars],
        ]
    )


# ── 3. Section extraction (knowledge-doc catalog sub-flow) ───────────

SECTION_PROMPT = """\
Extract catalog items from this document section.

SECTION: {section}

RULES:
1. Extract name, description exactly as written
2. For prices:
   - If explicit price shown: use priceType "fixed"
   - If "from X" or "starting at": use priceType "from"
   - If per hour: use priceType "hourly"
   - If per person: use priceType "per_person"
   - If explicitly free: use priceType "free"
   - If price NOT shown: use priceType "unknown" with price: null
3. Currency: TRY unless explicitly stated (GBP, EUR, USD)
4. Do not invent items that are not in the section

OUTPUT: JSON array only, no markdown:
[{{"name": "...", "section": "{section}", "description": "...", "price": 350, "currency": "TRY", "priceType": "fixed"}}]

DOCUMENT:
{text}"""


def build_section_prompt(section: str, text: str) -> str:
    return SECTION_PROMPT.format(section=section, text=text)
