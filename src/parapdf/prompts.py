# src/parapdf/prompts.py
from __future__ import annotations

from typing import Optional

from .models import Unit

OUTPUT_LEVELS = ("executive", "technical", "detailed")

_BASE_PROMPT = """You are an expert analyst of technical and design documents. \
The attached content is {scope} of a larger PDF document.
"""

_LEVEL_INSTRUCTIONS = {
    "executive": """Provide a concise executive summary in 3-5 sentences: what the content \
describes, the key components or findings, and anything that needs attention.
""",
    "technical": """Extract the technical content:

1. **OVERVIEW**: component or subject name, description, key dimensions with units
2. **SPECIFICATIONS**: materials, tolerances, standards, ratings
3. **BOM**: every part number with quantity and material, if a parts list is present
4. **NOTES**: manufacturing, quality and inspection notes, exact text
""",
    "detailed": """Analyze the content completely. Extract ALL technical details, dimensions, \
parts and specifications. DO NOT skip, omit or summarize anything.

1. **METADATA**: Drawn By, Checked By, Approved By (exact names), dates, drawing numbers, \
revisions, CAD codes, projection type
2. **OVERVIEW**: component name, description, key dimensions (with units), weight, material codes
3. **BOM**: list EVERY part number, include quantities, materials, descriptions, state the total part count
4. **DIMENSIONS**: ALL linear, diameter, radius, angle and depth values with tolerances, \
formatted as [Feature]: [Value] [Unit]
5. **DRAWINGS**: all views, scales, standards and geometric features with exact values
6. **ASSEMBLY**: sequence, assembly points, fastening methods, tolerances
7. **NOTES**: manufacturing, quality, testing, warnings, inspection requirements, EXACT text
8. **MATERIALS/FINISHES**: exact codes for each component

Rules:
- List every part, dimension and component, no "etc." or "various"
- Extract exact values, no approximations
- Use tables or numbered lists for clarity
""",
}

_HEADING_RULE = """
Do not write any introductory phrase. Start your response immediately with the heading:
# {heading}
"""


def _scope(unit: Unit) -> str:
    if unit.is_single_page:
        return f"page {unit.start_page + 1}"
    return f"pages {unit.start_page + 1}-{unit.end_page + 1}"


def _heading(unit: Unit) -> str:
    if unit.is_single_page:
        return f"Page {unit.start_page + 1}"
    return f"Pages {unit.start_page + 1}-{unit.end_page + 1}"


def build_prompt(unit: Unit, level: str = "detailed", custom: Optional[str] = None) -> str:
    """
    Build the instruction text sent alongside a unit's payload.
    A custom prompt replaces the level instructions but keeps the page heading rule.
    """
    if level not in _LEVEL_INSTRUCTIONS:
        raise ValueError(f"Unknown output level, '{level}'. Supported levels, {list(OUTPUT_LEVELS)}")

    body = custom.strip() + "\n" if custom else _LEVEL_INSTRUCTIONS[level]
    return (
        _BASE_PROMPT.format(scope=_scope(unit))
        + "\n"
        + body
        + _HEADING_RULE.format(heading=_heading(unit))
    )
