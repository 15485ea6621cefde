"""Response schemas and validation for classifier output.

Classifier output is untrusted. Parsing never raises: callers get a
ValidationResult that either holds the parsed response or an error message.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, Field, StrictStr, ValidationError


# Pydantic models for structured output
class ProposedChange(BaseModel):
    """Single proposed change for one expense."""

    transaction_id: StrictStr
    new_category: StrictStr
    new_subcategory: Optional[str] = None
    new_description: Optional[str] = None
    confidence: float = Field(strict=True, ge=0.0, le=1.0)


class ReclassificationResponse(BaseModel):
    """Full response for one batch."""

    changes: List[ProposedChange]
    new_subcategories: List[StrictStr]


class ExtractionResponse(BaseModel):
    """Single expense extracted from free text. Fields are loosely typed on purpose."""

    date: Optional[str] = None
    amount: Any = None
    category: Optional[str] = None
    details: Optional[str] = None
    paidBy: Optional[str] = None


@dataclass
class ValidationResult:
    """Either a parsed response (ok) or an error message."""

    response: Optional[ReclassificationResponse] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.response is not None


def parse_json_object(raw_text: str) -> Any:
    """Decode classifier text as JSON.

    Raises:
        ValueError: If the text is not valid JSON.
    """
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise ValueError(f"AI returned malformed JSON: {e.msg}") from e


def validate_reclassification_response(raw_text: str) -> ValidationResult:
    """Parse and structurally validate a batch response.

    A missing or mistyped field in any change rejects the whole response.

    Args:
        raw_text: Classifier text with code fences already removed.

    Returns:
        ValidationResult holding either the response or an error.
    """
    try:
        data = parse_json_object(raw_text)
    except ValueError as e:
        return ValidationResult(error=str(e))

    if not isinstance(data, dict):
        return ValidationResult(error="AI returned non-object response")

    try:
        return ValidationResult(response=ReclassificationResponse.model_validate(data))
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        return ValidationResult(error=f"AI response failed validation: {details}")
