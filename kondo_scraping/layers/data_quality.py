"""
Data Quality Validation.
Decides, field by field, whether a freshly scraped value may replace the
value already stored on the listing. Scraped data must never make a
record emptier, shorter or less plausible.
"""
from typing import Any, Dict, List

from kondo_scraping.models.scraping import QualityDecision, ScrapedDataValidation
from kondo_scraping.utils.logger import LayerLogger


PLACEHOLDER_TEXTS = [
    "lorem ipsum", "teste", "test", "placeholder", "xxx", "n/a", "tbd",
    "coming soon", "em breve",
]

MONETARY_MARKERS = ("price", "rent", "cost")
COORDINATE_MARKERS = ("coordinate", "latitude", "longitude")

LONGER_RATIO = 1.2
SHORTER_RATIO = 0.8
PRICE_MIN_RATIO = 0.5
PRICE_MAX_RATIO = 2.0
MIN_STRING_LENGTH = 3


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def value_kind(value: Any) -> str:
    # bool before number: True is an int in Python
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def contains_placeholder(text: str) -> bool:
    lowered = text.strip().lower()
    return any(placeholder in lowered for placeholder in PLACEHOLDER_TEXTS)


def is_monetary_field(field: str) -> bool:
    name = field.lower()
    return any(marker in name for marker in MONETARY_MARKERS)


class DataQualityValidator:
    """Ordered overwrite rules plus a whole-payload sanity pass."""

    def __init__(self):
        self.logger = LayerLogger("data_quality")

    def should_overwrite(self, field: str, existing: Any, new: Any) -> QualityDecision:
        """
        Args:
            field: Listing column name
            existing: Value currently stored
            new: Freshly scraped value

        Returns:
            QualityDecision with a human-readable reason
        """
        if is_empty(new):
            if not is_empty(existing):
                return QualityDecision(False, "New value is empty; keeping existing value")
            return QualityDecision(False, "Both values are empty; nothing to change")

        if is_empty(existing):
            return QualityDecision(True, "Filling empty field")

        existing_kind = value_kind(existing)
        new_kind = value_kind(new)
        if existing_kind != new_kind:
            return QualityDecision(False, f"Type mismatch: existing {existing_kind}, new {new_kind}")

        if new_kind == "string":
            return self._compare_strings(existing, new)
        if new_kind == "number":
            return self._compare_numbers(field, existing, new)
        if new_kind == "boolean":
            return QualityDecision(True, "Boolean value from source is authoritative")
        if new_kind in ("array", "object"):
            if len(new) > len(existing):
                return QualityDecision(True, f"New value has more items ({len(new)} > {len(existing)})")
            return QualityDecision(False, f"New value does not add items ({len(new)} <= {len(existing)})")

        if new != existing:
            return QualityDecision(True, "Value changed")
        return QualityDecision(False, "Skipped: values are identical")

    def _compare_strings(self, existing: str, new: str) -> QualityDecision:
        old_text = existing.strip()
        new_text = new.strip()

        if contains_placeholder(new_text) and not contains_placeholder(old_text):
            return QualityDecision(False, "New value looks like placeholder text")

        old_len = len(old_text)
        new_len = len(new_text)
        if new_len > old_len * LONGER_RATIO:
            return QualityDecision(True, f"New value is more detailed ({new_len} > {old_len} chars)")
        if new_len < old_len * SHORTER_RATIO:
            return QualityDecision(False, f"New value is significantly shorter ({new_len} < {old_len} chars)")
        return QualityDecision(False, f"Skipped: similar length ({new_len} vs {old_len} chars)")

    def _compare_numbers(self, field: str, existing: float, new: float) -> QualityDecision:
        if new == 0 and existing != 0:
            return QualityDecision(False, "New value is zero; keeping non-zero existing value")
        if existing == 0:
            return QualityDecision(True, "Replacing zero value")

        if is_monetary_field(field):
            ratio = new / existing
            if ratio < PRICE_MIN_RATIO or ratio > PRICE_MAX_RATIO:
                return QualityDecision(
                    False,
                    f"Price change outside sanity band ({existing} -> {new}, ratio {ratio:.2f})",
                )

        if new == existing:
            return QualityDecision(False, "Skipped: values are identical")
        return QualityDecision(True, f"Numeric update ({existing} -> {new})")

    def validate_scraped_data(self, data: Dict[str, Any]) -> ScrapedDataValidation:
        """
        Sanity pass over a whole scraped payload. Never blocks the merge;
        issues and warnings are only surfaced to the caller.
        """
        issues: List[str] = []
        warnings: List[str] = []

        for field, value in data.items():
            if isinstance(value, bool) or value is None:
                continue
            if isinstance(value, str):
                text = value.strip()
                if text and len(text) < MIN_STRING_LENGTH:
                    warnings.append(f"{field}: suspiciously short value '{text}'")
                if text and contains_placeholder(text):
                    issues.append(f"{field}: contains placeholder text")
            elif isinstance(value, (int, float)):
                if value == 0 and is_monetary_field(field):
                    warnings.append(f"{field}: zero value")
                if value < 0 and not any(marker in field.lower() for marker in COORDINATE_MARKERS):
                    issues.append(f"{field}: unexpected negative number ({value})")

        result = ScrapedDataValidation(valid=not issues, issues=issues, warnings=warnings)
        if issues or warnings:
            self.logger.log_decision(
                decision="scraped_data_flagged",
                reason="sanity_checks",
                issues=issues,
                warnings=warnings,
            )
        return result
