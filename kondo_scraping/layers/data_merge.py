"""
Data Merge Layer.
Reconciles a scraped payload against the trusted existing listing using the
protected-field policy and the quality rules.
"""
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from kondo_scraping.layers.data_quality import DataQualityValidator, is_empty
from kondo_scraping.models.listing import PIPELINE_ONLY_FIELDS, ScrapedFields
from kondo_scraping.models.scraping import (
    FieldChange,
    FieldRejection,
    MergeResult,
    ProtectedFieldConfig,
    ProtectionMode,
)
from kondo_scraping.utils.logger import LayerLogger


ProtectedFieldEntry = Union[str, Mapping[str, Any], ProtectedFieldConfig]


class DataMergeService:
    """Every scraped field ends up either in `accepted` or in `rejected`, with a reason."""

    def __init__(self, validator: Optional[DataQualityValidator] = None):
        self.validator = validator or DataQualityValidator()
        self.logger = LayerLogger("data_merge")

    @staticmethod
    def build_protection_map(protected_fields: Optional[Sequence[ProtectedFieldEntry]]) -> Dict[str, ProtectionMode]:
        """
        Normalise the configured list. A bare string protects the field
        completely (mode "never"). Entries with an unknown mode raise
        ValueError when the policy is built, not during a merge.
        """
        protection: Dict[str, ProtectionMode] = {}
        for entry in protected_fields or []:
            if isinstance(entry, str):
                protection[entry] = ProtectionMode.NEVER
            elif isinstance(entry, ProtectedFieldConfig):
                protection[entry.field] = entry.mode
            else:
                parsed = ProtectedFieldConfig(**dict(entry))
                protection[parsed.field] = parsed.mode
        return protection

    def merge_data(
        self,
        existing: Mapping[str, Any],
        scraped: Union[ScrapedFields, Mapping[str, Any]],
        protected_fields: Optional[Sequence[ProtectedFieldEntry]] = None,
    ) -> MergeResult:
        """
        Args:
            existing: Current listing values
            scraped: ScrapedFields or a plain mapping of scraped values
            protected_fields: Strings or {field, mode} entries

        Returns:
            MergeResult with updates, accepted changes and rejections
        """
        protection = self.build_protection_map(protected_fields)
        if isinstance(scraped, ScrapedFields):
            values = scraped.field_values()
        else:
            values = {k: v for k, v in scraped.items() if k not in PIPELINE_ONLY_FIELDS}

        result = MergeResult()
        for field, new_value in values.items():
            existing_value = existing.get(field)
            accepted, reason = self._decide(field, existing_value, new_value, protection.get(field))

            if accepted:
                result.updates[field] = new_value
                result.accepted.append(
                    FieldChange(field=field, reason=reason, old_value=existing_value, new_value=new_value)
                )
            else:
                result.rejected.append(
                    FieldRejection(
                        field=field,
                        reason=reason,
                        existing_value=existing_value,
                        attempted_value=new_value,
                    )
                )
                self.logger.log_rejection(field, reason)

        self.logger.log_action(
            "merge_data",
            "completed",
            fields_considered=len(values),
            accepted=[change.field for change in result.accepted],
            rejected=len(result.rejected),
        )
        return result

    def _decide(self, field: str, existing: Any, new: Any, mode: Optional[ProtectionMode]):
        if mode == ProtectionMode.NEVER:
            return False, "Protected field (never overwrite)"
        if mode == ProtectionMode.IF_EMPTY:
            if not is_empty(existing):
                return False, "Protected field (if-empty): existing value present"
            if is_empty(new):
                return False, "Protected field (if-empty): new value is empty"
            return True, "Protected field (if-empty): filling empty field"

        decision = self.validator.should_overwrite(field, existing, new)
        return decision.should_overwrite, decision.reason
