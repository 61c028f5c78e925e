"""
Translation Validation Module

Checks a translated bundle against its source before it is written:
- Key parity (missing and extra keys)
- Placeholder parity per shared key
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from src.logger import get_logger
from src.translation.utils import extract_placeholders

logger = get_logger(__name__)


@dataclass
class ValidationReport:
    """Outcome of comparing a translated flat bundle with its source."""
    ok: bool
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def error_of_type(self, error_type: str) -> Dict[str, Any]:
        """Return the error entry of a given type, or an empty dict."""
        for error in self.errors:
            if error.get("type") == error_type:
                return error
        return {}

    @property
    def missing_keys(self) -> List[str]:
        return self.error_of_type("missing_keys").get("keys", [])

    @property
    def extra_keys(self) -> List[str]:
        return self.error_of_type("extra_keys").get("keys", [])

    @property
    def placeholder_mismatches(self) -> List[Dict[str, Any]]:
        return self.error_of_type("placeholder_mismatch").get("items", [])


def diff_keys_and_placeholders(source_flat: Dict[str, Any], target_flat: Dict[str, Any]) -> ValidationReport:
    """
    Compare key sets and placeholder names of two flat bundles.

    Args:
        source_flat: Flattened source bundle
        target_flat: Flattened translated bundle

    Returns:
        ValidationReport; ok is True only when there are no missing keys,
        no extra keys and no placeholder mismatches.

    Example:
        >>> diff_keys_and_placeholders({"a.b": "Hi {x}"}, {"a.b": "Hola"}).errors
        [{'type': 'placeholder_mismatch', 'items': [{'key': 'a.b', 'missing_placeholders': ['x'], 'extra_placeholders': []}]}]
    """
    missing = [key for key in source_flat if key not in target_flat]
    extra = [key for key in target_flat if key not in source_flat]

    placeholder_diffs = []
    for key, source_value in source_flat.items():
        if key not in target_flat:
            continue
        source_placeholders = extract_placeholders(source_value)
        target_placeholders = extract_placeholders(target_flat[key])
        missing_placeholders = sorted(source_placeholders - target_placeholders)
        extra_placeholders = sorted(target_placeholders - source_placeholders)
        if missing_placeholders or extra_placeholders:
            placeholder_diffs.append({
                "key": key,
                "missing_placeholders": missing_placeholders,
                "extra_placeholders": extra_placeholders,
            })

    errors = []
    if missing:
        errors.append({"type": "missing_keys", "keys": missing})
    if extra:
        errors.append({"type": "extra_keys", "keys": extra})
    if placeholder_diffs:
        errors.append({"type": "placeholder_mismatch", "items": placeholder_diffs})

    if errors:
        logger.debug(
            f"Validation found {len(missing)} missing, {len(extra)} extra, "
            f"{len(placeholder_diffs)} placeholder mismatches"
        )

    return ValidationReport(ok=not errors, errors=errors)
