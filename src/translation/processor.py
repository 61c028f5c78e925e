"""
Translation Processing Module

Contains the two translation strategies used for a module/locale pair:
- Batch: results of a remote job mapped back onto the source keys
- Fallback: one synchronous call per key, in source order
"""

from typing import Any, Callable, Dict, List, Optional

from src.exceptions import NoResultsError
from src.logger import get_logger
from src.translation.utils import record_text

logger = get_logger(__name__)


def map_batch_results(records: List[Dict[str, Any]], results: List[Any]) -> Dict[str, str]:
    """
    Attach batch results to source keys by position.

    The remote job is trusted to keep line order. That trust is checked
    where possible: the result count must match, and a result line that
    carries its own "key" must name the source key at the same position.

    Args:
        records: Ordered {key, text} records that were staged
        results: Parsed result lines, in file order

    Returns:
        Dict of key_path -> translated text, in source order

    Raises:
        NoResultsError: If the results cannot be matched to the source keys
    """
    if len(results) != len(records):
        raise NoResultsError(
            f"Batch returned {len(results)} line(s) for {len(records)} key(s)",
            details={"expected": len(records), "received": len(results)},
        )

    translated: Dict[str, str] = {}
    for index, (record, result) in enumerate(zip(records, results)):
        key = record["key"]
        if isinstance(result, dict) and "key" in result and result["key"] != key:
            raise NoResultsError(
                f"Batch line {index + 1} is for '{result['key']}', expected '{key}'",
                details={"line": index + 1, "expected": key, "received": result["key"]},
            )
        translated[key] = record_text(result)
    return translated


def translate_per_string(
    records: List[Dict[str, Any]],
    translate_one: Callable[[Any, str], str],
    target_code: str,
    on_item: Optional[Callable[[int, str], None]] = None,
) -> Dict[str, str]:
    """
    Translate records one by one, strictly in source order.

    Any error from translate_one propagates and fails the pair.

    Args:
        records: Ordered {key, text} records
        translate_one: Callable translating (text, target_code) -> text
        target_code: Service language code
        on_item: Optional callback(index, key) after each translated key

    Returns:
        Dict of key_path -> translated text, in source order
    """
    translated: Dict[str, str] = {}
    for index, record in enumerate(records):
        key = record["key"]
        translated[key] = translate_one(record["text"], target_code)
        if on_item:
            on_item(index, key)
    logger.debug(f"Translated {len(translated)} string(s) to {target_code} one by one")
    return translated


def merge_translations(flat_source: Dict[str, Any], translated: Dict[str, str]) -> Dict[str, Any]:
    """
    Build the target flat bundle in source key order.

    Keys that were not sent for translation keep their source value, so
    lists, numbers, booleans and null come through unchanged whichever
    strategy produced the translations.
    """
    return {key: translated.get(key, value) for key, value in flat_source.items()}
