"""
Translation utility functions for flatten/unflatten, placeholders and batch records.
Provides capabilities for processing nested JSON resource bundles.
"""

import json
import re
from typing import Any, Dict, List, Set

# {name} interpolation tokens; nested braces are not placeholders
PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")


def flatten_json(obj: Any, path: str = "", flat: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Flatten a nested JSON bundle into dotted key paths.

    Lists are leaves and are never recursed into. A non-dict bundle
    flattens to an empty mapping.

    Args:
        obj: JSON object to flatten
        path: Current key path
        flat: Accumulator dict (created if None)

    Returns:
        Dict of key_path -> leaf value, in document order

    Example:
        >>> flatten_json({"home": {"title": "Hello"}})
        {'home.title': 'Hello'}
    """
    if flat is None:
        flat = {}

    if not isinstance(obj, dict):
        return flat

    for key, value in obj.items():
        new_path = f"{path}.{key}" if path else str(key)
        if isinstance(value, dict):
            flatten_json(value, new_path, flat)
        else:
            flat[new_path] = value

    return flat


def unflatten_json(flat: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
    """
    Rebuild a nested bundle from dotted key paths.

    When one key is a strict prefix of another ("a" and "a.b"), the later
    entry wins on the shared node. With strict=True such a conflict raises
    instead.

    Args:
        flat: Dict of key_path -> value
        strict: Reject keys that are both a leaf and a prefix

    Returns:
        Nested dictionary

    Raises:
        ValueError: On a leaf/prefix conflict when strict is set

    Example:
        >>> unflatten_json({"home.title": "Hello"})
        {'home': {'title': 'Hello'}}
    """
    result: Dict[str, Any] = {}

    for path, value in flat.items():
        keys = path.split('.')
        node = result

        for key in keys[:-1]:
            if key not in node:
                node[key] = {}
            elif not isinstance(node[key], dict):
                if strict:
                    raise ValueError(f"Key '{path}' conflicts with leaf at '{key}'")
                node[key] = {}
            node = node[key]

        leaf = keys[-1]
        if strict and isinstance(node.get(leaf), dict):
            raise ValueError(f"Key '{path}' conflicts with nested keys below it")
        node[leaf] = value

    return result


def extract_placeholders(value: Any) -> Set[str]:
    """
    Extract placeholder names from a value.

    Examples:
        >>> sorted(extract_placeholders("Hello {name}, you have {n} items"))
        ['n', 'name']
        >>> extract_placeholders(42)
        set()
    """
    if not isinstance(value, str):
        return set()
    return set(PLACEHOLDER_PATTERN.findall(value))


def is_translatable(value: Any) -> bool:
    """Only strings with visible text are sent for translation."""
    return isinstance(value, str) and bool(value.strip())


def build_records(flat: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Project a flat bundle to the ordered {key, text} records sent for translation.

    Lists, numbers, booleans, null and blank strings are left out; they are
    copied into the target bundle unchanged.
    """
    return [{"key": key, "text": text} for key, text in flat.items() if is_translatable(text)]


def records_to_jsonl(records: List[Dict[str, Any]]) -> str:
    """Serialize records as one JSON object per line."""
    return "\n".join(json.dumps(record, ensure_ascii=False) for record in records)


def parse_result_lines(text: str) -> List[Dict[str, Any]]:
    """
    Parse batch output into records, in file order.

    Each line is either a JSON object or a raw translated string. JSON
    strings are unwrapped; raw lines and other scalars become {"text": line}.
    """
    if not text or not text.strip():
        return []

    records = []
    for line in text.strip().splitlines():
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            records.append({"text": line})
            continue
        if isinstance(parsed, dict):
            records.append(parsed)
        elif isinstance(parsed, str):
            records.append({"text": parsed})
        else:
            records.append({"text": line})
    return records


def record_text(record: Any) -> str:
    """Translated text carried by a result record."""
    if isinstance(record, dict):
        value = record.get("text")
    else:
        value = record
    if isinstance(value, str):
        return value
    return "" if value is None else str(value)
