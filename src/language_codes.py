"""
Locale descriptors and language code utilities.

A locale has two codes that may differ:
- folder code: names the output file inside a module directory ('ph' -> 'ph.json')
- service code: the code the translation service understands ('ph' -> 'tl')

Service codes follow ISO 639-1 with the regional variants the remote
service accepts (e.g. 'zh-TW', 'fr-CA', 'pt-PT').
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

# ISO 639-1 codes used by the project's locales
ISO_639_1 = {
    'ar': 'Arabic',
    'de': 'German',
    'en': 'English',
    'es': 'Spanish',
    'fr': 'French',
    'hi': 'Hindi',
    'id': 'Indonesian',
    'it': 'Italian',
    'ja': 'Japanese',
    'ko': 'Korean',
    'ms': 'Malay',
    'nl': 'Dutch',
    'pl': 'Polish',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'th': 'Thai',
    'tl': 'Filipino (Tagalog)',
    'tr': 'Turkish',
    'uk': 'Ukrainian',
    'vi': 'Vietnamese',
    'zh': 'Chinese (Simplified)',
}

# Regional variants accepted by the translation service
REGIONAL_VARIANTS = {
    'es-MX': 'Spanish (Mexico)',
    'fr-CA': 'French (Canada)',
    'pt-PT': 'Portuguese (Portugal)',
    'zh-TW': 'Chinese (Traditional)',
}

ALL_LANGUAGE_CODES = {**ISO_639_1, **REGIONAL_VARIANTS}

# Folder codes that are not service codes themselves
FOLDER_CODE_ALIASES = {
    'ph': 'tl',
    'fil': 'tl',
    'cn': 'zh',
    'tw': 'zh-TW',
}


@dataclass(frozen=True)
class LocaleDescriptor:
    """A locale as seen by the pipeline."""
    folder_code: str
    service_code: str
    name: str = ""

    @property
    def file_name(self) -> str:
        return get_language_file_name(self.folder_code)

    def to_dict(self) -> Dict[str, str]:
        return {
            "folder_code": self.folder_code,
            "service_code": self.service_code,
            "name": self.name,
        }


def resolve_service_code(folder_code: str) -> str:
    """
    Map a folder code to the code sent to the translation service.

    Examples:
        >>> resolve_service_code('ph')
        'tl'
        >>> resolve_service_code('vi')
        'vi'
    """
    return FOLDER_CODE_ALIASES.get(folder_code, folder_code)


def get_language_name(code: str) -> Optional[str]:
    """Get the full language name from a service code, or None if unknown."""
    return ALL_LANGUAGE_CODES.get(code)


def is_valid_service_code(code: str) -> bool:
    return code in ALL_LANGUAGE_CODES


def get_language_file_name(language_code: str) -> str:
    """
    Get the expected filename for a language.

    Examples:
        >>> get_language_file_name('en')
        'en.json'
    """
    return f"{language_code}.json"


def make_locale(value: Any) -> LocaleDescriptor:
    """
    Build a LocaleDescriptor from config data.

    Accepts a descriptor, a bare folder code string, or a mapping with
    'folder_code' and optional 'service_code' and 'name'.

    Raises:
        ValueError: If no folder code can be determined
    """
    if isinstance(value, LocaleDescriptor):
        return value

    if isinstance(value, str):
        value = {"folder_code": value}

    if not isinstance(value, Mapping):
        raise ValueError(f"Invalid locale definition: {value!r}")

    folder_code = str(value.get("folder_code") or "").strip()
    if not folder_code:
        raise ValueError(f"Locale definition without folder_code: {value!r}")

    service_code = str(value.get("service_code") or "").strip() or resolve_service_code(folder_code)
    name = value.get("name") or get_language_name(service_code) or folder_code
    return LocaleDescriptor(folder_code=folder_code, service_code=service_code, name=name)
