"""
Module scanner for i18n resource trees.

This module provides utilities to:
- Find the i18n base directories to scan
- Detect module directories that hold a source-locale bundle
- Seed demo modules for dry runs
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from src.exceptions import DiscoveryError
from src.language_codes import get_language_file_name
from src.logger import get_logger

logger = get_logger(__name__)

# Base directory names tried in the working directory
DEFAULT_BASE_DIR_NAMES = ("i18n", "18n")

DEMO_BUNDLE = {
    "auth": {"login": {"title": "Login to Your Account", "button": "Login"}},
    "dashboard": {
        "page": {"title": "Dashboard"},
        "messages": {"welcome": "Welcome, {0}!"},
    },
    "profile": {
        "header": {"title": "Profile"},
        "action": {"save": "Save changes"},
    },
}
DEMO_MODULES = ("dashboard", "profile")


@dataclass(frozen=True)
class ModuleInfo:
    """A module directory with its source-locale bundle."""
    module_name: str
    module_dir: Path
    source_file: Path
    base_dir: Path


def find_base_dirs(explicit_base_dir: Optional[Path] = None, cwd: Optional[Path] = None) -> List[Path]:
    """
    Return the existing i18n base directories, explicit one first.

    Args:
        explicit_base_dir: Configured base directory, if any
        cwd: Directory holding the default candidates (current directory if None)

    Returns:
        Existing directories without duplicates, in search order
    """
    root = cwd or Path.cwd()
    candidates = []
    if explicit_base_dir:
        candidates.append(Path(explicit_base_dir))
    candidates.extend(root / name for name in DEFAULT_BASE_DIR_NAMES)

    existing: List[Path] = []
    seen = set()
    for candidate in candidates:
        if not candidate.is_dir():
            continue
        resolved = candidate.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        existing.append(candidate)
    return existing


def scan_modules(base_dir: Path, source_code: str = "en") -> List[ModuleInfo]:
    """
    Find immediate subdirectories of base_dir that contain <source_code>.json.

    Modules are returned sorted by name so runs are reproducible.
    """
    file_name = get_language_file_name(source_code)
    modules = []
    for entry in sorted(base_dir.iterdir(), key=lambda p: p.name):
        if not entry.is_dir():
            continue
        source_file = entry / file_name
        if source_file.is_file():
            modules.append(ModuleInfo(
                module_name=entry.name,
                module_dir=entry,
                source_file=source_file,
                base_dir=base_dir,
            ))
        else:
            logger.debug(f"Skipping {entry}: no {file_name}")
    return modules


def discover_modules(
    explicit_base_dir: Optional[Path] = None,
    source_code: str = "en",
    cwd: Optional[Path] = None,
    seed_demo: bool = False,
) -> List[ModuleInfo]:
    """
    Discover every module across all base directories.

    Raises:
        DiscoveryError: If no base directory exists. Existing base
            directories without modules return an empty list.
    """
    base_dirs = find_base_dirs(explicit_base_dir, cwd)
    if not base_dirs:
        root = cwd or Path.cwd()
        candidates = [str(explicit_base_dir)] if explicit_base_dir else []
        candidates += [str(root / name) for name in DEFAULT_BASE_DIR_NAMES]
        raise DiscoveryError("No i18n/18n base directory found", candidates=candidates)

    found: List[ModuleInfo] = []
    for base_dir in base_dirs:
        if seed_demo:
            seed_demo_modules(base_dir, source_code)
        found.extend(scan_modules(base_dir, source_code))

    logger.info(f"Found {len(found)} module(s) with {get_language_file_name(source_code)} in {len(base_dirs)} base dir(s)")
    return found


def seed_demo_modules(base_dir: Path, source_code: str = "en") -> List[Path]:
    """Write the demo bundle into the demo module directories of base_dir."""
    written = []
    for module_name in DEMO_MODULES:
        module_dir = base_dir / module_name
        module_dir.mkdir(parents=True, exist_ok=True)
        target = module_dir / get_language_file_name(source_code)
        with open(target, 'w', encoding='utf-8') as f:
            json.dump(DEMO_BUNDLE, f, indent=2, ensure_ascii=False)
        written.append(target)
    logger.info(f"Seeded demo modules in {base_dir}: {', '.join(DEMO_MODULES)}")
    return written
