"""
Bundle file reader and writer.

This module handles the local file side of a run:
- Reading source bundles
- Atomic writing of translated bundles
- Job directory layout
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from src.exceptions import ReadError, WriteError
from src.language_codes import get_language_file_name
from src.logger import get_logger

logger = get_logger(__name__)

JOB_DIR_FORMAT = "%Y-%m-%d_%H-%M-%S"


def job_folder_name(moment: datetime) -> str:
    """
    Timestamp folder name for a run.

    Example:
        >>> job_folder_name(datetime(2024, 3, 5, 9, 7, 1))
        '2024-03-05_09-07-01'
    """
    return moment.strftime(JOB_DIR_FORMAT)


def bundle_output_path(job_dir: Path, module_name: str, folder_code: str) -> Path:
    return Path(job_dir) / module_name / get_language_file_name(folder_code)


def read_bundle(file_path: Path) -> Dict[str, Any]:
    """
    Read a source bundle.

    Raises:
        ReadError: If the file is missing, unreadable or not a JSON object
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ReadError(f"Cannot read {file_path}: file not found", path=str(file_path)) from e
    except json.JSONDecodeError as e:
        raise ReadError(f"Cannot parse {file_path}: {e}", path=str(file_path)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ReadError(f"Cannot read {file_path}: {e}", path=str(file_path)) from e

    if not isinstance(data, dict):
        raise ReadError(f"{file_path} does not contain a JSON object", path=str(file_path))
    return data


def write_bundle(file_path: Path, data: Dict[str, Any]) -> Path:
    """
    Write a bundle as indented UTF-8 JSON, atomically.

    Writes to a temporary file in the target directory first, then renames
    it over the target, so the file is never left partially written.

    Raises:
        WriteError: If the write fails
    """
    file_path = Path(file_path)
    temp_path = None
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_name = tempfile.mkstemp(
            dir=file_path.parent,
            prefix=f".{file_path.stem}_",
            suffix=".json.tmp"
        )
        temp_path = Path(temp_name)

        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")

        temp_path.replace(file_path)
        logger.debug(f"Wrote {file_path}")
        return file_path

    except (OSError, TypeError, ValueError) as e:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.warning(f"Could not remove temporary file {temp_path}")
        raise WriteError(f"Failed to write {file_path}: {e}", path=str(file_path)) from e


def ensure_job_dir(output_root: Path, folder_name: str) -> Path:
    """
    Create the job directory for a run.

    Raises:
        WriteError: If the directory cannot be created
    """
    job_dir = Path(output_root) / folder_name
    try:
        job_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteError(f"Cannot create job directory {job_dir}: {e}", path=str(job_dir)) from e
    return job_dir
