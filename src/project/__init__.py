"""
Project module - Local file side of a run

This module provides:
- scanner: Base directory and module discovery
- generator: Source bundle reading and translated bundle writing
"""

from src.project.scanner import (
    ModuleInfo,
    discover_modules,
    find_base_dirs,
    scan_modules,
    seed_demo_modules,
)

from src.project.generator import (
    bundle_output_path,
    ensure_job_dir,
    job_folder_name,
    read_bundle,
    write_bundle,
)
