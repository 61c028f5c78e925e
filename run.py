"""Project root entry point for running the pipeline or launching the web interface."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _bootstrap_path() -> None:
    """Ensure the project root is importable so `src.*` resolves."""
    project_root = Path(__file__).resolve().parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bulk i18n translation runner")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Translate every module into every target locale")
    run_parser.add_argument("--base-dir", help="i18n base directory (default: ./i18n, ./18n)")
    run_parser.add_argument("--output-root", help="Directory that receives the job folder")
    run_parser.add_argument("--force-fallback", action="store_true", default=None,
                            help="Skip batch jobs and translate string by string")

    serve_parser = sub.add_parser("serve", help="Start the web interface")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=5500)
    serve_parser.add_argument("--debug", action="store_true")

    init_parser = sub.add_parser("init-config", help="Write config/config.json with default settings")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing config file")

    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in sub.choices and argv[0] not in ("-h", "--help"):
        argv = ["run"] + argv
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    from src.config import RunnerSettings
    from src.exceptions import TranslationError
    from src.translation.events import LoggingEventSink
    from src.translation.manager import TranslationRunner

    try:
        settings = RunnerSettings.from_config(
            i18n_base_dir=args.base_dir,
            output_root=args.output_root,
            force_fallback=args.force_fallback,
        )
        runner = TranslationRunner(settings=settings, sink=LoggingEventSink())
        job_dir = runner.run_pipeline()
    except TranslationError as e:
        print(f"❌ Translation job failed: {e}", file=sys.stderr)
        return 1

    summary = runner.summary
    print(f"✅ Translation job completed. Output at: {job_dir}")
    print(f"   {len(summary.succeeded)} succeeded, {len(summary.failed)} failed")
    return 0


def serve(args: argparse.Namespace) -> int:
    from src.web import create_app

    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def init_config(args: argparse.Namespace) -> int:
    from src.config import CONFIG_FILE, create_default_config

    if create_default_config(overwrite=args.force):
        print(f"✅ Wrote default configuration to {CONFIG_FILE}")
    else:
        print(f"Config file already exists: {CONFIG_FILE} (use --force to overwrite)")
    return 0


def main(argv=None) -> int:
    _bootstrap_path()
    args = _parse_args(argv)
    if args.command == "serve":
        return serve(args)
    if args.command == "init-config":
        return init_config(args)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
