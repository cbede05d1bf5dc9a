import argparse
import json
import logging
import sys

from vulnpath.__version__ import __version__
from vulnpath.collectors import STEP_NAMES
from vulnpath.collectors.base import CollectorError
from vulnpath.core.loader import LoadError, write_report
from vulnpath.libraries import VERSIONS_TO_DOWNLOAD, download_libraries
from vulnpath.pipeline import build_report, run_pipeline


def setup_logging(level: str, log_file: str) -> None:
    logging.basicConfig(
        filename=log_file or None,
        level=getattr(logging, level.upper(), logging.INFO),
        filemode="w",
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vulnpath",
        description="Find and rank dependency paths leading to vulnerable packages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR (default: INFO)")
    parser.add_argument("--log-file", default="debug.log", help="Log destination, empty for stderr (default: debug.log)")

    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Download recent versions of the libraries listed in a CSV file")
    fetch.add_argument("csv_path", help="CSV file with a library_name column")
    fetch.add_argument("-d", "--dest", default="libraries_to_scan", help="Download directory (default: libraries_to_scan)")
    fetch.add_argument("-n", "--versions", type=int, default=VERSIONS_TO_DOWNLOAD, help="Most recent versions per library (default: 10)")

    scan = sub.add_parser("scan", help="Run the full pipeline over <projects_dir>/<project>/<version>/")
    scan.add_argument("projects_dir")
    scan.add_argument("-o", "--output", default="output", help="Base output directory (default: output)")
    scan.add_argument("--steps", nargs="+", choices=STEP_NAMES, help="Only run these collector steps")
    scan.add_argument("--no-install", action="store_true", help="Skip npm install and npm dedupe")
    scan.add_argument("--eager-seed", action="store_true", help="Seed the traversal with every tree path")

    paths = sub.add_parser("paths", help="Construct the path report from documents already in a directory")
    paths.add_argument("output_dir")
    paths.add_argument("--eager-seed", action="store_true", help="Seed the traversal with every tree path")
    paths.add_argument("--stdout", action="store_true", help="Print the report instead of writing it")

    view = sub.add_parser("view", help="Browse a report in the terminal")
    view.add_argument("report")

    return parser


def main(argv=None) -> int:
    """ Entrypoint when is installed via pip """
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        if args.command == "fetch":
            download_libraries(args.csv_path, args.dest, args.versions)
        elif args.command == "scan":
            run_pipeline(
                args.projects_dir,
                args.output,
                steps=args.steps,
                install=not args.no_install,
                eager_seed=args.eager_seed,
            )
        elif args.command == "paths":
            report = build_report(args.output_dir, eager_seed=args.eager_seed)
            if args.stdout:
                print(json.dumps(report.to_dict(), indent=2))
            else:
                print(write_report(report, args.output_dir))
        elif args.command == "view":
            from vulnpath.app import ReportApp

            ReportApp(args.report).run()
    except (LoadError, CollectorError, OSError) as e:
        logging.error(f"Fatal: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


# Development mode
if __name__ == "__main__":
    sys.exit(main())
