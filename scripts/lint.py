#!/usr/bin/env python3
"""
Run the gateway's code checks (flake8, mypy, black) or reformat in place.

    python scripts/lint.py            # check only
    python scripts/lint.py --fix      # black, then check
    python scripts/lint.py --format   # black only
"""
import argparse
import logging
import subprocess
import sys
from pathlib import Path

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("github-gateway-lint")

ROOT_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_DIRS = [ROOT_DIR / "src", ROOT_DIR / "tests", ROOT_DIR / "scripts"]

CHECKS = [
    ("Flake8 linting", ["flake8", "--max-line-length", "100"]),
    ("Mypy type checking", ["mypy", "--explicit-package-bases", "--ignore-missing-imports"]),
    ("Black format checking", ["black", "--check"]),
]


def python_files(dirs):
    """Collect .py files under the given directories, skipping caches"""
    files = []
    for directory in dirs:
        if not directory.exists():
            logger.warning(f"Skipping missing directory {directory}")
            continue
        files.extend(
            path
            for path in sorted(directory.rglob("*.py"))
            if "__pycache__" not in path.parts
        )
    return files


def run_tool(description, cmd, files):
    logger.info(f"{description}...")
    result = subprocess.run(
        cmd + [str(f) for f in files], capture_output=True, text=True
    )
    if result.returncode == 0:
        logger.info(f"✅ {description} passed")
        return True

    logger.error(f"❌ {description} failed")
    for output in (result.stdout, result.stderr):
        if output:
            logger.error(output)
    return False


def main(argv=None):
    parser = argparse.ArgumentParser(description="Lint the GitHub gateway codebase.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--fix", action="store_true", help="Run black before checking")
    mode.add_argument("--format", action="store_true", help="Only run black")
    parser.add_argument("--dirs", nargs="+", help="Directories to check")
    args = parser.parse_args(argv)

    dirs = [Path(d).absolute() for d in args.dirs] if args.dirs else DEFAULT_DIRS
    files = python_files(dirs)
    logger.info(f"Found {len(files)} Python files")
    if not files:
        return 0

    if args.fix or args.format:
        formatted = run_tool("Black formatting", ["black"], files)
        if args.format:
            return 0 if formatted else 1

    results = [run_tool(description, cmd, files) for description, cmd in CHECKS]
    if all(results):
        logger.info("✅ All checks passed")
        return 0

    logger.error("❌ Some checks failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
