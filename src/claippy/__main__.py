"""Entry point: claippy [command] [args...]

- No args / "repl": Interactive REPL
- Any other command: one-shot, same command table as the REPL's !commands
"""

from __future__ import annotations

import logging
import sys

from claippy.commands import emit, prepare
from claippy.config import load_config
from claippy.errors import ClaippyError

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def run(argv: list[str]) -> int:
    """Run one CLI invocation and return its exit code."""
    try:
        config = load_config()
    except ClaippyError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    _setup_logging(config.log_level)

    from claippy.core import Claippy

    if not argv:
        name, args = "repl", []
    elif argv[0] in ("-h", "--help"):
        name, args = "help", []
    else:
        name, args = argv[0], argv[1:]
    logger.info("Command: %s %r", name, args)

    try:
        action = prepare(name, args)
        emit(action(Claippy(config)), sys.stdout)
    except ClaippyError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130
    return 0


def main() -> None:
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
