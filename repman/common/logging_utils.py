"""
Logging utilities for repman
"""

import logging
import sys


def setup_logging(debug_mode=False, log_file=None):
    """Setup logging configuration"""
    level = logging.DEBUG if debug_mode else logging.INFO

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='[%(asctime)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers,
        force=True,
    )

    # urllib3 connection chatter drowns the useful debug output
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


def log_tool_failure(logger, output, max_lines=200):
    """Log the tail of a failed tool's output, one line per record"""
    if not output:
        return
    lines = output.splitlines()
    if len(lines) > max_lines:
        logger.error(f"--- last {max_lines} of {len(lines)} lines ---")
        lines = lines[-max_lines:]
    for line in lines:
        logger.error(f"  {line}")
