import logging
import sys


def enable_logging(level: int = logging.INFO):
    """
    Enable logging for the view generator.

    Logs go to stderr so that ``--dry-run`` output on stdout stays plain SQL.

    Args:
        level: Logging level (default INFO)
    """
    logger = logging.getLogger("FirestoreViews")
    logger.setLevel(level)

    # Calling again only changes the level
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '%(name)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(handler)
