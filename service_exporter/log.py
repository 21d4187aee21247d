"""Logging setup and console formatting helpers."""
import logging

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


class SafeUnicodeFilter(logging.Filter):
    """Filter to sanitize log messages containing surrogate characters.

    kubectl stderr and API error bodies can carry undecodable bytes that end up
    as surrogates (U+D800 to U+DFFF), which raise UnicodeEncodeError when a
    handler writes them as UTF-8.
    """

    def filter(self, record):
        """Sanitize the log message to handle surrogate characters."""
        if isinstance(record.msg, str):
            record.msg = _sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(_sanitize(arg) if isinstance(arg, str) else arg for arg in record.args)

        return True


def _sanitize(text):
    try:
        text.encode('utf-8')
        return text
    except UnicodeEncodeError:
        return text.encode('utf-8', errors='replace').decode('utf-8')


def configure_logging(level="INFO"):
    """
    Configure root logging for the CLI.

    Args:
        level: Log level name (e.g. 'INFO', 'DEBUG')
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    safe_filter = SafeUnicodeFilter()

    # Logger filters only see records logged directly on that logger, so the
    # root handlers carry the filter too for records propagated from modules.
    logging.root.addFilter(safe_filter)
    for handler in logging.root.handlers:
        handler.addFilter(safe_filter)

    for logger_name in logging.Logger.manager.loggerDict:
        logger_obj = logging.getLogger(logger_name)
        if isinstance(logger_obj, logging.Logger):
            logger_obj.addFilter(safe_filter)


def print_section_header(title, verbose=True):
    """
    Print a formatted section header.

    Args:
        title: Section title
        verbose: Whether to print (default: True)
    """
    if verbose:
        logger.info("=" * len(title))
        logger.info(title)
        logger.info("=" * len(title))
