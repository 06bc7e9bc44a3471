"""JSON logging for applications that use the session handler."""
import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: int = logging.DEBUG) -> logging.Handler:
    """
    Send log records to stderr as JSON documents.

    The handler is attached to the root logger, so records from the session
    handler and from the host application end up in the same stream.

    Parameters
    ----------
    level : int
        Minimum level of the root logger.

    Returns
    -------
    :class:`logging.Handler`
        The handler that was attached, so that callers can remove it.

    """
    log_handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    log_handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(log_handler)
    logger.setLevel(level)
    return log_handler
