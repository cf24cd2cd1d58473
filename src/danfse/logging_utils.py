import logging
from typing import Optional


class CustomFormatter(logging.Formatter):
    """Custom formatter to remove the project name from the logger name."""

    def format(self, record):
        if record.name.startswith('danfse'):
            record.name = record.name[len('danfse'):]
            if record.name.startswith('.'):
                record.name = record.name[1:]
        return super().format(record)


def setup_logging(verbose: bool, level: Optional[int] = None):
    """Set up logging for the application.

    ``level`` wins over ``verbose`` when given. Calling this again replaces
    the handler installed by the previous call.
    """
    if level is None:
        level = logging.DEBUG if verbose else logging.INFO
    formatter = CustomFormatter('%(levelname)s:%(name)s:%(message)s')
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger('danfse')
    root_logger.setLevel(level)
    for old_handler in list(root_logger.handlers):
        root_logger.removeHandler(old_handler)
    root_logger.addHandler(handler)
    # Prevent propagation to the root logger to avoid duplicate messages
    root_logger.propagate = False
