import logging
from .constants import LOG_COLORS

class ColorFormatter(logging.Formatter):
    """
    Logging formatter that wraps the level name in ANSI colour codes.

    Console output of long simulation runs is easier to scan when warnings
    (minutes where stability could not be restored, skipped CSV rows) stand
    out from the routine progress messages:
    - INFO: Green
    - WARNING: Yellow
    - ERROR/CRITICAL: Red
    - DEBUG: Blue

    Attributes:
        COLORS (dict): Mapping from log level names to ANSI escape codes.
        RESET (str): ANSI escape code to reset color formatting.

    Examples:
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(ColorFormatter('%(levelname)s - %(message)s'))
        >>> logging.getLogger().addHandler(handler)
    """
    COLORS = LOG_COLORS

    RESET = '\033[0m'

    def format(self, record):
        """
        Formats a log record with a colourised level name.

        The record is copied first so that other handlers attached to the same
        logger (e.g. the plain file handler) still see the bare level name.

        Args:
            record (logging.LogRecord): The log record to format.

        Returns:
            str: The formatted log message.
        """
        levelname = record.levelname
        if levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        return super().format(record)

def configure_logging(level=logging.INFO, log_file=None):
    """
    Configures logging for grid_restore with colour-coded console output.

    Call it once at the start of a script, before building the engine, so the
    progress messages of the recovery run are visible.

    Args:
        level (int, optional): Logging level from the logging module.
            - logging.DEBUG (10): plant registration, every curtailment decision
            - logging.INFO (20): run start/end, loaded inputs (default)
            - logging.WARNING (30): unrecoverable stability, skipped rows
            - logging.ERROR (40): missing input files
        log_file (str, optional): Path to a file where logs are also written.
            Defaults to None (console only).

    Side Effects:
        Configures the root logger with handlers and formatters.

    Examples:
        >>> import logging
        >>> from grid_restore import configure_logging
        >>> configure_logging(level=logging.DEBUG, log_file='grid_restore_run.log')
    """
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColorFormatter('%(asctime)s - %(levelname)s - %(message)s'))
    handlers = [console_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True
    )
