import logging
from pathlib import Path


def get_logger(filename, level="INFO"):
    logger = logging.getLogger(Path(filename).name)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(level)

    return logger


def add_argument(parser, short_option="-L", long_option="--log-level", default_level="INFO"):
    parser.add_argument(short_option, long_option, default=default_level,
                        help="Log level: DEBUG, INFO, WARNING, ERROR or CRITICAL")


class LoggerSink:
    """
    The host's status channel: free-text log, errors, a status line and
    a progress fraction. Forwards everything to a `logging.Logger`.
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger("trackmate_mars")
        self.progress = 0.0
        self.status = ""

    def log(self, message):
        self.logger.info(message.rstrip("\n"))

    def warn(self, message):
        self.logger.warning(message.rstrip("\n"))

    def error(self, message):
        self.logger.error(message.rstrip("\n"))

    def set_status(self, status):
        self.status = status
        if status:
            self.logger.debug("status: %s", status)

    def set_progress(self, fraction):
        self.progress = float(fraction)
        self.logger.debug("progress: %.3f", self.progress)


class RecordingLogger(LoggerSink):
    """Sink that also keeps every message, for hosts that display them later."""

    def __init__(self, logger=None):
        super().__init__(logger)
        self.messages = []
        self.errors = []
        self.progress_history = []

    def log(self, message):
        self.messages.append(message)
        super().log(message)

    def warn(self, message):
        self.messages.append(message)
        super().warn(message)

    def error(self, message):
        self.errors.append(message)
        super().error(message)

    def set_progress(self, fraction):
        super().set_progress(fraction)
        self.progress_history.append(self.progress)
