import logging

from lnfaucet.settings import LogLevel

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# every daemon round trip is logged by these at INFO
TRANSPORT_LOGGERS = ("httpx", "httpcore")


class LoggerSetup:
    def __init__(self, log_level: LogLevel):
        self.log_level = LogLevel(log_level)

    def setup_logging(self):
        logging.basicConfig(
            format=LOG_FORMAT,
            level=getattr(logging, self.log_level.value, logging.INFO),
        )
        for name in TRANSPORT_LOGGERS:
            logging.getLogger(name).setLevel(logging.ERROR)
