import logging

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process or the worker."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
