import logging
import sys


def configure_logging(log_level: str = "info") -> None:
    """Configure the root logger for a worker process."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        stream=sys.stdout,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "botocore",
        "boto3",
        "s3transfer",
        "urllib3.connectionpool",
        "sqlalchemy.engine",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
