import logging
import os
from logging.handlers import RotatingFileHandler


def logs_directory(environ=os.environ):
    return environ.get('SHOWTERM_LOGS_DIR') or environ.get('LOGS_DIR', '/tmp/showterm_logs')


def setup_logging(service_name="showterm", log_level=logging.INFO, console_level=logging.WARNING,
                  logs_dir=None):
    """
    Set up logging for showterm

    Everything goes to a rotating file; only warnings reach the console so the
    recorded terminal is not cluttered.
    """
    logs_dir = logs_dir or logs_directory()
    os.makedirs(logs_dir, exist_ok=True)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)

    # Prevent adding multiple handlers if logger already has handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    log_file = os.path.join(logs_dir, f"{service_name}.log")
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
