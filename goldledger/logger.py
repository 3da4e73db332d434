# goldledger/logger.py

import logging
from logging.handlers import RotatingFileHandler
import os

LOG_FORMAT = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'


def setup_logger(app):
    # app.logger is the "goldledger" logger, so goldledger.store and
    # goldledger.exports propagate into these handlers
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    formatter = logging.Formatter(LOG_FORMAT)

    # create_app may run more than once per process (tests, CLI)
    for handler in list(app.logger.handlers):
        if getattr(handler, '_goldledger', False):
            app.logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    stream_handler._goldledger = True
    app.logger.addHandler(stream_handler)

    if app.config.get('LOG_TO_FILE', False):
        log_dir = app.config['LOG_DIR']
        os.makedirs(log_dir, exist_ok=True)

        log_file = os.path.join(log_dir, 'app.log')
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        file_handler._goldledger = True
        app.logger.addHandler(file_handler)

    app.logger.setLevel(level)
