'''
Universal Logger logic for all the worker. it will print into terminal and a seperate log_file.log
'''
import logging
import sys
from pathlib import Path

class DirectoryFormatter(logging.Formatter):
    def format(self, record):
        # Tag each record with the package folder it came from (core, apis, ...)
        if getattr(record, 'pathname', None):
            record.directory = Path(record.pathname).parent.name
        else:
            record.directory = 'Unknown'

        return super().format(record)

logger = logging.getLogger('lesson-reminders')
logger.setLevel(logging.INFO)

formatter = DirectoryFormatter(
    '%(asctime)s - %(name)s - %(directory)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

file_handler = logging.FileHandler('log_file.log')
file_handler.setLevel(logging.INFO)
file_handler.setFormatter(formatter)

stream_handler = logging.StreamHandler(sys.stdout)
stream_handler.setFormatter(formatter)

if not logger.handlers:
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
