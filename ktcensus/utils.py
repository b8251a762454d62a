"""Common utility functions."""

import logging
import os.path
from typing import Hashable, List, Sequence, TypeVar


def get_logger():
    """
    Return a logger configured for use by ktcensus modules.
    """
    logger = logging.getLogger('ktcensus')
    logger_handler = logging.StreamHandler()
    logger.addHandler(logger_handler)
    logger_formatter = logging.Formatter('%(asctime)s - %(levelname)s: %(message)s',
                                         '%Y-%m-%d %H:%M:%S')
    logger_handler.setFormatter(logger_formatter)
    logger.setLevel(logging.INFO)
    return logger


logger = get_logger()
"""`logging.Logger` object that ktcensus logs events to during census runs.

Can be used to customize logging:

```python
import logging
from ktcensus import logger

logger.setLevel(logging.ERROR)
```
"""


def noop(*args, **kwargs):
    """
    Function that will do nothing when called with any arguments.
    """
    pass


T = TypeVar('T', bound=Hashable)


def get_duplicates(items: Sequence[T]) -> List[T]:
    """
    Returns a list of any duplicate values in items.
    """
    seen = set()
    duplicates = []
    for item in items:
        if item in seen:
            if item not in duplicates:
                duplicates.append(item)
        else:
            seen.add(item)
    return duplicates


def read_list_file(filepath: str) -> List[str]:
    """
    Returns the stripped, non-empty lines of the text file at filepath,
    or an empty list if the file does not exist.
    """
    if not os.path.isfile(filepath):
        return []
    with open(filepath, 'r') as list_file:
        return [line.strip() for line in list_file if line.strip()]
