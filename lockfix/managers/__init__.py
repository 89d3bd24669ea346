import os
from .javascript import NodeManager

MANAGERS = [
    NodeManager(),
]


def detect_manager(where="."):
    """Checks files in `where` and returns the correct manager."""
    files = os.listdir(where) if os.path.isdir(where) else []

    for manager in MANAGERS:
        if manager.detect(files):
            return manager

    return None
