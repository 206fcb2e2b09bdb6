from __future__ import annotations

import platform

__version__ = "0.1.0"


def library_version() -> str:
    return platform.python_version()
