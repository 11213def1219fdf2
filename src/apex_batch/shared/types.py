"""Common type definitions."""

from typing import Callable, Union
from pathlib import Path

# Type alias for paths
PathLike = Union[str, Path]

# A progress sink: accepts one line of text, returns nothing
ProgressCallback = Callable[[str], None]
