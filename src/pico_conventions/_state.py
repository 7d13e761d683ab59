# pico_conventions/_state.py
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .reflection import TypeCache

_type_cache: Optional["TypeCache"] = None
