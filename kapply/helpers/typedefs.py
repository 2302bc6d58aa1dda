"""
Rudimentary type [re-]definitions for mypy.

Some stdlib classes are generics only in the type-sheds, not at runtime
(e.g. `logging.LoggerAdapter`), so they are defined here in a reusable way.
Plus some common plain type definitions used across the codebase.
"""
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# As publicly exposed: we only promise that it is based on one of the built-in loggable classes.
Logger = logging.Logger | LoggerAdapter
