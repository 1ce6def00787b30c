"""
SFM Level Tools - file handling and command line for sfm_maps levels

The codec itself lives in the sfm_manager module.
"""

from .config import Config
from .files import load_level, save_level
from .logging import close_log_file, configure_logging, get_logger
from .summary import count_events, describe_level

__version__ = "0.1.0"
__all__ = [
    "Config",
    "load_level",
    "save_level",
    "close_log_file",
    "configure_logging",
    "get_logger",
    "count_events",
    "describe_level",
]
