"""
Reading and writing SFM level files on disk.

The codec in sfm_manager works on in-memory text only; this module is the
thin layer that moves that text to and from files.
"""

from pathlib import Path
from typing import Union

from sfm_manager import Level, decode_level, encode_level
from .logging import get_logger

logger = get_logger(__name__)


def load_level(filepath: Union[str, Path]) -> Level:
    """
    Load an SFM level file from disk.

    Parameters:
    -----------
    filepath : str or Path
        Path to the level file

    Returns:
    --------
    Level : Parsed level

    Raises:
    -------
    FileNotFoundError : If the file doesn't exist
    sfm_manager.ParseFailure : If the file is not a valid level
    """
    filepath = Path(filepath)
    level = decode_level(filepath.read_text(encoding="utf-8"))

    logger.info("level_loaded", path=str(filepath), maps=len(level.maps))
    return level


def save_level(level: Level, filepath: Union[str, Path], pretty: bool = False,
               xml_declaration: bool = False) -> Path:
    """
    Save a level to disk.

    The whole document is encoded before the file is opened, so an
    EncodeFailure never leaves a truncated file behind.

    Parameters:
    -----------
    level : Level
        The level to write
    filepath : str or Path
        Output file path (its directory must exist)
    pretty, xml_declaration : bool
        Passed through to encode_level()

    Returns:
    --------
    Path : The path written
    """
    filepath = Path(filepath)
    text = encode_level(level, pretty=pretty, xml_declaration=xml_declaration)
    filepath.write_text(text, encoding="utf-8")

    logger.info("level_saved", path=str(filepath), maps=len(level.maps))
    return filepath
