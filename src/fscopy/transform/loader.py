"""
Loading user transform functions from Python files.

A transform file defines ``transform(data, meta)`` returning the document
data to write, or ``None`` to skip the document::

    def transform(data, meta):
        data.pop("password", None)
        return data
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

from fscopy.exceptions import TransformLoadError
from fscopy.transfer.context import TransformFunction

logger = logging.getLogger(__name__)

TRANSFORM_ATTRIBUTE = "transform"


def load_transform_function(path: str | Path) -> TransformFunction:
    """
    Import a transform file and return its ``transform`` callable.

    Args:
        path: Path to a Python source file

    Returns:
        The transform function

    Raises:
        TransformLoadError: If the file is missing, fails to import, or has
            no callable ``transform``
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise TransformLoadError(str(path), f"file not found: {file_path}")

    spec = importlib.util.spec_from_file_location(f"fscopy_transform_{file_path.stem}", file_path)
    if spec is None or spec.loader is None:
        raise TransformLoadError(str(path), "not a loadable Python file")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise TransformLoadError(str(path), f"{type(e).__name__}: {e}") from e

    function = getattr(module, TRANSFORM_ATTRIBUTE, None)
    if not callable(function):
        raise TransformLoadError(
            str(path),
            f"file must define a callable '{TRANSFORM_ATTRIBUTE}', got {type(function).__name__}",
        )

    logger.debug("Loaded transform from %s", file_path)
    return function  # type: ignore[no-any-return]


__all__ = ["load_transform_function", "TRANSFORM_ATTRIBUTE"]
