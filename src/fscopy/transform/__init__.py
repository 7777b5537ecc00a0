"""User-supplied document transforms."""

from fscopy.transform.loader import TRANSFORM_ATTRIBUTE, load_transform_function

__all__ = ["TRANSFORM_ATTRIBUTE", "load_transform_function"]
