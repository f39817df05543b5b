"""Archive handling for packaged repository layers."""

from .extract import extract_layer_archive

__all__ = ["extract_layer_archive"]
