# dishtile/errors.py


class DishTileError(Exception):
    """Base class for every error raised by the tile and answer pipelines."""


class ConfigurationError(DishTileError):
    """Required credentials or endpoints are missing at startup."""


class InvalidRequestError(DishTileError, ValueError):
    """A caller supplied a parameter outside its documented domain."""


class NotFoundError(DishTileError):
    """A dish, source image or tile artifact does not exist."""


class DecodeError(DishTileError):
    """Image bytes or image metadata could not be decoded."""


class SaltMismatchError(DishTileError):
    """An obfuscated payload was opened with a salt other than its own."""


class StoreError(DishTileError):
    """The object store rejected or failed an upload, download, list or remove."""

    def __init__(self, message, key=None):
        super().__init__(message)
        self.key = key
