# dishtile/services/geometry.py

"""
Tile grid geometry.

Every tile boundary is a pure function of the source image dimensions:

    (width, height) -> resize_dimensions -> tile_rect(index)

Both the pre-generation job and the on-demand tile endpoint go through these
functions, so a stored tile and a freshly generated one always share the same
crop box. Nothing here touches pixels.
"""

from collections import namedtuple

from ..errors import DecodeError, InvalidRequestError

GRID_COLS = 3
GRID_ROWS = 2
TILE_COUNT = GRID_COLS * GRID_ROWS

# Target aspect ratio (width:height) of the resized base image.
ASPECT_WIDTH = 3
ASPECT_HEIGHT = 2


class TileRect(namedtuple("TileRect", ("left", "top", "width", "height"))):
    """Pixel rectangle of one tile inside the resized base image."""
    __slots__ = ()

    @property
    def box(self):
        """(left, upper, right, lower) as expected by ``PIL.Image.crop``."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


def _round_half_up(numerator, denominator):
    # Integer rounding that matches Math.round for positive values
    return (2 * numerator + denominator) // (2 * denominator)


def resize_dimensions(width, height):
    """
    Compute the 3:2 base size for an image of ``width`` x ``height`` pixels.

    Images wider than 3:2 are fit by height, everything else by width, so the
    result never exceeds the original in either dimension.

    Raises:
        DecodeError: if either dimension is missing or not positive.
    """
    try:
        width = int(width)
        height = int(height)
    except (TypeError, ValueError):
        raise DecodeError("invalid image metadata: %r x %r" % (width, height))
    if width <= 0 or height <= 0:
        raise DecodeError("invalid image metadata: %d x %d" % (width, height))

    # width / height > 3 / 2, compared without floats
    if width * ASPECT_HEIGHT > height * ASPECT_WIDTH:
        resize_height = height
        resize_width = _round_half_up(height * ASPECT_WIDTH, ASPECT_HEIGHT)
    else:
        resize_width = width
        resize_height = _round_half_up(width * ASPECT_HEIGHT, ASPECT_WIDTH)
    return resize_width, resize_height


def validate_tile_index(tile_index):
    """Coerce ``tile_index`` to an int in ``[0, TILE_COUNT)`` or raise InvalidRequestError."""
    if isinstance(tile_index, bool):
        raise InvalidRequestError("invalid tile index: %r" % (tile_index,))
    try:
        index = int(tile_index)
    except (TypeError, ValueError):
        raise InvalidRequestError("invalid tile index: %r" % (tile_index,))
    if str(index) != str(tile_index).strip():
        raise InvalidRequestError("invalid tile index: %r" % (tile_index,))
    if index < 0 or index >= TILE_COUNT:
        raise InvalidRequestError("invalid tile index: %d" % index)
    return index


def tile_rect(resize_width, resize_height, tile_index):
    """
    Map ``tile_index`` to its rectangle inside a ``resize_width`` x
    ``resize_height`` image.

    Interior tiles use ``floor(dimension / grid)``; the last column and the
    last row absorb the rounding remainder, so the six rectangles cover the
    image with no gaps and no overlap.
    """
    index = validate_tile_index(tile_index)
    if resize_width < GRID_COLS or resize_height < GRID_ROWS:
        raise DecodeError("image too small for a %dx%d grid: %d x %d"
                          % (GRID_COLS, GRID_ROWS, resize_width, resize_height))

    row = index // GRID_COLS
    col = index % GRID_COLS

    base_width = resize_width // GRID_COLS
    base_height = resize_height // GRID_ROWS

    left = col * base_width
    top = row * base_height
    width = resize_width - left if col == GRID_COLS - 1 else base_width
    height = resize_height - top if row == GRID_ROWS - 1 else base_height
    return TileRect(left, top, width, height)


def grid_rects(width, height):
    """All six rectangles for a source image of ``width`` x ``height``, in index order."""
    resize_width, resize_height = resize_dimensions(width, height)
    return [tile_rect(resize_width, resize_height, i) for i in range(TILE_COUNT)]
