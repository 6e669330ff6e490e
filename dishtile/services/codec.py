# dishtile/services/codec.py

import logging
from io import BytesIO

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from ..errors import DecodeError, InvalidRequestError
from .geometry import resize_dimensions, tile_rect

log = logging.getLogger(__name__)

REGULAR = "regular"
BLURRED = "blurred"
FIDELITIES = (REGULAR, BLURRED)

REGULAR_QUALITY = 95
BLURRED_QUALITY = 40
BLUR_RADIUS = 40
BLUR_BRIGHTNESS = 0.8
BLUR_SATURATION = 0.6

_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


def validate_fidelity(fidelity):
    value = str(fidelity or "").strip().lower()
    if value not in FIDELITIES:
        raise InvalidRequestError("invalid fidelity: %r" % (fidelity,))
    return value


def decode_image(data):
    """
    Decode raw image bytes into an RGB Pillow image.

    EXIF orientation is applied first, so the reported dimensions are the ones
    a browser displays.

    Raises:
        DecodeError: if the bytes are empty, truncated or not an image.
    """
    if not data:
        raise DecodeError("empty image buffer")
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")
            else:
                img = img.copy()
    except _DECODE_ERRORS as exc:
        raise DecodeError("could not decode image: %s" % exc)
    return img


class BaseImage:
    """
    A source photo resized to the 3:2 grid base.

    The wrapped image is never modified after construction; ``crop`` returns a
    new image each time, so successive tile extractions cannot affect each
    other.
    """
    __slots__ = ("source_size", "size", "_image")

    def __init__(self, image):
        self.source_size = image.size
        self.size = resize_dimensions(*image.size)
        # "cover" fit anchored at the centre; excess is trimmed from both edges
        self._image = ImageOps.fit(image, self.size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

    def rect(self, tile_index):
        return tile_rect(self.size[0], self.size[1], tile_index)

    def crop(self, tile_index):
        return self._image.crop(self.rect(tile_index).box)

    def __repr__(self):
        return "<BaseImage source=%dx%d base=%dx%d>" % (self.source_size + self.size)


def prepare_base(data):
    """Decode ``data`` and resize it to the tile grid base."""
    base = BaseImage(decode_image(data))
    log.debug("codec: prepared %r", base)
    return base


def _to_jpeg(image, quality):
    buf = BytesIO()
    image.save(buf, format="JPEG", quality=int(quality), progressive=False, optimize=False)
    return buf.getvalue()


def encode_regular(tile):
    return _to_jpeg(tile, REGULAR_QUALITY)


def encode_blurred(tile):
    """Blur, darken and desaturate a tile, then encode it at low quality."""
    obscured = tile.filter(ImageFilter.GaussianBlur(radius=BLUR_RADIUS))
    obscured = ImageEnhance.Brightness(obscured).enhance(BLUR_BRIGHTNESS)
    obscured = ImageEnhance.Color(obscured).enhance(BLUR_SATURATION)
    return _to_jpeg(obscured, BLURRED_QUALITY)


def encode_tile(base, tile_index, fidelity):
    """Extract one tile from ``base`` and encode it at ``fidelity``."""
    fidelity = validate_fidelity(fidelity)
    tile = base.crop(tile_index)
    if fidelity == REGULAR:
        return encode_regular(tile)
    return encode_blurred(tile)


def encode_tile_pair(base, tile_index):
    """
    Encode both fidelities of one tile.

    Returns:
        (regular_bytes, blurred_bytes). Both are produced before anything is
        returned, so a failure leaves the caller with neither.
    """
    regular = encode_regular(base.crop(tile_index))
    blurred = encode_blurred(base.crop(tile_index))
    return regular, blurred


def render_tile(data, tile_index, fidelity):
    """On-demand path: source bytes in, one encoded tile out."""
    return encode_tile(prepare_base(data), tile_index, fidelity)
