'''Encoders for writing slices to image files.'''

import io
import logging
import os

import matplotlib.image
import numpy as np
import PIL.Image

from quickslicer.core import EncodingFailure, get_format


logger = logging.getLogger(__name__)


def encode_bmp(image):
    '''Encode a NormalizedImage as an uncompressed 8-bit grayscale bitmap.

    The output contains a 14-byte file header, a 40-byte info header, a
    256-entry grayscale palette, and the pixel rows stored bottom-to-top,
    each padded with zeros to a multiple of 4 bytes. Its length is
    therefore 1078 + height * (4 * ceil(width / 4)) bytes.
    '''

    buf = io.BytesIO()
    PIL.Image.fromarray(_get_pixels(image)).save(buf, format='BMP')
    return buf.getvalue()


def encode_raw(image):
    '''Encode a NormalizedImage as unframed bytes, one per sample, in
    row-major order from the top row down.'''

    return _get_pixels(image).tobytes()


def encode_png(image):
    '''Encode a NormalizedImage as a grayscale PNG.'''

    buf = io.BytesIO()
    matplotlib.image.imsave(buf, _get_pixels(image), cmap='gray', vmin=0,
                            vmax=255, format='png')
    return buf.getvalue()


def encode_npy(sl):
    '''Encode the intensities of a Slice or NormalizedImage as a numpy
    .npy file.'''

    buf = io.BytesIO()
    np.save(buf, sl.data)
    return buf.getvalue()


_encoders = {
    'bmp': encode_bmp,
    'raw': encode_raw,
    'png': encode_png,
    'npy': encode_npy,
}


def write_image(image, outname, fmt=None):
    '''Write a NormalizedImage (or, for .npy output, any Slice) to
    <outname>. If <fmt> is None, the format is taken from the file
    extension. Returns the path written to.'''

    outname = os.path.expanduser(outname)
    fmt = get_format(outname, fmt)
    try:
        encoded = _encoders[fmt](image)
    except (ValueError, TypeError, OSError) as e:
        raise EncodingFailure(outname, str(e))

    try:
        with open(outname, 'wb') as f:
            f.write(encoded)
    except OSError as e:
        raise EncodingFailure(outname, e.strerror)

    logger.info(f'Wrote {fmt.upper()} file: {outname} '
                f'({image.width} x {image.height})')
    return outname


def _get_pixels(image):
    '''Get the pixel array of an image as contiguous 8-bit values.'''

    data = image.data
    if data.dtype != np.uint8:
        raise TypeError(f'Expected 8-bit image data, got {data.dtype}; '
                        'normalise the slice first')
    return np.ascontiguousarray(data)
