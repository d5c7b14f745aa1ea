"""Extract 2D slices from MetaImage volumes and save them as images."""

import concurrent.futures
import logging

from quickslicer.core import SliceConfig, get_config, get_axis, get_format, \
        SliceError, MalformedHeader, UnsupportedGeometry, \
        UnsupportedElementType, SizeMismatch, IoFailure, \
        SliceIndexOutOfRange, EncodingFailure, VoxelIndexError
from quickslicer.data import ElementType, VolumeDescriptor, Volume, Slice, \
        NormalizedImage, parse_header, read_header, load_volume, \
        extract_slice, get_window, normalise, encode_bmp, encode_raw, \
        encode_png, encode_npy, write_image


logger = logging.getLogger(__name__)


class SliceRequest:
    """An output image to produce from a volume."""

    def __init__(self, axis, path, fmt=None, index=None):
        """
        Parameters
        ----------
        axis : str/int
            Axis held fixed in the slice ('x', 'y', 'z' or 0, 1, 2).

        path : str
            Path of the output file.

        fmt : str, default=None
            Output format ('bmp', 'raw', 'png' or 'npy'). If None, the format
            is inferred from the extension of <path>.

        index : int, default=None
            Slice index along <axis>. If None, the central slice is used.
        """

        self.axis = get_axis(axis)
        self.path = path
        self.fmt = fmt
        self.index = index

    def __repr__(self):
        return f"SliceRequest(axis={self.axis}, path={self.path}, " \
            f"fmt={self.fmt}, index={self.index})"


def make_slice(volume, request, config):
    """Extract, normalise, and write the slice described by <request>.
    Returns the path of the written file."""

    sl = extract_slice(volume, request.axis, request.index)
    fmt = get_format(request.path, request.fmt, config.default_format)
    if fmt == "npy":
        return write_image(sl, request.path, fmt)

    window = get_window(volume, sl, config.normalisation, config.window)
    logger.debug(f"{request.axis} slice {sl.index}: mapping intensity range "
                 f"{window} to 0-255")
    image = normalise(sl, window)
    return write_image(image, request.path, fmt)


def extract_slices(header_path, outputs, config=None, data_path=None):
    """
    Load a MetaImage volume once and write one image per requested slice.

    Parameters
    ----------
    header_path : str
        Path to the .mhd or .mha header.

    outputs : list
        List of SliceRequest objects.

    config : SliceConfig, default=None
        Normalisation and output options. If None, default options are
        used.

    data_path : str, default=None
        Path to the binary voxel data. If None, the path given by the
        header's ElementDataFile key is used.

    Returns
    -------
    list
        Paths of the files written, in the order of <outputs>.
    """

    if config is None:
        config = SliceConfig()

    descriptor = read_header(header_path)
    volume = load_volume(descriptor, data_path)

    if config.workers == 1 or len(outputs) < 2:
        return [make_slice(volume, request, config) for request in outputs]

    with concurrent.futures.ThreadPoolExecutor(
            max_workers=config.workers) as executor:
        futures = [executor.submit(make_slice, volume, request, config)
                   for request in outputs]
        return [future.result() for future in futures]
