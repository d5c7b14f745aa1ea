"""Classes and functions for reading volumes and writing slices."""

from quickslicer.data.header import ElementType, VolumeDescriptor, \
        parse_header, read_header
from quickslicer.data.volume import Volume, load_volume
from quickslicer.data.slices import Slice, NormalizedImage, extract_slice, \
        get_window, normalise
from quickslicer.data.writers import encode_bmp, encode_raw, encode_png, \
        encode_npy, write_image
