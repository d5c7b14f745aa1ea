'''Extraction of orthogonal slices from a Volume and normalisation of their
intensities to 8 bits.'''

import numpy as np

from quickslicer.core import SliceIndexOutOfRange, get_axis, _axes


class Slice:
    '''2D grid of intensities taken from a volume at a fixed index along one
    axis. The grid is indexed as [row, column].'''

    def __init__(self, data, axis, index):
        self.data = data
        self.axis = axis
        self.index = index

    @property
    def shape(self):
        return self.data.shape

    @property
    def width(self):
        return self.data.shape[1]

    @property
    def height(self):
        return self.data.shape[0]

    def __repr__(self):
        return f'Slice(axis={self.axis}, index={self.index}, ' \
            f'shape={self.shape})'


class NormalizedImage(Slice):
    '''Slice whose intensities have been mapped to 8-bit grayscale.'''

    def __repr__(self):
        return f'NormalizedImage(axis={self.axis}, index={self.index}, ' \
            f'shape={self.shape})'


def extract_slice(volume, axis='z', index=None):
    '''
    Extract a 2D slice from a volume.

    Parameters
    ----------
    volume : Volume
        Volume from which to take the slice.

    axis : str/int, default='z'
        Axis held fixed: 'x', 'y' or 'z' (or 0, 1, 2). The resulting grid
        has shape:
            - 'x': (ny, nz), with cell (y, z) = value_at(index, y, z);
            - 'y': (nx, nz), with cell (x, z) = value_at(x, index, z);
            - 'z': (nx, ny), with cell (x, y) = value_at(x, y, index).

    index : int, default=None
        Position along <axis>. If None, the central index (extent // 2) is
        used.

    Returns
    -------
    Slice
    '''

    axis = get_axis(axis)
    ax = _axes.index(axis)
    extent = volume.dims[ax]
    if index is None:
        index = extent // 2
    if not 0 <= index < extent:
        raise SliceIndexOutOfRange(axis, index, extent)

    data = np.take(volume.get_array(), index, axis=ax)
    return Slice(np.ascontiguousarray(data), axis, index)


def get_range(data):
    '''Return the minimum and maximum finite value in <data>, or (0, 0) if
    there are none.'''

    finite = data[np.isfinite(data)]
    if not finite.size:
        return 0.0, 0.0
    return float(finite.min()), float(finite.max())


def get_window(volume, sl, normalisation='slice', window=None):
    '''Get the (min, max) intensity range that will be mapped onto 0-255
    for slice <sl> of <volume>.'''

    if normalisation == 'slice':
        return get_range(sl.data)
    if normalisation == 'volume':
        return volume.intensity_range()
    if normalisation == 'window':
        if window is None:
            raise ValueError('<window> must be given for window '
                             'normalisation!')
        return float(window[0]), float(window[1])
    raise ValueError(f'Unrecognised normalisation {normalisation}')


def normalise(sl, window=None):
    '''
    Linearly map the intensities of a slice to the range 0-255.

    Parameters
    ----------
    sl : Slice
        Slice to normalise.

    window : tuple, default=None
        (min, max) intensities to map to 0 and 255. Values outside the
        window are clipped. If None, the minimum and maximum of the slice
        itself are used, ignoring NaN and infinite samples. If min >= max,
        every output sample is 0. NaN samples map to 0.

    Returns
    -------
    NormalizedImage
    '''

    if window is None:
        vmin, vmax = get_range(sl.data)
    else:
        vmin, vmax = window

    if vmax <= vmin:
        data = np.zeros(sl.shape, dtype=np.uint8)
    else:
        scaled = (sl.data - vmin) / (vmax - vmin) * 255
        scaled = np.nan_to_num(scaled, nan=0.0, posinf=255.0, neginf=0.0)
        data = np.clip(np.rint(scaled), 0, 255).astype(np.uint8)
    return NormalizedImage(data, sl.axis, sl.index)
