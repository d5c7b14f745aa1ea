'''Loading of MetaImage voxel data into a read-only Volume.'''

import logging
import os

import nibabel
import numpy as np

from quickslicer.core import SizeMismatch, IoFailure, EncodingFailure, \
        VoxelIndexError, _axes
from quickslicer.data.slices import get_range


logger = logging.getLogger(__name__)


class Volume:
    '''Read-only 3D array of samples, widened to float64, together with the
    VolumeDescriptor it was loaded from.

    Samples are stored with x varying fastest, then y, then z, so the
    underlying array has shape (z, y, x) and the sample at (x, y, z) sits
    at flat offset x + y * nx + z * nx * ny.
    '''

    def __init__(self, descriptor, data, path=None):
        '''
        Parameters
        ----------
        descriptor : VolumeDescriptor
            Geometry and encoding of the volume.

        data : np.ndarray
            Array of shape (z, y, x) holding the samples.

        path : str, default=None
            Path of the file the samples were read from, if any.
        '''

        expected = tuple(descriptor.dims[::-1])
        if data.shape != expected:
            raise ValueError(f'Data shape {data.shape} does not match '
                             f'header dimensions {expected}')

        self.descriptor = descriptor
        self.path = path
        self.data = np.array(data, dtype=np.float64)
        self.data.flags.writeable = False
        self._range = None

    @classmethod
    def from_bytes(cls, descriptor, buffer, path=None):
        '''Create a Volume from a buffer containing exactly the number of
        bytes declared by <descriptor>.'''

        if len(buffer) != descriptor.n_bytes:
            raise SizeMismatch(descriptor.n_bytes, len(buffer), path)

        samples = np.frombuffer(buffer, dtype=descriptor.get_dtype())
        data = samples.astype(np.float64).reshape(descriptor.dims[::-1])
        return cls(descriptor, data, path)

    @property
    def dims(self):
        return self.descriptor.dims

    @property
    def spacing(self):
        return self.descriptor.spacing

    def value_at(self, x, y, z):
        '''Return the sample at voxel (x, y, z).'''

        for ax, i, n in zip(_axes, (x, y, z), self.dims):
            if not 0 <= i < n:
                raise VoxelIndexError(
                    f'Voxel index {i} out of range for {ax} axis '
                    f'(valid range 0-{n - 1})')
        return float(self.data[z, y, x])

    def get_array(self):
        '''Return a read-only view of the samples indexed as [x, y, z].'''

        return self.data.T

    def intensity_range(self):
        '''Return the minimum and maximum finite sample in the volume.'''

        if self._range is None:
            self._range = get_range(self.data)
        return self._range

    def get_affine(self):
        '''Return a 4x4 affine matrix built from voxel spacing and origin.'''

        affine = np.identity(4)
        for i in range(3):
            affine[i, i] = self.spacing[i]
            affine[i, 3] = self.descriptor.origin[i]
        return affine

    def write(self, outname):
        '''Write the volume to a file. The filetype is set from the
        extension of <outname>:

            (a) *.nii or *.nii.gz: NIfTI file with an affine matrix built
            from the voxel spacing and origin.

            (b) *.npy: numpy array indexed as [x, y, z]. A text file
            containing the voxel spacing and origin is written alongside.
        '''

        outname = os.path.expanduser(outname)
        try:
            if outname.endswith('.nii') or outname.endswith('.nii.gz'):
                nii = nibabel.Nifti1Image(np.array(self.get_array()),
                                          self.get_affine())
                nii.to_filename(outname)
                logger.info(f'Wrote to NIfTI file: {outname}')

            elif outname.endswith('.npy'):
                np.save(outname, self.get_array())
                geom_file = os.path.splitext(outname)[0] + '.txt'
                with open(geom_file, 'w') as f:
                    f.write('spacing')
                    for vx in self.spacing:
                        f.write(' ' + str(vx))
                    f.write('\norigin')
                    for p in self.descriptor.origin:
                        f.write(' ' + str(p))
                    f.write('\n')
                logger.info(f'Wrote to numpy file: {outname}')

            else:
                raise EncodingFailure(outname, 'unrecognised file extension')
        except OSError as e:
            raise EncodingFailure(outname, e.strerror)

    def __repr__(self):
        return (f'Volume(dims={self.dims}, '
                f'type={self.descriptor.element_type.name})')


def load_volume(descriptor, data_path=None):
    '''Load the voxel data described by <descriptor>.

    The payload is read from <data_path> if given, otherwise from the
    descriptor's data file, or from the header file itself if the data is
    stored inline (ElementDataFile = LOCAL).
    A <data_path> other than the header file is read from its start, even
    if the header declares inline data.
    '''

    if descriptor.is_local:
        path = data_path or descriptor.header_file
        offset = descriptor.data_offset \
            if _same_file(path, descriptor.header_file) else 0
    else:
        path = data_path or descriptor.data_file
        offset = descriptor.header_size
    if path is None:
        raise IoFailure('<inline data>',
                        'no file given to read inline data from')

    path = os.path.expanduser(path)
    try:
        with open(path, 'rb') as f:
            if offset == -1:
                size = f.seek(0, os.SEEK_END)
                f.seek(max(size - descriptor.n_bytes, 0))
            else:
                f.seek(offset)
            buffer = f.read()
    except OSError as e:
        raise IoFailure(path, e.strerror)

    volume = Volume.from_bytes(descriptor, buffer, path)
    logger.info(f'Loaded {len(buffer)} bytes of data from {path}')
    return volume


def _same_file(path1, path2):
    if path1 is None or path2 is None:
        return False
    return os.path.abspath(os.path.expanduser(path1)) \
        == os.path.abspath(os.path.expanduser(path2))
