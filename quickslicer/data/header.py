'''Parsing of MetaImage (.mhd/.mha) headers.'''

import enum
import io
import logging
import os
from collections import namedtuple

import numpy as np

from quickslicer.core import MalformedHeader, UnsupportedGeometry, \
        UnsupportedElementType, IoFailure


logger = logging.getLogger(__name__)

_local_marker = 'LOCAL'
_true_strings = ['true', '1', 'yes']
_false_strings = ['false', '0', 'no']
_header_keys = [
    'NDims',
    'DimSize',
    'ElementType',
    'ElementSpacing',
    'ElementByteOrderMSB',
    'BinaryDataByteOrderMSB',
    'ElementDataFile',
    'ElementNumberOfChannels',
    'HeaderSize',
    'BinaryData',
    'CompressedData',
    'Offset',
    'Origin',
    'Position',
]


class ElementType(enum.Enum):
    '''Sample encodings that can appear in the ElementType key. Each value
    holds the numpy kind code and the width of one sample in bytes.'''

    MET_CHAR = ('MET_CHAR', 'i', 1)
    MET_UCHAR = ('MET_UCHAR', 'u', 1)
    MET_SHORT = ('MET_SHORT', 'i', 2)
    MET_USHORT = ('MET_USHORT', 'u', 2)
    MET_INT = ('MET_INT', 'i', 4)
    MET_UINT = ('MET_UINT', 'u', 4)
    MET_LONG = ('MET_LONG', 'i', 4)
    MET_ULONG = ('MET_ULONG', 'u', 4)
    MET_LONG_LONG = ('MET_LONG_LONG', 'i', 8)
    MET_ULONG_LONG = ('MET_ULONG_LONG', 'u', 8)
    MET_FLOAT = ('MET_FLOAT', 'f', 4)
    MET_DOUBLE = ('MET_DOUBLE', 'f', 8)

    @property
    def kind(self):
        return self.value[1]

    @property
    def byte_width(self):
        return self.value[2]

    def get_dtype(self, big_endian=False):
        '''Return the numpy dtype used to decode samples of this type.'''

        order = '>' if big_endian else '<'
        return np.dtype(f'{order}{self.kind}{self.byte_width}')

    @classmethod
    def from_string(cls, name):
        '''Look up an element type from its MetaImage name.'''

        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise UnsupportedElementType(name)


class VolumeDescriptor(namedtuple('VolumeDescriptor', [
    'dims',
    'element_type',
    'spacing',
    'origin',
    'big_endian',
    'data_file',
    'header_size',
    'header_file',
    'data_offset',
], defaults=[(1.0, 1.0, 1.0), (0.0, 0.0, 0.0), False, None, 0, None, 0])):
    '''Immutable description of a volume's geometry and sample encoding.

    Attributes
    ----------
    dims : tuple
        Number of voxels in order (x, y, z).

    element_type : ElementType
        Encoding of each sample.

    spacing : tuple
        Physical voxel size in order (x, y, z).

    origin : tuple
        Position of the first voxel in order (x, y, z).

    big_endian : bool
        True if samples are stored most significant byte first.

    data_file : str
        Path to the binary payload, or None if the payload follows the
        header in the same file.

    header_size : int
        Number of bytes to skip at the start of an external payload. If -1,
        the payload is taken from the end of the file.

    header_file : str
        Path of the header file, if the header was read from disk.

    data_offset : int
        Byte offset at which the header text ends, i.e. where inline data
        starts.
    '''

    __slots__ = ()

    @property
    def n_voxels(self):
        return int(np.prod(self.dims, dtype=np.int64))

    @property
    def n_bytes(self):
        return self.n_voxels * self.element_type.byte_width

    @property
    def is_local(self):
        return self.data_file is None

    def get_dtype(self):
        return self.element_type.get_dtype(self.big_endian)


def parse_header(text):
    '''Parse MetaImage header text (str or bytes) into a VolumeDescriptor.

    Lines take the form "Key = Value". Unrecognised keys are ignored.
    Reading stops after the ElementDataFile line, which must be the last
    key in a MetaImage header; anything after it is treated as data.
    '''

    if isinstance(text, str):
        text = text.encode('utf-8', errors='surrogateescape')
    return _parse_lines(io.BytesIO(text))


def read_header(path):
    '''Read a MetaImage header from a .mhd or .mha file. A relative
    ElementDataFile is resolved against the directory of the header.'''

    path = os.path.expanduser(path)
    try:
        with open(path, 'rb') as f:
            descriptor = _parse_lines(f)
    except OSError as e:
        raise IoFailure(path, e.strerror)

    data_file = descriptor.data_file
    if data_file is not None and not os.path.isabs(data_file):
        data_file = os.path.join(os.path.dirname(path), data_file)
    descriptor = descriptor._replace(data_file=data_file, header_file=path)

    logger.info(f'Loaded header from {path}')
    logger.info(f'  dims = {descriptor.dims}, '
                f'type = {descriptor.element_type.name}, '
                f'spacing = {descriptor.spacing}')
    return descriptor


def _parse_lines(lines):
    '''Parse header lines from an iterable of bytes.'''

    # Collect raw values and their line numbers
    fields = {}
    offset = 0
    for line_number, raw in enumerate(lines, 1):
        offset += len(raw)
        # Undecodable bytes are kept so file names round-trip to open()
        line = raw.decode('utf-8', errors='surrogateescape').strip()
        if not line:
            continue
        if '=' not in line:
            logger.debug(f'Line {line_number}: skipping entry without an '
                         '"=" sign')
            continue

        key, value = [s.strip() for s in line.split('=', 1)]
        if key not in _header_keys:
            logger.debug(f'Line {line_number}: skipping key {key}')
            continue
        if key in fields:
            raise MalformedHeader(key, f'Duplicated `{key}` key', line_number)
        fields[key] = (value, line_number)

        if key == 'ElementDataFile':
            break

    # Dimensionality must be checked before anything else
    if 'NDims' not in fields:
        raise MalformedHeader('NDims', 'Mandatory key `NDims` not found')
    ndims = _parse_ints('NDims', *fields['NDims'], count=1)[0]
    if ndims != 3:
        raise UnsupportedGeometry(ndims)

    for key in ['DimSize', 'ElementType', 'ElementDataFile']:
        if key not in fields:
            raise MalformedHeader(key, f'Mandatory key `{key}` not found')

    dims = _parse_ints('DimSize', *fields['DimSize'], count=3, minimum=1)
    element_type = ElementType.from_string(fields['ElementType'][0])

    if 'ElementNumberOfChannels' in fields:
        value, line = fields['ElementNumberOfChannels']
        channels = _parse_ints('ElementNumberOfChannels', value, line,
                               count=1)[0]
        if channels != 1:
            raise UnsupportedElementType(value, 'ElementNumberOfChannels')

    if 'CompressedData' in fields \
            and _parse_bool('CompressedData', *fields['CompressedData']):
        raise MalformedHeader('CompressedData',
                              'Compressed data is not supported',
                              fields['CompressedData'][1])
    if 'BinaryData' in fields \
            and not _parse_bool('BinaryData', *fields['BinaryData']):
        raise MalformedHeader('BinaryData', 'ASCII data is not supported',
                              fields['BinaryData'][1])

    spacing = (1.0, 1.0, 1.0)
    if 'ElementSpacing' in fields:
        spacing = _parse_floats('ElementSpacing', *fields['ElementSpacing'],
                                count=3, positive=True)

    origin = (0.0, 0.0, 0.0)
    for key in ['Offset', 'Origin', 'Position']:
        if key in fields:
            origin = _parse_floats(key, *fields[key], count=3)
            break

    big_endian = False
    for key in ['ElementByteOrderMSB', 'BinaryDataByteOrderMSB']:
        if key in fields:
            big_endian = _parse_bool(key, *fields[key])
            break

    header_size = 0
    if 'HeaderSize' in fields:
        header_size = _parse_ints('HeaderSize', *fields['HeaderSize'],
                                  count=1, minimum=-1)[0]

    data_file, line = fields['ElementDataFile']
    if not data_file:
        raise MalformedHeader('ElementDataFile',
                              'Expecting a value for `ElementDataFile` key',
                              line)
    if data_file.upper() == _local_marker:
        data_file = None
    elif data_file.upper().startswith('LIST') or '%' in data_file:
        raise MalformedHeader('ElementDataFile',
                              'Multi-file data is not supported', line)

    return VolumeDescriptor(
        dims=dims,
        element_type=element_type,
        spacing=spacing,
        origin=origin,
        big_endian=big_endian,
        data_file=data_file,
        header_size=header_size,
        data_offset=offset,
    )


def _split_values(key, value, line, count):
    '''Split a value into exactly <count> whitespace-separated items.'''

    values = value.split()
    if not values:
        raise MalformedHeader(key, f'Expecting values for `{key}` key', line)
    if len(values) > count:
        raise MalformedHeader(key, f'Too many values for `{key}` key', line)
    if len(values) < count:
        raise MalformedHeader(
            key, f'Expecting {count} values for `{key}` key, found '
            f'{len(values)}', line)
    return values


def _parse_ints(key, value, line, count, minimum=None):
    '''Parse <count> integers from a header value.'''

    ints = []
    for item in _split_values(key, value, line, count):
        try:
            val = int(item)
        except ValueError:
            raise MalformedHeader(
                key, f'Invalid value {item} for `{key}` key', line)
        if minimum is not None and val < minimum:
            raise MalformedHeader(
                key, f'Value {item} for `{key}` key is out of range '
                f'(minimum {minimum})', line)
        ints.append(val)
    return tuple(ints)


def _parse_floats(key, value, line, count, positive=False):
    '''Parse <count> finite floats from a header value.'''

    floats = []
    for item in _split_values(key, value, line, count):
        try:
            val = float(item)
        except ValueError:
            raise MalformedHeader(
                key, f'Invalid value {item} for `{key}` key', line)
        if not np.isfinite(val) or (positive and val <= 0):
            raise MalformedHeader(
                key, f'Value {item} for `{key}` key is out of range', line)
        floats.append(val)
    return tuple(floats)


def _parse_bool(key, value, line):
    '''Parse a True/False header value.'''

    if value.lower() in _true_strings:
        return True
    if value.lower() in _false_strings:
        return False
    raise MalformedHeader(key, f'Invalid boolean {value} for `{key}` key',
                          line)
