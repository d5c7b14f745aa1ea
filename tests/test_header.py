'''Test parsing of MetaImage headers.'''

import os

import numpy as np
import pytest

from quickslicer.core import MalformedHeader, UnsupportedGeometry, \
        UnsupportedElementType, IoFailure
from quickslicer.data.header import ElementType, parse_header, read_header


header = '''ObjectType = Image
NDims = 3
BinaryData = True
BinaryDataByteOrderMSB = False
CompressedData = False
TransformMatrix = 1 0 0 0 1 0 0 0 1
Offset = -10 20.5 0
CenterOfRotation = 0 0 0
AnatomicalOrientation = RAI
ElementSpacing = 0.402344 0.402344 0.899994
DimSize = 512 512 333
ElementType = MET_USHORT
ElementDataFile = sinus.raw
'''


def make_header(**kwargs):
    '''Make header text with some keys replaced; keys set to None are
    removed.'''

    values = {
        'NDims': '3',
        'DimSize': '4 5 6',
        'ElementType': 'MET_UCHAR',
        'ElementDataFile': 'data.raw',
    }
    values.update(kwargs)
    lines = [f'{k} = {v}' for k, v in values.items()
             if v is not None and k != 'ElementDataFile']
    if values['ElementDataFile'] is not None:
        lines.append(f'ElementDataFile = {values["ElementDataFile"]}')
    return '\n'.join(lines) + '\n'


def test_full_header():
    '''Check a typical ITK-written header is read correctly.'''

    desc = parse_header(header)
    assert desc.dims == (512, 512, 333)
    assert desc.spacing == pytest.approx((0.402344, 0.402344, 0.899994))
    assert desc.origin == (-10, 20.5, 0)
    assert desc.element_type == ElementType.MET_USHORT
    assert desc.element_type.byte_width == 2
    assert not desc.big_endian
    assert desc.data_file == 'sinus.raw'
    assert not desc.is_local
    assert desc.n_bytes == 512 * 512 * 333 * 2


def test_defaults():
    '''Check default values of optional keys.'''

    desc = parse_header(make_header())
    assert desc.spacing == (1, 1, 1)
    assert desc.origin == (0, 0, 0)
    assert not desc.big_endian
    assert desc.header_size == 0


def test_bytes_input():
    desc = parse_header(make_header().encode())
    assert desc.dims == (4, 5, 6)


def test_unknown_keys_ignored():
    text = 'Comment = something\nnot a key value line\n\n' + make_header()
    desc = parse_header(text)
    assert desc.dims == (4, 5, 6)


@pytest.mark.parametrize('ndims', ['2', '4', '1', '0'])
def test_unsupported_geometry(ndims):
    '''Check NDims other than 3 is rejected, even when other keys are
    invalid.'''

    with pytest.raises(UnsupportedGeometry) as e:
        parse_header(make_header(NDims=ndims, DimSize='a b',
                                 ElementType='MET_FOO'))
    assert e.value.ndims == int(ndims)


@pytest.mark.parametrize('key', ['NDims', 'DimSize', 'ElementType',
                                 'ElementDataFile'])
def test_missing_key(key):
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(**{key: None}))
    assert e.value.key == key


@pytest.mark.parametrize('dims', ['4 5', '4 5 6 7', '4 5 abc', '4 0 6',
                                  '4 -1 6', '4 5.5 6', ''])
def test_invalid_dims(dims):
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(DimSize=dims))
    assert e.value.key == 'DimSize'
    assert e.value.line == 2


def test_invalid_ndims():
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(NDims='three'))
    assert e.value.key == 'NDims'


def test_duplicate_key():
    '''Check a repeated key is reported with its line number.'''

    text = 'NDims = 3\nDimSize = 4 5 6\nElementType = MET_UCHAR\n' \
        'DimSize = 4 5 6\nElementDataFile = data.raw\n'
    with pytest.raises(MalformedHeader) as e:
        parse_header(text)
    assert e.value.key == 'DimSize'
    assert e.value.line == 4
    assert 'line 4' in str(e.value)


def test_unsupported_element_type():
    with pytest.raises(UnsupportedElementType) as e:
        parse_header(make_header(ElementType='MET_FOO'))
    assert e.value.value == 'MET_FOO'


def test_multichannel_unsupported():
    with pytest.raises(UnsupportedElementType):
        parse_header(make_header(ElementNumberOfChannels='3'))


def test_compressed_unsupported():
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(CompressedData='True'))
    assert e.value.key == 'CompressedData'


@pytest.mark.parametrize('spacing', ['1 1', '1 0 1', '1 -2 1', '1 x 1'])
def test_invalid_spacing(spacing):
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(ElementSpacing=spacing))
    assert e.value.key == 'ElementSpacing'


@pytest.mark.parametrize('value, expected', [
    ('True', True), ('true', True), ('1', True), ('False', False),
    ('FALSE', False), ('0', False)])
def test_byte_order(value, expected):
    desc = parse_header(make_header(ElementByteOrderMSB=value))
    assert desc.big_endian == expected


def test_invalid_byte_order():
    with pytest.raises(MalformedHeader) as e:
        parse_header(make_header(ElementByteOrderMSB='maybe'))
    assert e.value.key == 'ElementByteOrderMSB'


def test_element_types():
    '''Check every element type maps to a numpy dtype of the right width
    and byte order.'''

    for et in ElementType:
        assert et.get_dtype().itemsize == et.byte_width
        assert et.get_dtype(big_endian=True).itemsize == et.byte_width
    assert ElementType.MET_SHORT.get_dtype(True) == np.dtype('>i2')
    assert ElementType.MET_FLOAT.get_dtype() == np.dtype('<f4')
    assert ElementType.from_string('met_double') == ElementType.MET_DOUBLE


def test_local_data_offset():
    '''Check the end of the header is recorded for inline data.'''

    text = make_header(ElementDataFile='LOCAL')
    desc = parse_header(text.encode() + bytes(range(120)))
    assert desc.is_local
    assert desc.data_file is None
    assert desc.data_offset == len(text.encode())


def test_multi_file_unsupported():
    with pytest.raises(MalformedHeader):
        parse_header(make_header(ElementDataFile='LIST'))


def test_header_size():
    desc = parse_header(make_header(HeaderSize='-1'))
    assert desc.header_size == -1
    with pytest.raises(MalformedHeader):
        parse_header(make_header(HeaderSize='-2'))


def test_read_header(tmp_path):
    '''Check the data file path is resolved relative to the header.'''

    path = tmp_path / 'volume.mhd'
    path.write_text(make_header())
    desc = read_header(str(path))
    assert desc.data_file == str(tmp_path / 'data.raw')
    assert desc.header_file == str(path)


def test_read_missing_header(tmp_path):
    with pytest.raises(IoFailure) as e:
        read_header(str(tmp_path / 'missing.mhd'))
    assert 'missing.mhd' in e.value.path


def test_non_ascii_data_file(tmp_path):
    '''Check a UTF-8 data file name is read back as the same path.'''

    path = tmp_path / 'volume.mhd'
    path.write_bytes(make_header(ElementDataFile='données.raw').encode())
    (tmp_path / 'données.raw').write_bytes(bytes(4 * 5 * 6))
    desc = read_header(str(path))
    assert desc.data_file == str(tmp_path / 'données.raw')
    assert os.path.exists(desc.data_file)
