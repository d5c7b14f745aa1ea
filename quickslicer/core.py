"""Core classes and functions shared by the slicing pipeline: errors,
configuration, and small helpers."""

import os
import configparser


default_settings = os.path.join(os.path.dirname(__file__),
                                "settings", "settings.ini")

_axes = ['x', 'y', 'z']
_formats = ['bmp', 'raw', 'png', 'npy']
_normalisations = ['slice', 'volume', 'window']


class SliceError(RuntimeError):
    """Base class for all errors raised while slicing a volume."""


class MalformedHeader(SliceError):
    """A header key is missing or has an invalid value."""

    def __init__(self, key, message, line=None):
        self.key = key
        self.line = line
        if line is not None:
            message = f"Header line {line}: {message}"
        SliceError.__init__(self, message)


class UnsupportedGeometry(SliceError):
    """The header declares a dimensionality other than 3."""

    def __init__(self, ndims):
        self.ndims = ndims
        SliceError.__init__(
            self, f"Unsupported dimensionality: NDims = {ndims} (only 3D "
            "volumes are supported)")


class UnsupportedElementType(SliceError):
    """The header declares a sample encoding that cannot be read."""

    def __init__(self, value, key="ElementType"):
        self.value = value
        self.key = key
        SliceError.__init__(
            self, f"Unsupported element type: {key} = {value}")


class SizeMismatch(SliceError):
    """The payload size does not agree with the declared geometry."""

    def __init__(self, expected, actual, path=None):
        self.expected = expected
        self.actual = actual
        self.path = path
        source = f" in {path}" if path else ""
        SliceError.__init__(
            self, f"Data size of {actual} bytes{source} does not match "
            f"header: expecting {expected} bytes")


class IoFailure(SliceError):
    """A file could not be found or read."""

    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        message = f"Could not read {path}"
        if reason:
            message += f": {reason}"
        SliceError.__init__(self, message)


class SliceIndexOutOfRange(SliceError):
    """A requested slice index lies outside the volume."""

    def __init__(self, axis, index, extent):
        self.axis = axis
        self.index = index
        self.extent = extent
        SliceError.__init__(
            self, f"Slice index {index} out of range for {axis} axis "
            f"(valid range 0-{extent - 1})")


class EncodingFailure(SliceError):
    """An output image could not be encoded or written."""

    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        message = f"Could not write {path}"
        if reason:
            message += f": {reason}"
        SliceError.__init__(self, message)


class VoxelIndexError(IndexError):
    """A voxel coordinate lies outside the volume."""


class SliceConfig:
    """Options controlling how slices are normalised and written."""

    def __init__(
        self,
        normalisation="slice",
        window=None,
        default_format="bmp",
        workers=1
    ):
        """
        Parameters
        ----------
        normalisation : str, default="slice"
            Method used to find the intensity range mapped onto 0-255:
                - "slice": minimum and maximum of each slice;
                - "volume": minimum and maximum of the whole volume, so that
                  the output images are comparable;
                - "window": the fixed range given in <window>.

        window : tuple, default=None
            (min, max) intensity range; required if <normalisation> is
            "window".

        default_format : str, default="bmp"
            Output format used when it cannot be inferred from the output
            file name. Can be any of "bmp", "raw", "png", "npy".

        workers : int, default=1
            Number of threads across which requested slices are shared.
            Slices are produced sequentially if this is 1.
        """

        if normalisation not in _normalisations:
            raise ValueError(f"Unrecognised normalisation {normalisation}; "
                             f"must be one of {_normalisations}")
        if normalisation == "window":
            if window is None or not is_list(window) or len(window) != 2:
                raise ValueError("<window> must contain a min and max when "
                                 "using window normalisation!")
        if default_format not in _formats:
            raise ValueError(f"Unrecognised output format {default_format}; "
                             f"must be one of {_formats}")
        if int(workers) < 1:
            raise ValueError("<workers> must be at least 1!")

        self.normalisation = normalisation
        self.window = tuple(float(w) for w in window) if window else None
        self.default_format = default_format
        self.workers = int(workers)

    def __repr__(self):
        out_list = [f"{key}: {value}"
                    for key, value in sorted(self.__dict__.items())]
        return "\n".join(out_list)


def get_config(path=None, **kwargs):
    """Create a SliceConfig from the [slicing] section of a settings file.
    If <path> is None, the default settings bundled with quickslicer are
    used. Any <kwargs> that are not None override the file settings."""

    path = default_settings if path is None else os.path.expanduser(path)
    config = configparser.ConfigParser()
    if not config.read(path):
        raise IoFailure(path, "settings file not found")

    opts = {}
    if config.has_section("slicing"):
        section = config["slicing"]
        opts["normalisation"] = section.get("normalisation", "slice")
        opts["default_format"] = section.get("default_format", "bmp")
        opts["workers"] = section.getint("workers", 1)
        window = section.get("window", "").split()
        if window:
            opts["window"] = [float(w) for w in window]

    opts.update({k: v for k, v in kwargs.items() if v is not None})
    return SliceConfig(**opts)


def get_axis(axis):
    """Convert an axis name or number to one of "x", "y", "z"."""

    if isinstance(axis, str) and axis.lower() in _axes:
        return axis.lower()
    if isinstance(axis, int) and not isinstance(axis, bool) \
            and 0 <= axis < 3:
        return _axes[axis]
    raise ValueError(f"Unrecognised axis {axis}; must be one of {_axes}")


def is_list(var):
    """Check whether a variable is a list or tuple."""

    return isinstance(var, list) or isinstance(var, tuple)


def get_format(path, fmt=None, default="bmp"):
    """Get the output format for <path>. If <fmt> is None, the format is
    inferred from the file extension, falling back to <default>."""

    if fmt is None:
        ext = os.path.splitext(path)[1].lower().lstrip(".")
        fmt = ext if ext in _formats else default
    fmt = fmt.lower()
    if fmt not in _formats:
        raise ValueError(f"Unrecognised output format {fmt}; "
                         f"must be one of {_formats}")
    return fmt
