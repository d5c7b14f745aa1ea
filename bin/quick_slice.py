"""Script for extracting slices from a MetaImage volume from the command
line."""

import argparse
import logging
import sys

from quickslicer import SliceRequest, SliceError, extract_slices, get_config


parser = argparse.ArgumentParser(
    description="Extract slices from volumetric data.")

# Get input paths
parser.add_argument("header", type=str,
                    help="Path to MetaImage header (.mhd or .mha)")
parser.add_argument("--data", "-d", type=str, metavar="FILE",
                    help="Path to binary voxel data (default: the file named "
                    "by ElementDataFile in the header)")

# Get output paths and slice indices
for ax in ["x", "y", "z"]:
    parser.add_argument(f"--{ax}file", f"-{ax}", type=str, metavar="FILE",
                        help=f"Output file for the {ax} slice")
    parser.add_argument(f"--{ax}idx", f"-i{ax}", type=int, metavar="IDX",
                        help=f"Index of the {ax} slice (default: centre)")
    parser.add_argument(f"--{ax}format", f"-f{ax}", type=str,
                        choices=["bmp", "raw", "png", "npy"],
                        help=f"Output format for the {ax} slice (default: "
                        "--format, else from file extension)")

# Get output options
parser.add_argument("--format", "-f", type=str,
                    choices=["bmp", "raw", "png", "npy"],
                    help="Output format for all slices (default: from file "
                    "extension)")
parser.add_argument("--normalisation", "-n", type=str,
                    choices=["slice", "volume", "window"],
                    help="Intensity normalisation method")
parser.add_argument("--window", "-w", nargs=2, type=float,
                    metavar=("MIN", "MAX"),
                    help="Intensity window for window normalisation")
parser.add_argument("--workers", "-j", type=int, metavar="N",
                    help="Number of threads used to produce slices")
parser.add_argument("--settings", "-s", type=str, metavar="FILE",
                    help="Settings file (default: bundled settings.ini)")
parser.add_argument("--verbose", "-v", action="count", default=0,
                    help="Verbose output (can be given multiple times)")

# Parse arguments
args = parser.parse_args()
level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

outputs = []
for ax in ["x", "y", "z"]:
    path = getattr(args, f"{ax}file")
    if path is not None:
        fmt = getattr(args, f"{ax}format") or args.format
        outputs.append(SliceRequest(ax, path, fmt,
                                    getattr(args, f"{ax}idx")))
if not outputs:
    parser.error("Please give at least one output file (-x, -y, or -z)")

# Extract slices
try:
    config = get_config(args.settings, normalisation=args.normalisation,
                        window=args.window, workers=args.workers)
    extract_slices(args.header, outputs, config, args.data)
except (SliceError, ValueError) as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)
