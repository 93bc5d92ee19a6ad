import argparse

from jxldec.config import build_request, load_config, validate_request
from jxldec.encoders import list_encoders
from jxldec.errors import EXIT_SUCCESS, JxlDecError, UsageError
from jxldec.io import read_file
from jxldec.pipeline import Decompressor
from jxldec.utils import Printer

__version__ = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="jxldec",
        description="Decode a compressed image to a file, or reconstruct its embedded JPEG.",
    )
    p.add_argument("file_in", metavar="INPUT", nargs="?", default=None,
                   help="compressed input file, '-' for stdin")
    p.add_argument("file_out", metavar="OUTPUT", nargs="?", default=None,
                   help=f"output file, '-' for stdout. Formats: {list_encoders()}. "
                        "Selected by extension or --output_format")
    p.add_argument("--config", default=None, help="YAML file with option defaults")
    p.add_argument("-V", "--version", action="store_true", help="print version number and exit")
    p.add_argument("--quiet", action="store_true", default=None, help="silence output (except for errors)")
    p.add_argument("-v", "--verbose", action="count", default=None, help="verbose output; can be repeated")

    g = p.add_argument_group("basic options")
    g.add_argument("--output_format", default=None,
                   help="output format, overrides the OUTPUT extension (png, apng, jpg, ppm, npy, exif, ...)")
    g.add_argument("--num_threads", type=int, default=None,
                   help="worker threads (-1 == machine default, 0 == no multithreading)")
    g.add_argument("--bits_per_sample", type=int, default=None,
                   help="output bit depth; 0 keeps the input depth (default for PNM), "
                        "-1 lets the output format decide")
    g.add_argument("--display_nits", type=float, default=None,
                   help="tone map to this peak display luminance if non-zero")
    g.add_argument("--color_space", default=None, help="desired output color space, e.g. RGB_D65_SRG_Per_SRG")
    g.add_argument("-s", "--downsampling", type=int, default=None, help="1|2|4|8 target downsampling hint")
    g.add_argument("--allow_partial_files", action="store_true", default=None,
                   help="allow decoding of truncated files")
    g.add_argument("-j", "--pixels_to_jpeg", action="store_true", default=None,
                   help="decode to pixels and encode a new JPEG instead of reconstructing the original")
    g.add_argument("-q", "--jpeg_quality", type=int, default=None,
                   help="JPEG output quality (default 95); implies --pixels_to_jpeg")

    b = p.add_argument_group("experimentation / benchmarking")
    b.add_argument("--num_reps", type=int, default=None, help="decode this many times (default 1)")
    b.add_argument("--disable_output", action="store_true", default=None, help="decode but write nothing")
    b.add_argument("--output_extra_channels", action="store_true", default=None,
                   help="write extra channels as separate files with suffix -ecN")
    b.add_argument("--output_frames", action="store_true", default=None,
                   help="write every frame, as separate files with suffix -N where needed")
    b.add_argument("--norender_spotcolors", dest="render_spotcolors", action="store_false", default=None,
                   help="disable rendering of spot colors")
    b.add_argument("--no_coalescing", dest="coalescing", action="store_false", default=None,
                   help="disable coalescing of layers")
    b.add_argument("--preview_out", default=None, help="write the preview image to this file")
    b.add_argument("--icc_out", default=None, help="write the ICC profile of the decoded image to this file")
    b.add_argument("--orig_icc_out", default=None, help="write the ICC profile of the original image to this file")
    b.add_argument("--metadata_out", default=None, help="write metadata info (JSON) to this file")
    b.add_argument("--background", default=None, help="'black', 'white' (default) or '#NNNNNN' for --alpha_blend")
    b.add_argument("--alpha_blend", action="store_true", default=None,
                   help="blend alpha with the color image over --background")
    b.add_argument("--print_read_bytes", action="store_true", default=None,
                   help="print total number of decoded bytes")
    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"jxldec {__version__}")
        return EXIT_SUCCESS

    printer = Printer(quiet=bool(args.quiet), verbose=args.verbose or 0)
    if args.file_in is None:
        parser.print_help()
        return EXIT_SUCCESS

    try:
        cfg = load_config(args.config)
        req = validate_request(build_request(vars(args), cfg))
        printer = Printer(quiet=req.quiet, verbose=req.verbose)
        data = read_file(req.file_in)
        printer(1, f"Read {len(data)} compressed bytes.")
        Decompressor(req, printer=printer).run(data)
    except JxlDecError as e:
        printer.error(str(e))
        if isinstance(e, UsageError):
            printer.error(f"Use '{parser.prog} -h' for more information")
        return e.exit_code
    return EXIT_SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
