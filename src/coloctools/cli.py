#!/usr/bin/env python3
"""
coloctools CLI - Colocalization statistics for two-channel images.

Usage:
    coloctools run CH1 CH2                      # Whole-image analysis
    coloctools run CH1 CH2 --mask MASK.tif      # Restrict to a mask image
    coloctools run CH1 CH2 --roi cells.rois.json --roi-name soma
    coloctools run CH1 CH2 --rect 10 10 --size 64 64
    coloctools run CH1 CH2 --csv results.csv    # Also write a CSV table
    coloctools --check                          # Check dependencies
    coloctools --version
"""

import argparse
import logging
import sys

from coloctools.errors import MissingPreconditionError

logger = logging.getLogger("coloctools")

LOG_FORMAT = "%(asctime)s [%(levelname)-5s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="coloctools",
        description="coloctools - pixel-intensity colocalization statistics",
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version and exit"
    )
    parser.add_argument(
        "--check", "-c",
        action="store_true",
        help="Check dependencies and exit"
    )

    subparsers = parser.add_subparsers(dest="command")

    # ── coloctools run ──
    run_parser = subparsers.add_parser(
        "run",
        help="Colocalization analysis of two channel images",
        description=(
            "Run input checks, auto-threshold regression, Pearson's, Li, "
            "Spearman, Manders, Kendall tau, 2D histogram and the Costes "
            "significance test on two single-channel images (.tif/.tiff/.npy)."
        ),
    )
    run_parser.add_argument("channel1", help="Channel 1 image")
    run_parser.add_argument("channel2", help="Channel 2 image")

    region = run_parser.add_mutually_exclusive_group()
    region.add_argument("--mask", help="Mask image; non-zero pixels are analysed")
    region.add_argument("--roi", help="ROI JSON file with polygon vertices ([y, x])")
    region.add_argument("--rect", type=int, nargs="+", metavar="OFFSET",
                        help="Rectangular ROI offset per axis")
    run_parser.add_argument("--size", type=int, nargs="+",
                            help="Rectangular ROI size per axis (with --rect)")
    run_parser.add_argument("--roi-name", action="append", dest="roi_names",
                            help="Only analyse the ROI with this name (repeatable)")
    run_parser.add_argument("--names", nargs=2, metavar=("CH1", "CH2"),
                            help="Channel names (default: file stems)")

    run_parser.add_argument("--psf", type=int, default=None,
                            help="PSF radius in pixels for the Costes test (default: 3)")
    run_parser.add_argument("--costes-randomisations", type=int, default=None,
                            help="Costes shuffle rounds (default: 10)")
    run_parser.add_argument("--kendall-randomisations", type=int, default=None,
                            help="Max Kendall tau shuffle rounds (default: 10)")
    run_parser.add_argument("--regression", choices=["bisection", "costes"], default=None,
                            help="Threshold search strategy (default: bisection)")
    run_parser.add_argument("--seed", type=int, default=None,
                            help="Random seed for reproducible randomisation tests")

    for stage in ("costes", "kendall", "max-kendall", "spearman", "manders",
                  "li", "histogram", "input-check"):
        run_parser.add_argument(f"--no-{stage}", action="store_true",
                                help=f"Skip the {stage.replace('-', ' ')} stage")

    run_parser.add_argument("--csv", help="Write the result table to this CSV file")
    run_parser.add_argument("--verbose", "-v", action="store_true",
                            help="Debug logging")
    return parser


def main(argv=None):
    """Main entry point for the coloctools command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from coloctools import __version__
        print(f"coloctools {__version__}")
        return 0

    if args.check:
        return check_dependencies()

    if args.command == "run":
        return run_command(args)

    parser.print_help()
    return 0


def _settings_from_args(args):
    from coloctools.config import settings_from_env

    return settings_from_env(
        psf=args.psf,
        costes_randomisations=args.costes_randomisations,
        kendall_randomisations=args.kendall_randomisations,
        regression=args.regression,
        seed=args.seed,
        use_costes=False if args.no_costes else None,
        use_kendall_tau=False if args.no_kendall else None,
        use_max_kendall_tau=False if args.no_max_kendall else None,
        use_spearman=False if args.no_spearman else None,
        use_manders=False if args.no_manders else None,
        use_li_icq=False if args.no_li else None,
        use_li_histograms=False if args.no_li else None,
        use_histogram=False if args.no_histogram else None,
        use_input_check=False if args.no_input_check else None,
    )


def run_command(args):
    """Analyse one image pair, once per mask."""
    from pathlib import Path

    from coloctools.colocalise import colocalise
    from coloctools.core.io import load_channel, load_mask, roi_masks
    from coloctools.core.mask import Mask
    from coloctools.results import format_results_table

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for f in (args.channel1, args.channel2, args.mask, args.roi):
        if f is not None and not Path(f).exists():
            print(f"Error: {f} does not exist")
            return 1

    try:
        settings = _settings_from_args(args)
        ch1 = load_channel(args.channel1)
        ch2 = load_channel(args.channel2)
        names = tuple(args.names) if args.names else (Path(args.channel1).stem,
                                                      Path(args.channel2).stem)
        if args.mask:
            masks = [load_mask(args.mask)]
        elif args.roi:
            masks = roi_masks(args.roi, ch1.shape, args.roi_names)
        elif args.rect:
            masks = [Mask.from_rectangle(ch1.shape, args.rect, args.size)]
        else:
            masks = [None]
    except (ValueError, OSError, MissingPreconditionError) as e:
        print(f"Error: {e}")
        return 1

    all_frames = []
    for i, mask in enumerate(masks):
        if len(masks) > 1:
            print(f"\n{'='*60}")
            print(f"[{i+1}/{len(masks)}] mask {mask.identifier}")
            print(f"{'='*60}")
        results = colocalise(ch1, ch2, mask=mask, settings=settings, names=names)
        print(format_results_table(results))
        if args.csv:
            frame = results.to_dataframe()
            frame.insert(0, 'job', results.get("Coloc_Job_Name", f"job_{i+1}"))
            all_frames.append(frame)

    if args.csv:
        import pandas as pd

        out = Path(args.csv)
        out.parent.mkdir(parents=True, exist_ok=True)
        pd.concat(all_frames, ignore_index=True).to_csv(out, index=False)
        print(f"\nResults written to {out}")

    return 0


def check_dependencies():
    """Check that all required dependencies are available."""
    from coloctools import __version__
    print(f"coloctools v{__version__} -- Dependency Check")
    print("=" * 55)

    deps = [
        ("numpy", "numpy"),
        ("scipy", "scipy"),
        ("scikit-image", "skimage"),
        ("pandas", "pandas"),
        ("matplotlib", "matplotlib"),
        ("tifffile", "tifffile"),
    ]

    import importlib

    missing = []
    for name, module in deps:
        try:
            mod = importlib.import_module(module)
            version = getattr(mod, "__version__", "?")
            print(f"  [OK]      {name} {version}")
        except ImportError:
            print(f"  [MISSING] {name}")
            missing.append(name)

    print("=" * 55)
    if missing:
        print(f"Install missing packages: pip install {' '.join(missing)}")
        return 1
    print("All dependencies available.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
