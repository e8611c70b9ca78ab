#!/usr/bin/env python3
"""
FLOW Image Runner

Grows a single FLOW image on a worker thread while printing progress,
then exports the color image, every render view, and an .npz with metadata.
"""

import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt

# Make the package importable without installation
SRC = Path(__file__).resolve().parents[1]
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from flow_sim import ConfigurationError, FlowConfig, FlowSimulator, ProgressPrinter, utils


def build_config(args: argparse.Namespace) -> FlowConfig:
    """Parameter file first, then explicit command-line values on top."""
    params = utils.load_params(args.params) if args.params else {}
    for key in ("width", "height", "n_points", "randomness", "seed"):
        value = getattr(args, key)
        if value is not None:
            params[key] = value
    params["verbose"] = True
    return FlowConfig.from_dict(params)


def show_views(sim: FlowSimulator) -> None:
    names = sim.views.names()
    fig, axes = plt.subplots(1, len(names), figsize=(5 * len(names), 5), squeeze=False)
    for ax, name in zip(axes[0], names):
        ax.imshow(sim.snapshot(name), interpolation="nearest")
        ax.set_title(name)
        ax.axis("off")
    fig.suptitle(sim.progress_string())
    plt.tight_layout()
    plt.show()


def main():
    parser = argparse.ArgumentParser(
        description="Generate a FLOW image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=None, help="Image width (default: 256)")
    parser.add_argument("--height", type=int, default=None, help="Image height (default: 256)")
    parser.add_argument(
        "--points", dest="n_points", type=int, default=None,
        help="Amount of starting points (default: 3)",
    )
    parser.add_argument(
        "--randomness", type=float, default=None,
        help="Randomness per pixel, between 0 and 30 (default: 5)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility")
    parser.add_argument("--params", type=str, default=None, help="JSON or TOML parameter file")
    parser.add_argument(
        "--out-dir", type=str, default="out/flow",
        help="Output directory; files are numbered 00001, 00002, ... (default: out/flow)",
    )
    parser.add_argument("--show", action="store_true", help="Display every render view when done")
    parser.add_argument(
        "--view", type=str, default=None,
        help="Render view to keep live while generating (default: first view)",
    )

    args = parser.parse_args()

    try:
        sim = FlowSimulator(build_config(args))
    except ConfigurationError as exc:
        print(f"  [ERROR] - {exc}")
        return 2

    try:
        if args.view is not None:
            sim.activate_view(args.view)

        sim.start()
        with ProgressPrinter(sim.reporter):
            result = sim.join()

        # Bring every view up to date before exporting
        for name in sim.views.names():
            future = sim.views.redraw(name, full=True)
            if future is not None:
                future.result()

        image_path = utils.next_output_path(args.out_dir, "png")
        print(f"Exporting to {image_path}")
        utils.save_image(image_path, result.colors)
        for name in sim.views.names():
            utils.save_image(
                image_path.with_name(f"{image_path.stem}_{name}.png"), sim.snapshot(name)
            )
        utils.save_result(image_path.with_suffix(".npz"), result)

        if args.show:
            show_views(sim)
    finally:
        sim.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
