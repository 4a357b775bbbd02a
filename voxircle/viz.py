"""
Visualization and diagnostics toolkit.

Offline inspection of voxelizations: PNG plots of single layers with the
continuous outline on top, GIFs stepping through a layer stack, and printed
statistics.

Usage (CLI):
    python -m voxircle.viz layer  [--preset circle] [--radius-a 5] [--heuristic conservative] [--save-path ...]
    python -m voxircle.viz stack  [--min 0 --max 8] [--code "radius_a=8 - layer"] [--save-path ...]
    python -m voxircle.viz stats  [--min 0 --max 8] [--code "radius_a=sqrt(64 - l**2)"]
    python -m voxircle.viz stats  [--samples 3 --distribute exclude --combine percentage:0.5] ...

Or from a notebook:
    from voxircle.viz import plot_layer
    plot_layer(voxelize(circle(6.5), Heuristic.conservative()), shape=circle(6.5))
"""

import argparse
import logging
import os

import cv2
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from PIL import Image

from voxircle.boundary import boundary_2d, boundary_3d
from voxircle.config import SHAPE_PRESETS
from voxircle.errors import VoxircleError
from voxircle.logging_config import setup_logging
from voxircle.metrics import format_block_count, format_block_diameter, layer_statistics
from voxircle.raster import voxelize
from voxircle.sampling import SampleCombineMethod, SampleDistributeMethod, SamplingConfig
from voxircle.shapes import Heuristic, LayerParams, from_preset
from voxircle.stack import LayerStack
from voxircle.voxels import GridBounds

logger = logging.getLogger(__name__)

COLORS = {
    "background": (1.0, 1.0, 1.0),
    "interior": (0.55, 0.62, 0.80),
    "boundary": (0.20, 0.29, 0.55),
}


# -----------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------

def render_layer(voxels, boundary=None, bounds=None, scale=8):
    """Render a VoxelSet as an RGB float32 image, +y pointing up.

    Parameters
    ----------
    voxels : VoxelSet
    boundary : VoxelSet, optional
        Cells drawn in the boundary colour; the 2D boundary by default.
    bounds : GridBounds, optional
        Window to draw; the voxels' own bounds padded by one cell by default.
    scale : int
        Pixels per cell.

    Returns
    -------
    image : ndarray, shape (H * scale, W * scale, 3), float32 in [0, 1]
    """
    boundary = boundary_2d(voxels) if boundary is None else boundary
    if bounds is None:
        own = voxels.bounds()
        if own is None:
            return np.ones((scale, scale, 3), dtype=np.float32)
        bounds = own.pad(1)

    filled = voxels.window(bounds)
    edge = boundary.window(bounds)
    image = np.empty(bounds.shape + (3,), dtype=np.float32)
    image[:] = COLORS["background"]
    image[filled] = COLORS["interior"]
    image[edge & filled] = COLORS["boundary"]

    # rows grow with y; images grow downwards
    image = np.ascontiguousarray(image[::-1])
    h, w = image.shape[:2]
    return cv2.resize(image, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)


def plot_layer(voxels, shape=None, save_path="outputs/layer.png", title=None):
    """Plot one layer with cell grid, boundary and (optionally) the shape outline."""
    boundary = boundary_2d(voxels)
    own = voxels.bounds()
    if own is None and shape is not None:
        own = GridBounds.covering(shape.bounding_box(), margin=0)
    bounds = own.pad(1) if own is not None else None

    fig, ax = plt.subplots(figsize=(6, 6))
    if bounds is not None:
        image = render_layer(voxels, boundary, bounds, scale=1)
        extent = (bounds.min_x, bounds.max_x + 1, bounds.min_y, bounds.max_y + 1)
        ax.imshow(image, extent=extent, interpolation="nearest")
        ax.set_xticks(np.arange(bounds.min_x, bounds.max_x + 2), minor=True)
        ax.set_yticks(np.arange(bounds.min_y, bounds.max_y + 2), minor=True)
        ax.grid(which="minor", color="#cccccc", linewidth=0.5)

        if shape is not None:
            xs = np.linspace(extent[0], extent[1], 400)
            ys = np.linspace(extent[2], extent[3], 400)
            X, Y = np.meshgrid(xs, ys)
            ax.contour(X, Y, shape.implicit_value(X, Y), levels=[1.0],
                       colors="#d04040", linewidths=1.5)
            ax.plot(*shape.center, "r+", markersize=10)

    stats = layer_statistics(voxels)
    default_title = f"{format_block_count(stats.count)} blocks, {format_block_diameter(stats.diameters)}"
    ax.set_title(title or default_title, fontsize=9)
    ax.set_aspect("equal")

    plt.tight_layout()
    os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
    fig.savefig(save_path, dpi=120, bbox_inches="tight")
    plt.close(fig)
    logger.info("Layer plot saved to %s", save_path)
    return save_path


def create_stack_gif(stack, save_path="outputs/stack.gif", scale=8, duration=300):
    """Save a GIF stepping through the active layers, 3D boundary highlighted."""
    by_layer = stack.voxels_by_layer()
    exposed = boundary_3d(by_layer)
    bounds = None
    for voxels in by_layer.values():
        own = voxels.bounds()
        if own is not None:
            bounds = own if bounds is None else bounds.union(own)
    if bounds is None:
        logger.warning("Stack GIF not written: no generated cells")
        return None
    bounds = bounds.pad(1)

    frames = []
    for i, voxels in sorted(by_layer.items()):
        image = render_layer(voxels, exposed[i], bounds, scale)
        frames.append(Image.fromarray((image * 255).astype(np.uint8)))

    os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
    frames[0].save(save_path, save_all=True, append_images=frames[1:],
                   duration=duration, loop=0)
    logger.info("Stack GIF saved to %s (%d layers)", save_path, len(frames))
    return save_path


# -----------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------

def _build_stack(args):
    base = from_preset(args.preset, args.radius_a, args.radius_b, args.tilt, args.parity)
    defaults = LayerParams()
    for name, value in (
        ("center_x", base.center[0]),
        ("center_y", base.center[1]),
        ("radius_a", base.radius_a),
        ("radius_b", base.radius_b),
        ("tilt", base.tilt),
        ("squircle_param", base.squircle_param),
    ):
        defaults.set(name, value)
    defaults.heuristic = Heuristic.parse(args.heuristic)
    sampling = SamplingConfig(
        args.samples,
        SampleDistributeMethod(args.distribute),
        SampleCombineMethod.parse(args.combine),
    )
    stack = LayerStack(args.min, args.max, defaults=defaults, sampling=sampling)

    for item in args.code:
        param, _, text = item.partition("=")
        stack.set_code(param.strip(), text)
    for param, result in stack.run_code().items():
        if result is None:
            print(f"{param}: {stack.code_fields[param].expression.error}")
        elif result.failed:
            print(f"{param}: failed on layers {sorted(result.failed)}")

    errors = stack.regenerate_all(progress=args.progress)
    for i, e in errors.items():
        print(f"layer {i}: {e}")
    return stack


def main():
    shape_args = argparse.ArgumentParser(add_help=False)
    shape_args.add_argument("--preset", choices=sorted(SHAPE_PRESETS), default="circle")
    shape_args.add_argument("--radius-a", type=float, default=5.0)
    shape_args.add_argument("--radius-b", type=float, default=None)
    shape_args.add_argument("--tilt", type=float, default=0.0, help="radians")
    shape_args.add_argument("--parity", choices=["even", "odd"], default="even")
    shape_args.add_argument("--heuristic", default="centerpoint",
                            help="centerpoint | conservative | contained | percentage:T")
    shape_args.add_argument("--log-level", default="INFO")
    shape_args.add_argument("--log-file", default=None)

    stack_args = argparse.ArgumentParser(add_help=False)
    stack_args.add_argument("--min", type=int, default=0)
    stack_args.add_argument("--max", type=int, default=0)
    stack_args.add_argument("--code", action="append", default=[],
                            help="PARAM=FORMULA in the layer index, repeatable")
    stack_args.add_argument("--progress", action="store_true")
    stack_args.add_argument("--samples", type=int, default=1, help="samples per layer")
    stack_args.add_argument("--distribute", choices=[m.value for m in SampleDistributeMethod],
                            default=SampleDistributeMethod.INCLUDE_ENDPOINTS.value)
    stack_args.add_argument("--combine", default="all", help="all | any | percentage:F")

    p = argparse.ArgumentParser(description="voxircle visualization toolkit")
    sub = p.add_subparsers(dest="command")

    ly = sub.add_parser("layer", parents=[shape_args], help="Plot a single layer")
    ly.add_argument("--save-path", default="outputs/layer.png")

    st = sub.add_parser("stack", parents=[shape_args, stack_args], help="GIF of a layer stack")
    st.add_argument("--save-path", default="outputs/stack.gif")
    st.add_argument("--scale", type=int, default=8)

    sub.add_parser("stats", parents=[shape_args, stack_args], help="Print statistics")

    args = p.parse_args()
    if args.command is None:
        p.print_help()
        return
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO), args.log_file)

    try:
        if args.command == "layer":
            shape = from_preset(args.preset, args.radius_a, args.radius_b, args.tilt, args.parity)
            voxels = voxelize(shape, Heuristic.parse(args.heuristic))
            plot_layer(voxels, shape=shape, save_path=args.save_path)

        elif args.command == "stack":
            stack = _build_stack(args)
            create_stack_gif(stack, save_path=args.save_path, scale=args.scale)

        elif args.command == "stats":
            stack = _build_stack(args)
            stats = stack.statistics()
            for i, layer_stats in sorted(stats.layers.items()):
                print(f"--- layer {i}")
                for line in layer_stats.summary():
                    print(f"  {line}")
            print("--- stack")
            for line in stats.summary():
                print(f"  {line}")
    except VoxircleError as e:
        logger.error("%s", e)
        raise SystemExit(2) from None


if __name__ == "__main__":
    main()
