"""voxircle - Voxelize circles, ellipses and squircles into block layers."""

from voxircle.config import HEURISTICS, PARAMETERS, SHAPE_PRESETS, STACK_SIZE
from voxircle.raster import voxelize
from voxircle.shapes import Heuristic, LayerParams, Shape
from voxircle.stack import LayerStack
from voxircle.voxels import GridBounds, VoxelSet
