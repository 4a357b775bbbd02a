"""
Layer stack: independently parameterized 2D layers indexed by integers.

Each layer caches its VoxelSet.  Editing a parameter invalidates the cache
(the last good result is kept in ``previous_voxels`` for display) and the
next ``regenerate_all`` recomputes every dirty layer in the active range
``[min_index, max_index]``, in increasing index order.

Layers that fall outside the range after shrinking keep their data but take
no part in boundaries or statistics until the range grows back over them.

With a ``SamplingConfig`` of more than one sample, every layer has a list of
sample heights (``sample_points``).  Formulas write one value per height
into ``Layer.sample_values``; regeneration voxelizes each sample and merges
the results with the configured combine method.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tqdm import tqdm

from voxircle.config import PARAM_NAMES, PARAMETERS
from voxircle.errors import ConfigurationError
from voxircle.expression import CodeField
from voxircle.metrics import stack_statistics
from voxircle.raster import voxelize_layer_params
from voxircle.sampling import SamplingConfig, combine_voxels, sampling_points
from voxircle.shapes import Heuristic, LayerParams
from voxircle.voxels import VoxelSet

logger = logging.getLogger(__name__)


@dataclass
class Layer:
    index: int
    params: LayerParams = field(default_factory=LayerParams)
    # expression that last wrote each parameter (None: set by hand)
    code_fields: Dict[str, object] = field(default_factory=dict)
    # per-sample values of formula-driven parameters, aligned with the sample points
    sample_values: Dict[str, List[float]] = field(default_factory=dict)
    voxels: Optional[VoxelSet] = None
    previous_voxels: Optional[VoxelSet] = None
    error: Optional[ConfigurationError] = None

    @property
    def dirty(self) -> bool:
        return self.voxels is None

    @property
    def display_voxels(self) -> Optional[VoxelSet]:
        """Current result, or the last good one while dirty or failed."""
        return self.voxels if self.voxels is not None else self.previous_voxels


class LayerStack:
    """Integer-indexed layers with a movable current-layer cursor."""

    def __init__(self, min_index=0, max_index=0, current=None, defaults=None, sampling=None):
        if min_index > max_index:
            raise ConfigurationError(f"empty layer range [{min_index}, {max_index}]")
        self.defaults = defaults.copy() if defaults is not None else LayerParams()
        self.sampling = sampling if sampling is not None else SamplingConfig()
        self.layers: Dict[int, Layer] = {}
        self.sample_points: Dict[int, List[float]] = {}
        self.min_index = min_index
        self.max_index = max_index
        self._create_missing()
        self._update_sample_points()
        current = min_index if current is None else current
        if not min_index <= current <= max_index:
            raise ConfigurationError(f"current layer {current} outside [{min_index}, {max_index}]")
        self.current = current
        self.code_fields = {name: CodeField(name) for name in PARAM_NAMES}

    def __len__(self):
        return self.max_index - self.min_index + 1

    def __iter__(self):
        """Active layers in increasing index order."""
        return (self.layers[i] for i in self.indices())

    def __repr__(self):
        return f"LayerStack([{self.min_index}, {self.max_index}], current={self.current})"

    def indices(self):
        return range(self.min_index, self.max_index + 1)

    def _create_missing(self):
        for i in self.indices():
            if i not in self.layers:
                self.layers[i] = Layer(i, self.defaults.copy())

    def _update_sample_points(self):
        """Recompute sample heights; layers whose heights moved drop their samples."""
        for i in self.indices():
            points = sampling_points(self.sampling, i, self.min_index, self.max_index)
            old = self.sample_points.get(i)
            if old is not None and old != points:
                self.layers[i].sample_values.clear()
                self.invalidate(i)
            self.sample_points[i] = points

    def set_sampling(self, config: SamplingConfig) -> None:
        """Replace the sampling configuration; every layer must be regenerated.

        Stored per-sample values are dropped, so formulas need to be run again.
        """
        self.sampling = config
        self.sample_points = {}
        for layer in self.layers.values():
            layer.sample_values.clear()
        self._update_sample_points()
        for i in self.indices():
            self.invalidate(i)
        logger.info("sampling: %d samples, %s, %s", config.nr_samples,
                    config.distribute, config.combine)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def current_layer(self) -> Layer:
        return self.layers[self.current]

    def in_range(self, index: int) -> bool:
        return self.min_index <= index <= self.max_index

    def set_current(self, index: int) -> bool:
        """Move the cursor; a step just past either end grows the range by one.

        Returns False (and changes nothing) for any other out-of-range index.
        """
        if self.in_range(index):
            self.current = index
            return True
        if index == self.min_index - 1:
            self.expand_bounds(index, self.max_index)
        elif index == self.max_index + 1:
            self.expand_bounds(self.min_index, index)
        else:
            return False
        self.current = index
        return True

    def expand_bounds(self, new_min: int, new_max: int) -> None:
        """Set the active range, creating default layers for new indices.

        Existing layers are never touched, including ones left outside the
        range by shrinking.  The cursor is clamped into the new range.
        """
        if new_min > new_max:
            raise ConfigurationError(f"empty layer range [{new_min}, {new_max}]")
        self.min_index, self.max_index = new_min, new_max
        self._create_missing()
        self._update_sample_points()
        self.current = min(max(self.current, new_min), new_max)
        logger.debug("layer range now [%d, %d], current %d", new_min, new_max, self.current)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _layer(self, index: int) -> Layer:
        if not self.in_range(index):
            raise IndexError(f"layer {index} outside [{self.min_index}, {self.max_index}]")
        return self.layers[index]

    def invalidate(self, index: int) -> None:
        layer = self._layer(index)
        if layer.voxels is not None:
            layer.previous_voxels = layer.voxels
            layer.voxels = None

    def set_param(self, index: int, name: str, value, source=None, samples=None) -> None:
        """Validate and set one parameter of one layer, then invalidate it.

        *source* is the expression the value came from, if any.  *samples*
        gives one value per sample point of the layer; without it any stored
        per-sample values of *name* are dropped.  Nothing changes unless
        every value is acceptable.

        Raises:
            ConfigurationError: unknown name, unacceptable value, or a
                sample list that does not match the sample points.
        """
        layer = self._layer(index)
        if samples is not None:
            samples = self._checked_samples(index, name, samples)
        layer.params.set(name, value)
        if samples is None:
            layer.sample_values.pop(name, None)
        else:
            layer.sample_values[name] = samples
        layer.code_fields[name] = source
        self.invalidate(index)

    def _checked_samples(self, index, name, samples):
        if name not in PARAMETERS:
            raise ConfigurationError(f"unknown parameter {name!r}")
        samples = list(samples)
        expected = len(self.sample_points[index])
        if len(samples) != expected:
            raise ConfigurationError(
                f"layer {index} has {expected} sample points, got {len(samples)} values"
            )
        for value in samples:
            error = PARAMETERS[name].check(value)
            if error:
                raise ConfigurationError(error)
        return [float(v) for v in samples]

    def sample_params(self, index: int) -> List[LayerParams]:
        """Parameters of each sample of a layer, in sample-point order."""
        layer = self._layer(index)
        if not layer.sample_values:
            return [layer.params]
        out = []
        for k in range(len(self.sample_points[index])):
            params = layer.params.copy()
            for name, values in layer.sample_values.items():
                setattr(params, name, values[k])
            out.append(params)
        return out

    def set_current_param(self, name: str, value) -> None:
        self.set_param(self.current, name, value)

    def set_heuristic(self, index: int, heuristic: Heuristic) -> None:
        self._layer(index).params.heuristic = heuristic
        self.invalidate(index)

    def copy_params(self, src: int, dst: int) -> None:
        source, target = self._layer(src), self._layer(dst)
        target.params = source.params.copy()
        if len(self.sample_points[src]) == len(self.sample_points[dst]):
            target.sample_values = {k: list(v) for k, v in source.sample_values.items()}
        else:
            target.sample_values = {}
        self.invalidate(dst)

    def fill_from_current(self) -> None:
        """Copy the current layer's parameters onto every other active layer."""
        for i in self.indices():
            if i != self.current:
                self.copy_params(self.current, i)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def regenerate(self, index: int) -> Optional[ConfigurationError]:
        """Recompute one layer; returns the error instead of raising it."""
        layer = self._layer(index)
        try:
            samples = [voxelize_layer_params(p) for p in self.sample_params(index)]
            voxels = combine_voxels(samples, self.sampling.combine)
        except ConfigurationError as e:
            layer.error = e
            logger.warning("layer %d not generated: %s", index, e)
            return e
        layer.voxels = voxels
        layer.previous_voxels = None
        layer.error = None
        logger.debug("layer %d: %d cells", index, len(voxels))
        return None

    def regenerate_all(self, progress: bool = False) -> Dict[int, ConfigurationError]:
        """Recompute every dirty active layer; returns ``{index: error}`` for failures."""
        dirty = [i for i in self.indices() if self.layers[i].dirty]
        errors = {}
        for i in tqdm(dirty, desc="Layers", disable=not progress, leave=False):
            error = self.regenerate(i)
            if error is not None:
                errors[i] = error
        if dirty:
            logger.info("regenerated %d layers (%d failed)", len(dirty), len(errors))
        return errors

    def current_voxels(self) -> Optional[VoxelSet]:
        """What the current layer shows: its result, or the last good one while dirty."""
        return self.current_layer.display_voxels

    def voxels_by_layer(self) -> Dict[int, VoxelSet]:
        """Generated VoxelSets of the active range."""
        return {i: self.layers[i].voxels for i in self.indices()
                if self.layers[i].voxels is not None}

    def statistics(self):
        return stack_statistics(self)

    # ------------------------------------------------------------------
    # Code fields
    # ------------------------------------------------------------------

    def set_code(self, param: str, text: str):
        if param not in self.code_fields:
            raise ConfigurationError(f"unknown parameter {param!r}")
        return self.code_fields[param].set_text(text)

    def run_code(self) -> dict:
        """Run every non-empty code field; ``{param: ApplyResult or None}``."""
        results = {}
        for name, code in self.code_fields.items():
            if code.expression.is_empty:
                continue
            results[name] = code.run(self)
        return results
