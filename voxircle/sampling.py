"""
Sub-layer sampling.

With ``nr_samples > 1`` a layer is no longer generated from its integer
index alone.  Code fields are evaluated at several heights inside the layer
(the slab ``[layer - 0.5, layer + 0.5]``), each sample is voxelized on its
own, and the per-sample results are merged into the layer's VoxelSet.

    include endpoints   n points spaced 1/(n-1) apart, both slab faces included
    exclude endpoints   n points at the centres of n equal sub-slabs

The lowest and highest layers may sample only the half of their slab that
faces into the stack.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

import numpy as np

from voxircle.errors import ConfigurationError
from voxircle.voxels import VoxelSet

logger = logging.getLogger(__name__)


class SampleDistributeMethod(Enum):
    INCLUDE_ENDPOINTS = "include"
    EXCLUDE_ENDPOINTS = "exclude"

    def __str__(self):
        return {
            SampleDistributeMethod.INCLUDE_ENDPOINTS: "Include endpoints",
            SampleDistributeMethod.EXCLUDE_ENDPOINTS: "Exclude endpoints",
        }[self]


class CombineKind(Enum):
    ALL = "all"
    ANY = "any"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class SampleCombineMethod:
    """How per-sample VoxelSets merge into one layer."""
    kind: CombineKind = CombineKind.ALL
    fraction: Optional[float] = None    # PERCENTAGE only, in (0, 1]

    def __post_init__(self):
        if self.kind is CombineKind.PERCENTAGE:
            f = self.fraction
            if f is None or isinstance(f, bool) or not 0.0 < f <= 1.0:
                raise ConfigurationError(f"sample fraction must be in (0, 1], got {f!r}")
            object.__setattr__(self, "fraction", float(f))
        elif self.fraction is not None:
            raise ConfigurationError(f"{self.kind.value} combine takes no fraction")

    @classmethod
    def all_samples(cls):
        return cls(CombineKind.ALL)

    @classmethod
    def any_samples(cls):
        return cls(CombineKind.ANY)

    @classmethod
    def percentage(cls, fraction: float):
        return cls(CombineKind.PERCENTAGE, fraction)

    @classmethod
    def parse(cls, text: str) -> "SampleCombineMethod":
        """``all``, ``any`` or ``percentage:F`` (case-insensitive)."""
        name, _, arg = text.strip().lower().partition(":")
        if name == "all" and not arg:
            return cls.all_samples()
        if name == "any" and not arg:
            return cls.any_samples()
        if name == "percentage":
            try:
                return cls.percentage(float(arg))
            except ValueError:
                raise ConfigurationError(f"bad sample fraction in {text!r}") from None
        raise ConfigurationError(f"unknown combine method {text!r}")

    def __str__(self):
        if self.kind is CombineKind.ALL:
            return "All samples"
        if self.kind is CombineKind.ANY:
            return "Any samples"
        return f"≥{self.fraction * 100:.0f}% of samples"


@dataclass(frozen=True)
class SamplingConfig:
    nr_samples: int = 1
    distribute: SampleDistributeMethod = SampleDistributeMethod.INCLUDE_ENDPOINTS
    combine: SampleCombineMethod = field(default_factory=SampleCombineMethod.all_samples)
    only_sample_half_of_bottom_layer: bool = False
    only_sample_half_of_top_layer: bool = False

    def __post_init__(self):
        n = self.nr_samples
        if isinstance(n, bool) or not isinstance(n, int) or n < 1:
            raise ConfigurationError(f"nr_samples must be a positive integer, got {n!r}")

    @property
    def is_sampled(self) -> bool:
        return self.nr_samples > 1


def sampling_points(config: SamplingConfig, layer: int, lowest: int, highest: int) -> List[float]:
    """Heights at which *layer* is sampled, in increasing order.

    A single sample is the layer index itself.  When halving leaves no point
    (a one-layer stack halved at both ends), the layer index is used.
    """
    n = config.nr_samples
    if n == 1:
        return [float(layer)]
    halve_bottom = config.only_sample_half_of_bottom_layer and layer == lowest
    halve_top = config.only_sample_half_of_top_layer and layer == highest

    if config.distribute is SampleDistributeMethod.INCLUDE_ENDPOINTS:
        step = 1.0 / (n - 1)
        start = n // 2 if halve_bottom else 0
        end = (n + 1) // 2 if halve_top else n
        points = [layer + step * k - 0.5 for k in range(start, end)]
    else:
        step = 1.0 / n
        start = n // 2 + 1 if halve_bottom else 1
        end = (n + 1) // 2 if halve_top else n
        points = [layer + step * k - 0.5 - 0.5 * step for k in range(start, end + 1)]

    return points or [float(layer)]


def combine_voxels(voxel_sets: Iterable[VoxelSet], method: SampleCombineMethod) -> VoxelSet:
    """Merge per-sample results: a cell is kept by vote over the samples."""
    voxel_sets = list(voxel_sets)
    if not voxel_sets:
        return VoxelSet.empty()
    if len(voxel_sets) == 1:
        return voxel_sets[0]

    bounds = None
    for voxels in voxel_sets:
        b = voxels.bounds()
        if b is not None:
            bounds = b if bounds is None else bounds.union(b)
    if bounds is None:
        return VoxelSet.empty()

    counts = np.sum([v.window(bounds) for v in voxel_sets], axis=0)
    total = len(voxel_sets)
    if method.kind is CombineKind.ALL:
        mask = counts == total
    elif method.kind is CombineKind.ANY:
        mask = counts > 0
    else:
        mask = counts >= total * method.fraction
    return VoxelSet.from_window(mask, bounds)
