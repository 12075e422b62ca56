"""
Here we find one of two fundamental structures in the DFT-code: The Grid.

The Grid is "Dumb" in the sense that it does not perform calculations. It only holds information about the Geometry
(symmetry) of the domain, the node positions and quadrature weights, and the spectral transform used for convolutions.

HOWEVER: The *whole point* of the Grid structure is that other code can be Geometry and domain-size agnostic.
        That means: If you find yourself writing
            if grid.geometry == Geometry.PLANAR:
                ...
            elif grid.geometry == Geometry.SPHERICAL:
                ...
        You are likely doing something wrong. Whatever you are trying to do can probably be handled by calling a method
        in the grid (or its transform), that correctly handles the cases for different geometries.
        A nice example is computing the volume of a grid or subgrid. We do this using the Grid.volume() method, not
        by checking the geometry and treating the different cases every time we need the volume.

The transform strategy is selected once, when the grid is constructed, and is shared between all grids with the
same signature (see transforms.get_transform).
"""
from enum import IntEnum
from collections.abc import Iterable
import numpy as np
from dftpack.errors import InvalidGeometry
from dftpack.transforms import get_transform


class Geometry(IntEnum):
    PLANAR = 1
    POLAR = 2
    SPHERICAL = 3
    CARTESIAN = 4


def _as_tuple(val, ndim, name):
    if isinstance(val, Iterable):
        val = tuple(val)
    else:
        val = (val,) * ndim
    if len(val) != ndim:
        raise InvalidGeometry(f'{name} has {len(val)} entries, but the grid has {ndim} axes.')
    return val


class Grid:
    """
    Spatial discretisation, determined by a domain size, number of gridpoints, and geometry.

    For the 1-D geometries (PLANAR, POLAR, SPHERICAL), `n_grid`, `domain_size` and `domain_start` are numbers. For
    CARTESIAN grids (periodic boxes with 1-3 axes), they are sequences with one entry per axis.
    POLAR and SPHERICAL grids are radial, and must start at r = 0. POLAR grids are non-uniform (nodes at the zeros
    of the Bessel function J0), with Gauss-type quadrature weights.
    """

    def __init__(self, n_grid, geometry, domain_size, domain_start=0):
        try:
            self.geometry = Geometry(geometry)
        except ValueError:
            raise InvalidGeometry(f'Unknown geometry : {geometry}')

        if self.geometry == Geometry.CARTESIAN:
            ndim = len(n_grid) if isinstance(n_grid, Iterable) else 1
            if not 1 <= ndim <= 3:
                raise InvalidGeometry(f'Cartesian grids must have 1-3 axes, got {ndim}.')
        else:
            ndim = 1

        self.shape = tuple(int(n) for n in _as_tuple(n_grid, ndim, 'n_grid'))
        extent = tuple(float(L) for L in _as_tuple(domain_size, ndim, 'domain_size'))
        start = tuple(float(s) for s in _as_tuple(domain_start, ndim, 'domain_start'))

        if any(n < 2 for n in self.shape):
            raise InvalidGeometry(f'A grid needs at least 2 nodes along each axis, got {self.shape}.')
        if any((not np.isfinite(L)) or (L <= 0) for L in extent):
            raise InvalidGeometry(f'Domain size must be positive and finite, got {extent}.')
        if self.geometry in (Geometry.POLAR, Geometry.SPHERICAL) and start[0] != 0:
            raise InvalidGeometry(f'{self.geometry.name} grids are radial, and must start at 0 (got {start[0]}).')

        self.transform = get_transform(self.geometry, self.shape, extent, start)

        self.ndim = ndim
        self.N = int(np.prod(self.shape))
        self.axes = self.transform.axes
        self.weights = self.transform.weights
        self.vector_dim = self.transform.vector_dim

        if ndim == 1:
            self.L = extent[0]
            self.domain_start = start[0]
            self.domain_end = start[0] + extent[0]
            self.dz = self.L / self.shape[0]
            self.z = self.axes[0]
        else:
            self.L = extent
            self.domain_start = start
            self.domain_end = tuple(s + L for s, L in zip(start, extent))
            self.dz = tuple(L / n for L, n in zip(extent, self.shape))
            self.z = self.axes[0]

    @property
    def signature(self):
        return (self.geometry, self.shape, self.transform.extent, self.transform.start)

    @property
    def positions(self):
        """Utility
        The node coordinates as a tuple of arrays with the grid shape, used as positional arguments when evaluating
        external potentials. For 1-D geometries this is just (z,).
        """
        if self.ndim == 1:
            return (self.z,)
        return tuple(np.meshgrid(*self.axes, indexing='ij'))

    def integrate(self, f):
        """Utility
        Integrate a field over the grid using the quadrature weights of the grid. Leading axes (e.g. components) are
        kept, such that integrating an array of shape (ncomps, *grid.shape) returns an array of length ncomps.

        Args:
            f (ndarray) : Field(s) on the grid

        Returns:
            float or ndarray : The integral(s)
        """
        axes = tuple(range(-self.ndim, 0))
        return np.sum(np.asarray(f) * self.weights, axis=axes)

    def forward(self, f, workers=None):
        """Utility
        Transform a scalar field to the spectral domain of the grid geometry (cosine transform for planar grids,
        sine transform of r * f for spherical grids, Hankel transform for polar grids, FFT for Cartesian grids).
        """
        return self.transform.forward(np.asarray(f, dtype=float), workers=workers)

    def inverse(self, F, workers=None):
        """Utility
        Inverse of Grid.forward.
        """
        return self.transform.inverse(F, workers=workers)

    def volume(self, z=None):
        """
        Compute the volume of the grid, if a position is supplied, use that position as the endpoint of the domain
        Useful to be able to treat volumes without thinking about geometry all the time.
        For polar grids this is the volume per unit length, for planar grids the volume per unit area.

        Args:
            z (float, optional) : If supplied, compute the volume of the grid bounded by r = z.

        Returns:
            float : The volume
        """
        if self.geometry == Geometry.CARTESIAN:
            return float(np.prod(self.L))

        end = self.domain_end if z is None else z
        if self.geometry == Geometry.PLANAR:
            return end - self.domain_start
        elif self.geometry == Geometry.POLAR:
            return np.pi * end**2
        return (4 / 3) * np.pi * end**3

    def area(self, z=None):
        """
        Compute the area of a surface dividing the domain at position z (defaults to the end of the domain).
        Planar grids are per unit area, and polar grids per unit length, while Cartesian grids use the cross
        section normal to the first axis.

        Args:
            z (float, optional) : Position of the dividing surface

        Returns:
            float : The area of the dividing surface.
        """
        if self.geometry == Geometry.PLANAR:
            return 1.
        elif self.geometry == Geometry.CARTESIAN:
            return float(np.prod(self.L[1:]))

        z = self.domain_end if z is None else z
        if self.geometry == Geometry.POLAR:
            return 2 * np.pi * z
        return 4 * np.pi * z**2

    def size(self, V):
        """
        Compute the size (radius or length) of a grid with a given volume (inverse of Grid.volume)

        Args:
            V (float) : The volume

        Returns:
            float : The radius or length of the grid with the supplied volume
        """
        if self.geometry == Geometry.PLANAR:
            return V + self.domain_start
        elif self.geometry == Geometry.POLAR:
            return np.sqrt(V / np.pi)
        elif self.geometry == Geometry.SPHERICAL:
            return (3 * V / (4 * np.pi))**(1 / 3)
        raise NotImplementedError('Grid.size is not defined for Cartesian grids.')

    def zeros(self, n=None):
        """Utility
        Array of zeros with the grid shape, or shape (n, *grid.shape) if n is supplied.
        """
        return np.zeros(self.shape if n is None else (n, *self.shape))

    def __eq__(self, other):
        return isinstance(other, Grid) and (self.signature == other.signature)

    def __hash__(self):
        return hash(self.signature)

    def __repr__(self):
        return f'Grid with L : {self.L}, N : {self.shape}, geometry : {self.geometry.name}, domain_start : {self.domain_start}'


class PlanarGrid(Grid):

    def __init__(self, n_grid, domain_size, domain_start=0):
        super().__init__(n_grid, Geometry.PLANAR, domain_size, domain_start=domain_start)


class SphericalGrid(Grid):

    def __init__(self, n_grid, domain_size):
        super().__init__(n_grid, Geometry.SPHERICAL, domain_size)


class PolarGrid(Grid):

    def __init__(self, n_grid, domain_size):
        super().__init__(n_grid, Geometry.POLAR, domain_size)


class CartesianGrid(Grid):

    def __init__(self, n_grid, domain_size, domain_start=0):
        n_grid = tuple(n_grid) if isinstance(n_grid, Iterable) else (n_grid,)
        super().__init__(n_grid, Geometry.CARTESIAN, domain_size, domain_start=domain_start)
