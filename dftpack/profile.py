"""
The Profile: A field on a Grid.

Profiles are numpy arrays that remember which Grid they live on, such that they can be integrated, interpolated,
saved and loaded without passing the grid around separately. Arithmetic on a Profile returns a Profile on the same
grid, but some numpy functions return plain arrays, so don't rely on the grid surviving every operation.

Also holds the initial guesses used by the solvers (from_potential, tanh_profile).
"""
import json
import warnings
from collections.abc import Iterable
import numpy as np
from dftpack.grid import Grid, Geometry

# Local packing fraction above which initial guesses are capped
MAX_PACKING = 0.99


class Profile(np.ndarray):

    def __new__(cls, values, grid):
        """
        Args:
            values (array_like) : Field values, with the shape of the grid
            grid (Grid) : The grid the values live on
        """
        obj = np.asarray(values, dtype=float).view(cls)
        if obj.shape != grid.shape:
            raise ValueError(f'Values with shape {obj.shape} do not fit on a grid with shape {grid.shape}.')
        obj.grid = grid
        return obj

    def __array_finalize__(self, obj):
        if obj is None:
            return
        self.grid = getattr(obj, 'grid', None)

    def __reduce__(self):
        cls, args, state = super().__reduce__()
        return cls, args, state + (self.grid,)

    def __setstate__(self, state):
        *array_state, self.grid = state
        super().__setstate__(tuple(array_state))

    def __call__(self, z):
        """Utility
        Linear interpolation in the profile, using the edge values outside the grid. Only for 1-D grids.

        Args:
            z (float or 1d array) : Position(s)
        """
        if self.grid.ndim != 1:
            raise NotImplementedError('Interpolation is only implemented for 1-D grids.')
        return np.interp(z, self.grid.z, np.asarray(self))

    def on_grid(self, grid):
        """Utility
        Interpolate onto another (1-D) grid, e.g. to refine the grid or to extend the domain with the edge values.
        """
        return Profile(self(grid.z), grid)

    def integrate(self):
        """Profile Property
        Integral of the profile over the domain, using the grid quadrature.
        """
        return float(self.grid.integrate(np.asarray(self)))

    def to_dict(self):
        """Utility
        JSON compatible dict holding the values and the grid signature, inverse of Profile.from_dict.
        """
        geometry, shape, extent, start = self.grid.signature
        return {'geometry': int(geometry),
                'n_grid': list(shape),
                'domain_size': list(extent),
                'domain_start': list(start),
                'values': np.asarray(self).ravel().tolist()}

    @staticmethod
    def from_dict(dct):
        """Construction
        Rebuild a Profile (and its grid) from Profile.to_dict.
        """
        geometry = Geometry(dct['geometry'])
        if geometry == Geometry.CARTESIAN:
            grid = Grid(dct['n_grid'], geometry, dct['domain_size'], domain_start=dct['domain_start'])
        else:
            grid = Grid(dct['n_grid'][0], geometry, dct['domain_size'][0], domain_start=dct['domain_start'][0])
        return Profile(np.reshape(dct['values'], grid.shape), grid)

    def save(self, filename):
        """Utility
        Write the profile to a json file, read it back with Profile.load.
        """
        with open(filename, 'w') as file:
            json.dump(self.to_dict(), file, indent=4)

    @staticmethod
    def load(filename):
        """Construction
        Read a profile written by Profile.save.
        """
        with open(filename, 'r') as file:
            return Profile.from_dict(json.load(file))

    @staticmethod
    def save_list(profiles, filename):
        """Utility
        Write several profiles to one json file (overwrites), read them back with Profile.load_file.
        """
        with open(filename, 'w') as file:
            json.dump([p.to_dict() for p in profiles], file, indent=4)

    @staticmethod
    def load_file(filename):
        """Construction
        Read the list of profiles written by Profile.save_list.
        """
        with open(filename, 'r') as file:
            return [Profile.from_dict(dct) for dct in json.load(file)]

    @staticmethod
    def tanh_profile(grid, left_val, right_val, width_factors=None, centre=None):
        """Density Profile
        A tanh profile for each component, going from left_val at the first node to right_val at the last node.
        Warns if the grid is too narrow for the profile to flatten out.

        Args:
            grid (Grid) : 1-D grid
            left_val (list[float]) : Value at the start of the domain, per component
            right_val (list[float]) : Value at the end of the domain, per component
            width_factors (list[float], optional) : Width of each profile, defaults to 1
            centre (float, optional) : Centre of the profiles, defaults to the middle of the domain

        Returns:
            list[Profile] : One profile per component
        """
        if width_factors is None:
            width_factors = np.ones(len(left_val))
        if centre is None:
            centre = grid.domain_start + grid.L / 2

        z = grid.z
        profiles = []
        for left, right, width in zip(left_val, right_val, width_factors):
            x = (z - centre) / width
            if 1 - np.tanh(np.min(np.abs(x[[0, -1]]))) > 1e-10:
                warnings.warn(f'Grid of length {grid.L} is too narrow for a tanh profile of width {width}.',
                              RuntimeWarning, stacklevel=2)
            step = (np.tanh(x) / np.tanh(np.max(np.abs(x))) + 1) / 2 # 0 at the start, 1 at the end
            profiles.append(Profile(left + step * (right - left), grid))
        return profiles

    @staticmethod
    def from_potential(rho_b, T, grid, Vext, w3=None):
        """Density Profile
        Ideal gas profile in the external potential, rho_b * exp(- V / T). If the n_3 weights are given, the local
        packing fraction is capped at MAX_PACKING by scaling down the total density (keeping the composition), such
        that the guess is a valid input to the hard sphere functionals.

        Args:
            rho_b (list[float]) : Bulk densities
            T (float) : Reduced temperature
            grid (Grid) : The grid
            Vext (callable or list[callable]) : Reduced external potential(s), called with *grid.positions
            w3 (list[Analytical], optional) : n_3 weight of each component

        Returns:
            list[Profile] : The initial guess for each component
        """
        if not isinstance(Vext, Iterable):
            Vext = [Vext] * len(rho_b)

        with np.errstate(over='ignore'):
            rho = [rb * np.exp(- np.asarray(V(*grid.positions), dtype=float) / T) * np.ones(grid.shape)
                   for rb, V in zip(rho_b, Vext)]

        if w3 is not None:
            transform = grid.transform
            # Large densities are truncated before convolving, only whether n_3 exceeds the cap matters
            n3 = sum(transform.scalar(transform.kernel(w), np.minimum(r, 1e3)) for w, r in zip(w3, rho))
            rho_t = sum(rho)
            cap = (n3 >= MAX_PACKING) & (rho_t > 0)
            if np.any(cap):
                x = [r[cap] / rho_t[cap] for r in rho]
                rho_max = MAX_PACKING / sum(xi * w.real_integral() for xi, w in zip(x, w3))
                for r, xi in zip(rho, x):
                    r[cap] = np.minimum(r[cap], rho_max * xi)

        return [Profile(r, grid) for r in rho]

    @staticmethod
    def zeros(grid, nprofiles=1):
        """Utility
        A zero profile on the grid, or a list of nprofiles of them if nprofiles > 1.
        """
        if nprofiles == 1:
            return Profile(grid.zeros(), grid)
        return [Profile(grid.zeros(), grid) for _ in range(nprofiles)]

    @staticmethod
    def zeros_like(profiles):
        """Utility
        list of zero profiles, on the grid of the first of `profiles`.
        """
        return [Profile.zeros(profiles[0].grid) for _ in profiles]
