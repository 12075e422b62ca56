"""
External potentials, used as the boundary conditions of a density profile (see Functional.sanitize_Vext).

A potential is a callable, called with the node coordinates of the grid (Grid.positions) and returning the reduced
potential (energy / epsilon) on every node. The walls here only depend on the first coordinate (z, r for radial grids
or x for Cartesian grids), the remaining coordinates are accepted and ignored.

Potentials are hashed by their parameters, such that computed density profiles can be looked up by the potential
they were computed in.
"""
import abc
import numpy as np


class ExtPotential(metaclass=abc.ABCMeta):

    @abc.abstractmethod
    def __call__(self, z, *other_axes): pass

    @abc.abstractmethod
    def params(self): pass

    def __hash__(self):
        return hash((type(self).__name__, *self.params()))

    def __eq__(self, other):
        return isinstance(other, ExtPotential) and hash(self) == hash(other)

    def __repr__(self):
        return f'{type(self).__name__}{self.params()}'


def _outside_wall(z, potential):
    """Internal
    Evaluate potential(z) for z > 0, the wall (z <= 0) is impenetrable.
    """
    z = np.asarray(z, dtype=float)
    V = np.full_like(z, np.inf)
    inside = z > 0
    V[inside] = potential(z[inside])
    return V


class HardWall(ExtPotential):

    def __init__(self, position, is_pore=True):
        """
        Args:
            position (float) : Position of the wall
            is_pore (bool) : If True, the fluid is confined to z < position, otherwise to z > position
        """
        self.position = position
        self.is_pore = is_pore

    def __call__(self, z, *other_axes):
        z = np.asarray(z, dtype=float)
        blocked = (z > self.position) if self.is_pore else (z < self.position)
        return np.where(blocked, np.inf, 0.)

    def params(self):
        return (self.position, self.is_pore)


class SlitPore(ExtPotential):
    """
    Two identical walls, at z = 0 and mirrored at z = width.
    """

    def __init__(self, width, wall):
        """
        Args:
            width (float) : Distance between the walls
            wall (ExtPotential) : Potential of a single wall at z = 0
        """
        self.width = width
        self.wall = wall

    def __call__(self, z, *other_axes):
        z = np.asarray(z, dtype=float)
        return self.wall(z) + self.wall(self.width - z)

    def params(self):
        return (self.width, hash(self.wall))


class LennardJones93(ExtPotential):
    r"""
    The 9-3 wall, $\epsilon ((\sigma / z)^9 - (\sigma / z)^3)$.
    """

    def __init__(self, sigma, epsilon):
        self.sigma = sigma
        self.epsilon = epsilon

    def __call__(self, z, *other_axes):
        return _outside_wall(z, lambda zi: self.epsilon * ((self.sigma / zi)**9 - (self.sigma / zi)**3))

    def params(self):
        return (self.sigma, self.epsilon)


class Steele(ExtPotential):
    """
    The Steele 10-4-3 potential of a layered solid (e.g. graphite).
    """

    def __init__(self, sigma, epsilon, delta, rho_s):
        """
        Args:
            sigma (float) : Solid-fluid diameter
            epsilon (float) : Solid-fluid energy
            delta (float) : Interlayer spacing of the solid
            rho_s (float) : Number density of the solid
        """
        self.sigma = sigma
        self.epsilon = epsilon
        self.delta = delta
        self.rho_s = rho_s

    def __call__(self, z, *other_axes):
        s, d = self.sigma, self.delta
        prefactor = 2 * np.pi * self.rho_s * self.epsilon * s**2 * d
        return _outside_wall(z, lambda zi: prefactor * ((2 / 5) * (s / zi)**10 - (s / zi)**4
                                                        - s**4 / (3 * d * (zi + 0.61 * d)**3)))

    def params(self):
        return (self.sigma, self.epsilon, self.delta, self.rho_s)
