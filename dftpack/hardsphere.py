r"""
Fundamental measure theory (FMT) functionals for hard sphere mixtures: Rosenfeld, White Bear and White Bear Mark II
(see R. Roth - Introduction to Density Functional Theory of Classical Systems: Theory and Applications).

Each functional is a function of the six weighted densities (n0, n1, n2, n3, nv1, nv2), see
WeightFunction.get_FMT_weights. The functions are written with jax.numpy, such that the derivatives wrt. the
weighted densities are obtained by automatic differentiation. Where the expressions have a removable singularity at
n3 = 0, a series expansion is used for small n3 (with the double-where trick, so that the unused branch does not
produce NaN gradients).

The functions are also used directly by the hard chain functional (chain.py).
"""
import abc
import numpy as np
import jax.numpy as jnp
from dftpack.Functional import Functional
from dftpack.WeightFunction import get_FMT_weights
from dftpack.topology import BondGraph

SERIES_LIMIT = 1e-3


def _series_where(x, exact, series):
    """Internal
    Evaluate exact(x) for x > SERIES_LIMIT, and series(x) otherwise.
    """
    small = x < SERIES_LIMIT
    x_safe = jnp.where(small, 0.5, x)
    return jnp.where(small, series(x), exact(x_safe))


def rosenfeld_phi(n):
    """
    Reduced Helmholtz energy density of the original Rosenfeld functional.

    Args:
        n (list[Array]) : The weighted densities (n0, n1, n2, n3, nv1, nv2), vector components along the first axis
            of nv1 and nv2
    """
    n0, n1, n2, n3, nv1, nv2 = n[:6]
    nv1nv2 = jnp.sum(nv1 * nv2, axis=0)
    nv2nv2 = jnp.sum(nv2 * nv2, axis=0)

    phi1 = - n0 * jnp.log(1 - n3)
    phi2 = (n1 * n2 - nv1nv2) / (1 - n3)
    phi3 = (n2 ** 3 - 3 * n2 * nv2nv2) / (24 * np.pi * (1 - n3) ** 2)
    return phi1 + phi2 + phi3


def whitebear_phi(n):
    """
    Reduced Helmholtz energy density of the White Bear functional (Carnahan-Starling in the bulk).
    """
    n0, n1, n2, n3, nv1, nv2 = n[:6]
    nv1nv2 = jnp.sum(nv1 * nv2, axis=0)
    nv2nv2 = jnp.sum(nv2 * nv2, axis=0)

    # (n3 + (1 - n3)^2 ln(1 - n3)) / n3^2
    f3 = _series_where(n3,
                       lambda x: (x + (1 - x) ** 2 * jnp.log1p(- x)) / x ** 2,
                       lambda x: 1.5 - x / 3 - x ** 2 / 12 - x ** 3 / 30)

    phi1 = - n0 * jnp.log(1 - n3)
    phi2 = (n1 * n2 - nv1nv2) / (1 - n3)
    phi3 = (n2 ** 3 - 3 * n2 * nv2nv2) * f3 / (36 * np.pi * (1 - n3) ** 2)
    return phi1 + phi2 + phi3


def whitebear_mark2_phi(n):
    """
    Reduced Helmholtz energy density of the White Bear Mark II functional.
    """
    n0, n1, n2, n3, nv1, nv2 = n[:6]
    nv1nv2 = jnp.sum(nv1 * nv2, axis=0)
    nv2nv2 = jnp.sum(nv2 * nv2, axis=0)

    phi2 = _series_where(n3,
                         lambda x: (2 * x - x ** 2 + 2 * (1 - x) * jnp.log1p(- x)) / x,
                         lambda x: x ** 2 / 3 + x ** 3 / 6 + x ** 4 / 10)
    phi3 = _series_where(n3,
                         lambda x: (2 * x - 3 * x ** 2 + 2 * x ** 3 + 2 * (1 - x) ** 2 * jnp.log1p(- x)) / x ** 2,
                         lambda x: (4 / 3) * x - x ** 2 / 6 - x ** 3 / 15)

    return - n0 * jnp.log(1 - n3) + (n1 * n2 - nv1nv2) * (1 + (1 / 3) * phi2) / (1 - n3) \
        + (n2 ** 3 - 3 * n2 * nv2nv2) * (1 - (1 / 3) * phi3) / (24 * np.pi * (1 - n3) ** 2)


class FMT_Functional(Functional):
    """
    Parent class for hard-sphere FMT functionals (Rosenfeld, White Bear and White Bear Mark II in "introduction to DFT")
    Every component is a single hard sphere.
    """

    def __init__(self, R, floor=1e-12, workers=None):
        """
        Args:
            R (float or 1d array) : Hard sphere radius of each component
            floor (float) : Densities below this value are raised to it before evaluation
            workers (int, optional) : Number of threads used by scipy.fft
        """
        R = np.atleast_1d(np.asarray(R, dtype=float))
        super().__init__(BondGraph.monomers(2 * R), floor=floor, workers=workers)

    @staticmethod
    @abc.abstractmethod
    def phi(n): pass

    def __repr__(self):
        return f'{type(self).__name__} with radii {list(self.get_R())}'

    def get_R(self):
        """
        NOTE: RADIUS - NOT DIAMETER
        """
        return self.graph.diameters / 2

    def get_weights(self):
        return get_FMT_weights(self.get_R())

    def reduced_helmholtz_energy_density(self, n, T):
        return self.phi(n)

    def packing_fraction(self, rho_b):
        """Bulk Property
        The bulk packing fraction, sum_i (pi / 6) rho_i d_i^3.
        """
        rho_b = self.validate_bulk_densities(rho_b)
        return float(np.sum((np.pi / 6) * rho_b * self.graph.diameters ** 3))


class Rosenfeld(FMT_Functional):
    phi = staticmethod(rosenfeld_phi)


class WhiteBear(FMT_Functional):
    phi = staticmethod(whitebear_phi)


class WhiteBearMarkII(FMT_Functional):
    phi = staticmethod(whitebear_mark2_phi)
