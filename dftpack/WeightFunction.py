r"""
Weight functions (convolution kernels) for the weighted densities.

Every kernel is a three dimensional, radially symmetric function, and is represented by its Fourier transform as a
function of the frequency |k|, with the convention $\hat{w}(k) = \int w(r) \exp(-2 \pi i k \cdot r) d^3 r$. Because
the kernels are radially symmetric, the same transform serves for planar, polar, spherical and Cartesian grids: The
transform of the kernel projected onto a lower dimensional space is the 3D transform evaluated in that space.

Kernels can be scaled and combined, such that for example

    w1 = Delta(R) / (4 * np.pi * R)

is a new kernel. Each kernel carries its real space integral (the value of a convolution with a uniform field), and
its parity. Vector (odd) kernels are given by the scalar A(k), where the full transform is -i k_hat A(k), see
transforms.py.
"""
import numpy as np
from scipy.special import spherical_jn


def _sphere(x):
    # Transform of a normalised solid sphere, 3 j1(x) / x
    return spherical_jn(0, x) + spherical_jn(2, x)


def _shell(x):
    # Transform of a normalised spherical shell
    return spherical_jn(0, x)


class Analytical:
    """
    A kernel given by its Fourier transform.

    Args:
        transform (callable) : The transform as a function of |k|
        integral (float) : The integral of the kernel over all space
        odd (bool) : Whether the kernel is vector valued (odd). The adjoint of an odd kernel is its negative.
    """
    # Make numpy scalars (e.g. np.float64 * Analytical) defer to __rmul__
    __array_ufunc__ = None

    def __init__(self, transform, integral, odd=False):
        self.transform = transform
        self.integral = integral
        self.odd = odd

    def __call__(self, k):
        return self.transform(np.asarray(k, dtype=float))

    def _combine(self, other, sign):
        return Analytical(lambda k: self(k) + sign * other(k),
                          self.real_integral() + sign * other.real_integral(), self.odd)

    def __mul__(self, factor):
        return Analytical(lambda k: factor * self(k), factor * self.real_integral(), self.odd)

    __rmul__ = __mul__

    def __truediv__(self, divisor):
        return self * (1 / divisor)

    def __add__(self, other):
        return self._combine(other, 1)

    def __sub__(self, other):
        return self._combine(other, -1)

    def __eq__(self, other):
        if not isinstance(other, Analytical):
            return False
        raise TypeError('Kernels can not be compared, compare the parameters they were built from.')

    __hash__ = object.__hash__

    def is_odd(self):
        return self.odd

    def is_even(self):
        return not self.odd

    def real_integral(self):
        return self.integral


class LocalDensity(Analytical):
    """
    Placeholder for a weighted density that is just (a multiple of) the local density. Never transformed, the
    Convolver multiplies by `mult_factor` directly.
    """
    def __init__(self, mult_factor=1):
        self.mult_factor = mult_factor
        super().__init__(None, mult_factor)

    def __mul__(self, factor):
        return LocalDensity(self.mult_factor * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor):
        return LocalDensity(self.mult_factor / divisor)

    def __call__(self, k):
        raise AttributeError('LocalDensity is a placeholder, and has no transform.')


class Heaviside(Analytical):
    r"""
    $\theta(R - r)$, the volume of a sphere of radius R.
    """
    def __init__(self, R):
        self.R = R
        volume = (4 / 3) * np.pi * R**3
        super().__init__(lambda k: volume * _sphere(2 * np.pi * k * R), volume)


class NormTheta(Analytical):
    r"""
    $\theta(R - r) / ((4/3) \pi R^3)$, the average over a sphere of radius R.
    """
    def __init__(self, R):
        self.R = R
        super().__init__(lambda k: _sphere(2 * np.pi * k * R), 1)


class Delta(Analytical):
    r"""
    $\delta(r - R)$, the surface of a sphere of radius R.
    """
    def __init__(self, R):
        self.R = R
        area = 4 * np.pi * R**2
        super().__init__(lambda k: area * _shell(2 * np.pi * k * R), area)


class DeltaVec(Analytical):
    r"""
    The vector shell $\hat{r} \delta(r - R)$. With the sign convention of transforms.py, the vector weighted density
    of a field is the gradient of its Heaviside weighted density.
    """
    def __init__(self, R):
        self.R = R
        volume = (4 / 3) * np.pi * R**3
        super().__init__(lambda k: - 2 * np.pi * k * volume * _sphere(2 * np.pi * k * R), 0., odd=True)


class BondShell(Analytical):
    r"""
    $\delta(r - l) / (4 \pi l^2)$, the probability density of the position of a segment bonded to a segment at the
    origin, with bond length l.
    """
    def __init__(self, bond_length):
        self.l = bond_length
        super().__init__(lambda k: _shell(2 * np.pi * k * bond_length), 1)


FMT_WEIGHT_NAMES = ('w0', 'w1', 'w2', 'w3', 'wv1', 'wv2')


def get_FMT_weights(R, ms=None, as_dict=False):
    r"""Weights
    The six Rosenfeld weights for spheres of radius R[i], indexed as w[<weight index>][<component index>].
    w[0:4] are the scalar weights, and w[4:6] the vector weights $\vec{w}_1$ and $\vec{w}_2$.

    Args:
        R (1d array) : Hard sphere radii
        ms (1d array, optional) : Multiplier for each component (segment number), defaults to 1
        as_dict (bool) : Return a dict with keys 'w0', 'w1', ... instead.
    """
    if ms is None:
        ms = np.ones(len(R))

    w = [[] for _ in FMT_WEIGHT_NAMES]
    for Ri, mi in zip(R, ms):
        shell, vec = Delta(Ri), DeltaVec(Ri)
        w[0].append(mi * shell / (4 * np.pi * Ri**2))
        w[1].append(mi * shell / (4 * np.pi * Ri))
        w[2].append(mi * shell)
        w[3].append(mi * Heaviside(Ri))
        w[4].append(mi * vec / (4 * np.pi * Ri))
        w[5].append(mi * vec)

    if as_dict:
        return dict(zip(FMT_WEIGHT_NAMES, w))
    return w
