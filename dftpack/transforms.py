"""
Spectral transforms, one strategy per Geometry.

A Transform is selected once, when a Grid is constructed (see get_transform), and is cached on the grid signature,
such that all grids with the same geometry, shape and extent share the same (read only) transform. Code that needs
to convolve something should never check the geometry: it should ask the transform.

Every transform implements the same three convolutions, which are all that the weighted density machinery needs:

    scalar(kernel, f)   : even kernel, scalar field -> scalar field
    vector(kernel, f)   : odd kernel, scalar field  -> vector field, shape (vector_dim, *shape)
    contract(kernel, u) : odd kernel, vector field  -> scalar field (sum over vector components)

and the plain transform pair forward(f) / inverse(F) of a scalar field, with inverse(forward(f)) == f.

Kernels are the Analytical weight functions (WeightFunction.py) evaluated on the frequencies of the transform, see
Transform.kernel. The Fourier transform of a vector (odd) kernel is taken to be -i k_hat A(|k|), where A is the value
returned by the Analytical object.
"""
import abc
from functools import lru_cache
import numpy as np
from scipy.fft import dct, idct, dst, idst, fftn, ifftn, fftfreq
from scipy.special import jn_zeros, j0, j1


class Transform(metaclass=abc.ABCMeta):
    """
    Parent class for the geometry dependent transform strategies.

    Attributes:
        shape (tuple[int]) : Number of nodes along each axis
        axes (list[1d array]) : Node positions along each axis
        weights (ndarray) : Quadrature weights, such that sum(f * weights) is the volume integral of f
        vector_dim (int) : Number of components of a vector field
    """
    vector_dim = 1

    def __init__(self, shape, extent, start):
        self.shape = shape
        self.extent = extent
        self.start = start

    @abc.abstractmethod
    def kernel(self, analytical): pass

    @abc.abstractmethod
    def forward(self, f, workers=None):
        """
        Map a scalar field on the grid to the spectral domain of the geometry.
        """
        pass

    @abc.abstractmethod
    def inverse(self, F, workers=None):
        """
        Map spectral coefficients back to a field on the grid, inverse of forward.
        """
        pass

    @abc.abstractmethod
    def scalar(self, kernel, f, workers=None): pass

    @abc.abstractmethod
    def vector(self, kernel, f, workers=None): pass

    @abc.abstractmethod
    def contract(self, kernel, u, workers=None): pass


class PlanarTransform(Transform):
    """
    Cosine and sine transforms (type 2) on a cell-centred grid, corresponding to reflecting boundaries at both ends
    of the domain. Even fields are expanded in cosines, odd fields in sines.
    """

    def __init__(self, shape, extent, start):
        super().__init__(shape, extent, start)
        n, L = shape[0], extent[0]
        dz = L / n
        self.axes = [np.linspace(start[0] + dz / 2, start[0] + L - dz / 2, n)]
        self.weights = np.full(n, dz)
        self.k_cos = np.linspace(0.0, n - 1, n) / (2 * L)
        self.k_sin = np.linspace(1.0, n, n) / (2 * L)

    def kernel(self, analytical):
        return {'cos': analytical(self.k_cos), 'sin': analytical(self.k_sin)}

    def forward(self, f, workers=None):
        return dct(f, type=2, workers=workers)

    def inverse(self, F, workers=None):
        return idct(F, type=2, workers=workers)

    def scalar(self, kernel, f, workers=None):
        return idct(dct(f, type=2, workers=workers) * kernel['cos'], type=2, workers=workers)

    def vector(self, kernel, f, workers=None):
        # The cosine coefficient at frequency k_cos[j] becomes the sine coefficient at k_sin[j - 1]
        f_hat = np.roll(dct(f, type=2, workers=workers), -1)
        f_hat[-1] = 0
        return idst(f_hat * kernel['sin'], type=2, workers=workers)[np.newaxis]

    def contract(self, kernel, u, workers=None):
        u_hat = np.roll(dst(u[0], type=2, workers=workers), +1)
        u_hat[0] = 0
        return - idct(u_hat * kernel['cos'], type=2, workers=workers)


class SphericalTransform(Transform):
    """
    Radial transforms for spherically symmetric fields, using that r * f(r) can be treated as an odd (sine expanded)
    one dimensional function. The field value at the outer boundary is subtracted before transforming, and restored
    through the kernel value at k = 0.
    """

    def __init__(self, shape, extent, start):
        super().__init__(shape, extent, start)
        n, R = shape[0], extent[0]
        dr = R / n
        self.r = np.linspace(dr / 2, R - dr / 2, n)
        self.axes = [self.r]
        self.weights = 4 * np.pi * self.r**2 * dr
        self.k_cos = np.linspace(0.0, n - 1, n) / (2 * R)
        self.k_sin = np.linspace(1.0, n, n) / (2 * R)

    def kernel(self, analytical):
        return {'cos': analytical(self.k_cos), 'sin': analytical(self.k_sin), 'zero': float(analytical(0.0))}

    def forward(self, f, workers=None):
        return dst(f * self.r, type=2, workers=workers)

    def inverse(self, F, workers=None):
        return idst(F, type=2, workers=workers) / self.r

    def scalar(self, kernel, f, workers=None):
        r = self.r
        f_inf = f[-1]
        delta = f - f_inf
        delta_term = (1 / r) * idst(dst(delta * r, type=2, workers=workers) * kernel['sin'], type=2, workers=workers)
        return delta_term + kernel['zero'] * f_inf

    def vector(self, kernel, f, workers=None):
        # n_v = - d/dr (B * f), with B = A / (2 pi k). The constant part of f has no gradient.
        r, k_sin, k_cos = self.r, self.k_sin, self.k_cos
        delta = f - f[-1]
        delta_hat = dst(delta * r, type=2, workers=workers)

        odd_term = delta_hat * kernel['sin'] / k_sin
        even_term = np.roll(delta_hat / k_sin, +1) * kernel['cos'] * k_cos
        even_term[0] = 0

        h = (1 / (np.pi * r**2)) * idst(odd_term, type=2, workers=workers) / 2 \
            - (1 / r) * idct(even_term, type=2, workers=workers)
        return h[np.newaxis]

    def contract(self, kernel, u, workers=None):
        # s = - B * div(u), and r div(u) = d(r u)/dr + u
        r, k_sin, k_cos = self.r, self.k_sin, self.k_cos
        u = u[0]
        # Cosine coefficient at k_cos[j + 1] becomes the sine coefficient at k_sin[j]
        ru_hat = dct(u * r, type=2, workers=workers)
        cos_term = np.zeros_like(ru_hat)
        cos_term[:-1] = ru_hat[1:] / k_cos[1:]
        sin_term = dst(u, type=2, workers=workers) / (2 * np.pi * k_sin**2)

        return (1 / r) * idst((cos_term - sin_term) * kernel['sin'] * k_sin, type=2, workers=workers)


class PolarTransform(Transform):
    """
    Quasi-discrete Hankel transforms for cylindrically symmetric fields (symmetric around the z-axis, uniform along it).

    The nodes are placed at r_n = j_n R / S, where j_n are the zeros of J0 and S = j_{N + 1}, and the frequencies at
    nu_m = j_m / (2 pi R). With the bandwidth V = S / (2 pi R), the weights 1 / (pi V^2 J1(j_n)^2) are both the
    forward transform weights and a Gauss-type quadrature rule for integrating over the (non-uniform) grid.
    Radial vector fields are transformed with the order 1 Hankel transform on the same nodes.
    """

    def __init__(self, shape, extent, start):
        super().__init__(shape, extent, start)
        n, R = shape[0], extent[0]
        zeros = jn_zeros(0, n + 1)
        j_n, S = zeros[:-1], zeros[-1]
        V = S / (2 * np.pi * R)

        self.r = j_n * R / S
        self.nu = j_n / (2 * np.pi * R)
        self.axes = [self.r]
        self.weights = 1 / (np.pi * V**2 * j1(j_n)**2)
        self.freq_weights = 1 / (np.pi * R**2 * j1(j_n)**2)

        arg = np.outer(j_n, j_n) / S
        self.C0 = j0(arg)
        self.C1 = j1(arg)

    def kernel(self, analytical):
        return {'nu': analytical(self.nu), 'zero': float(analytical(0.0))}

    def forward(self, f, workers=None, order=0):
        C = self.C0 if order == 0 else self.C1
        return C @ (f * self.weights)

    def inverse(self, F, workers=None, order=0):
        # Exact inverse of forward, by the discrete orthogonality of J0 at the zeros j_1 .. j_N with S = j_{N + 1}
        C = self.C0 if order == 0 else self.C1
        return C @ (F * self.freq_weights)

    def scalar(self, kernel, f, workers=None):
        f_inf = f[-1]
        return self.inverse(kernel['nu'] * self.forward(f - f_inf)) + kernel['zero'] * f_inf

    def vector(self, kernel, f, workers=None):
        return self.inverse(kernel['nu'] * self.forward(f - f[-1]), order=1)[np.newaxis]

    def contract(self, kernel, u, workers=None):
        return self.inverse(- kernel['nu'] * self.forward(u[0], order=1))


class CartesianTransform(Transform):
    """
    N-dimensional FFT on a periodic, cell-centred box.
    """

    def __init__(self, shape, extent, start):
        super().__init__(shape, extent, start)
        self.vector_dim = len(shape)
        dx = [L / n for n, L in zip(shape, extent)]
        self.axes = [np.linspace(s + d / 2, s + L - d / 2, n) for n, L, s, d in zip(shape, extent, start, dx)]
        self.weights = np.full(shape, np.prod(dx))

        k_axes = [fftfreq(n, d=d) for n, d in zip(shape, dx)]
        K = np.meshgrid(*k_axes, indexing='ij')
        self.k = np.sqrt(sum(Ki**2 for Ki in K))
        nonzero = self.k > 0
        self.k_hat = np.zeros((self.vector_dim, *shape))
        for d, Ki in enumerate(K):
            self.k_hat[d][nonzero] = Ki[nonzero] / self.k[nonzero]

    def kernel(self, analytical):
        return {'k': analytical(self.k)}

    def forward(self, f, workers=None):
        return fftn(f, workers=workers)

    def inverse(self, F, workers=None):
        return ifftn(F, workers=workers).real

    def scalar(self, kernel, f, workers=None):
        return ifftn(fftn(f, workers=workers) * kernel['k'], workers=workers).real

    def vector(self, kernel, f, workers=None):
        f_hat = fftn(f, workers=workers) * kernel['k']
        return np.array([ifftn(- 1j * k_hat * f_hat, workers=workers).real for k_hat in self.k_hat])

    def contract(self, kernel, u, workers=None):
        s_hat = sum(- 1j * k_hat * fftn(ui, workers=workers) for k_hat, ui in zip(self.k_hat, u))
        return ifftn(s_hat * kernel['k'], workers=workers).real


@lru_cache(maxsize=64)
def get_transform(geometry, shape, extent, start):
    """Internal
    Select (and cache) the transform strategy for a grid signature. The Geometry enum is imported lazily to avoid
    a circular import with grid.py.

    Args:
        geometry (Geometry) : Grid geometry
        shape (tuple[int]) : Nodes along each axis
        extent (tuple[float]) : Domain length along each axis
        start (tuple[float]) : Domain start along each axis

    Returns:
        Transform : Shared, read only transform
    """
    from dftpack.grid import Geometry
    strategies = {Geometry.PLANAR: PlanarTransform,
                  Geometry.SPHERICAL: SphericalTransform,
                  Geometry.POLAR: PolarTransform,
                  Geometry.CARTESIAN: CartesianTransform}
    return strategies[geometry](shape, extent, start)
