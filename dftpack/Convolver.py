"""
This is the module that handles the convolutions of density fields with weight functions.

The basis is the Convolver, which takes a Grid (grid.py) and a set of weights, indexed as w[<weight idx>][<segment idx>]
(see WeightFunction.py). Upon initialisation, every weight is evaluated in the spectral space of the grid transform,
such that the kernels are computed once and shared (read only) between all iterations of a solver.

Entries in the weight matrix that are 0 (not an Analytical) are skipped.

By the parity of the weight (is_even() / is_odd()) the Convolver selects which of the three transform operations
(scalar, vector, contract, see transforms.py) to use, so no code outside transforms.py needs to know the geometry.
"""
import numpy as np
from dftpack.WeightFunction import Analytical, LocalDensity


def is_weight(w):
    return isinstance(w, Analytical)


class Convolver:

    def __init__(self, grid, weights, workers=None):
        """
        Args:
            grid (Grid) : The spatial discretisation
            weights (list[list[Analytical]]) : Weights indexed as w[<weight idx>][<segment idx>]
            workers (int, optional) : Number of threads used by scipy.fft
        """
        self.grid = grid
        self.transform = grid.transform
        self.workers = workers
        self.weights = weights
        self.n_weights = len(weights)
        self.n_fields = len(weights[0]) if self.n_weights > 0 else 0
        self.is_vector = [any(is_weight(w) and w.is_odd() for w in comp_weights) for comp_weights in weights]

        self.kernels = [[self._prepare(w) for w in comp_weights] for comp_weights in weights]

    def _prepare(self, w):
        if not is_weight(w):
            return None
        if isinstance(w, LocalDensity):
            return w.mult_factor
        return self.transform.kernel(w)

    def weighted_densities(self, rho):
        """
        Compute all weighted densities n[wi] = sum_ci w[wi][ci] * rho[ci]

        Args:
            rho (ndarray) : Density fields, shape (n_fields, *grid.shape)

        Returns:
            list[ndarray] : The weighted densities, with shape grid.shape for scalar weights, and
                            (vector_dim, *grid.shape) for vector weights.
        """
        n = []
        for wi in range(self.n_weights):
            if self.is_vector[wi]:
                n_wi = np.zeros((self.grid.vector_dim, *self.grid.shape))
            else:
                n_wi = np.zeros(self.grid.shape)
            for ci, (w, kernel) in enumerate(zip(self.weights[wi], self.kernels[wi])):
                if kernel is None:
                    continue
                n_wi = n_wi + self.convolve(w, kernel, rho[ci])
            n.append(n_wi)
        return n

    def functional_derivative(self, dphidn):
        """
        Map derivatives wrt. the weighted densities back to derivatives wrt. the density fields, using the adjoint of
        the convolution (the same kernel, with the sign flipped for odd kernels).

        Args:
            dphidn (list[ndarray]) : Derivative of the free energy density wrt. each weighted density

        Returns:
            ndarray : The functional derivative, shape (n_fields, *grid.shape)
        """
        dfdrho = self.grid.zeros(self.n_fields)
        for wi in range(self.n_weights):
            for ci, (w, kernel) in enumerate(zip(self.weights[wi], self.kernels[wi])):
                if kernel is None:
                    continue
                if w.is_odd():
                    dfdrho[ci] -= self.transform.contract(kernel, dphidn[wi], workers=self.workers)
                elif isinstance(w, LocalDensity):
                    dfdrho[ci] += kernel * dphidn[wi]
                else:
                    dfdrho[ci] += self.transform.scalar(kernel, dphidn[wi], workers=self.workers)
        return dfdrho

    def convolve(self, w, kernel, field):
        """
        Convolve a scalar field with a precomputed kernel. Linear in `field`.

        Args:
            w (Analytical) : The weight (used for its parity)
            kernel : The weight evaluated by the grid transform (from Transform.kernel)
            field (ndarray) : Scalar field with the grid shape

        Returns:
            ndarray : Scalar field for even weights, vector field for odd weights
        """
        if isinstance(w, LocalDensity):
            return field * kernel
        elif w.is_odd():
            return self.transform.vector(kernel, field, workers=self.workers)
        return self.transform.scalar(kernel, field, workers=self.workers)

    def bulk_weighted_densities(self, rho):
        """
        Weighted densities of uniform fields, n[wi] = sum_ci rho[ci] * integral(w[wi][ci]). Vector weighted densities
        vanish. Returned with the same array layout as weighted_densities, on a single node.

        Args:
            rho (1d array) : Bulk density of each field

        Returns:
            list[ndarray] : Weighted densities
        """
        return bulk_weighted_densities(self.weights, rho, self.grid.vector_dim)


def bulk_weighted_densities(weights, rho, vector_dim=1):
    """
    See: Convolver.bulk_weighted_densities. Does not require a grid.
    """
    n = []
    for comp_weights in weights:
        if any(is_weight(w) and w.is_odd() for w in comp_weights):
            n.append(np.zeros((vector_dim, 1)))
            continue
        n_wi = 0.
        for ci, w in enumerate(comp_weights):
            if is_weight(w):
                n_wi += rho[ci] * w.real_integral()
        n.append(np.array([n_wi]))
    return n


def weight_integrals(weights):
    """
    The matrix dn[wi] / drho[ci] in the bulk (zero for vector weights).

    Returns:
        2d array : indexed as dndrho[<weight idx>][<segment idx>]
    """
    dndrho = np.zeros((len(weights), len(weights[0])))
    for wi, comp_weights in enumerate(weights):
        for ci, w in enumerate(comp_weights):
            if is_weight(w) and w.is_even():
                dndrho[wi][ci] = w.real_integral()
    return dndrho
