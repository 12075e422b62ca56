r"""
Hard chain functional: Tangent (or bonded) hard sphere segments, with the FMT contribution of all segments and a
first order perturbation theory (TPT1) contribution for the bonds,

    $\phi_{chain} = - \sum_{bonds} \frac{1}{2} (\lambda_\alpha + \lambda_\beta) \ln y_{\alpha\beta}(\zeta_2, \zeta_3)$

where $\lambda_\alpha$ is the segment density averaged over a shell of radius $d_\alpha$, y is the BMCSL contact
value of the hard sphere pair correlation function, and $\zeta_n = (\pi / 6) \sum_\alpha \bar{\rho}_\alpha d_\alpha^n$,
with $\bar{\rho}_\alpha$ the segment density averaged over a sphere of radius $d_\alpha$.

For a single component of m tangent segments in the bulk this reduces to m f_FMT - (m - 1) rho ln y, with
y = (1 - eta / 2) / (1 - eta)^3 for White Bear.
"""
import numpy as np
import jax.numpy as jnp
from dftpack.Functional import Functional
from dftpack.WeightFunction import get_FMT_weights, Delta, NormTheta
from dftpack.hardsphere import WhiteBear


def contact_value(zeta2, zeta3, D):
    """
    BMCSL contact value of the pair correlation function between two hard spheres,
    with D = d_a d_b / (d_a + d_b).
    """
    return 1 / (1 - zeta3) + D * 3 * zeta2 / (1 - zeta3) ** 2 + D ** 2 * 2 * zeta2 ** 2 / (1 - zeta3) ** 3


class HardChain(Functional):

    def __init__(self, graph, fmt=WhiteBear, floor=1e-12, workers=None):
        """
        Args:
            graph (BondGraph) : The segments and bonds of all components
            fmt (FMT_Functional) : The FMT functional (class) used for the hard sphere contribution
            floor (float) : Densities below this value are raised to it before evaluation
            workers (int, optional) : Number of threads used by scipy.fft
        """
        self.fmt = fmt
        super().__init__(graph, floor=floor, workers=workers)

    def __repr__(self):
        return f'HardChain ({self.fmt.__name__}) with segments per component {list(self.graph.segment_counts)}, ' \
               f'diameters {list(self.graph.diameters)}'

    def get_weights(self):
        """Weights
        The six FMT weights, followed by the shell averages (lambda) of each segment, followed by the sphere
        averages (zeta) of each segment.
        """
        d = self.graph.diameters
        S = self.n_segments
        w = get_FMT_weights(d / 2)
        for a in range(S):
            row = [0 for _ in range(S)]
            row[a] = Delta(d[a]) / (4 * np.pi * d[a] ** 2)
            w.append(row)
        for a in range(S):
            row = [0 for _ in range(S)]
            row[a] = NormTheta(d[a])
            w.append(row)
        return w

    def reduced_helmholtz_energy_density(self, n, T):
        S = self.n_segments
        d = self.graph.diameters
        lamb = n[6 : 6 + S]
        rho_bar = n[6 + S : 6 + 2 * S]

        zeta2 = sum((np.pi / 6) * rho_bar[a] * d[a] ** 2 for a in range(S))
        zeta3 = sum((np.pi / 6) * rho_bar[a] * d[a] ** 3 for a in range(S))

        phi = self.fmt.phi(n[:6])
        for a, b in self.graph.bonds:
            D = d[a] * d[b] / (d[a] + d[b])
            phi = phi - 0.5 * (lamb[a] + lamb[b]) * jnp.log(contact_value(zeta2, zeta3, D))
        return phi
