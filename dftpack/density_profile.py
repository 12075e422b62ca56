r"""
The DensityProfile couples a converged solution to the state it belongs to (bulk densities, temperature, grid and
functional), and computes the derived properties: Number of particles, adsorption, grand potential and surface
tension.

The grand potential density is evaluated using the Euler-Lagrange equation to eliminate the external potential and
the ideal gas terms,

    $\beta \omega = \phi - \sum_\alpha \rho_\alpha \frac{\delta F}{\delta \rho_\alpha} - \sum_\alpha \rho_\alpha / m_i$

which is only valid at equilibrium, such that a DensityProfile can only be constructed from a converged result.
In the bulk, this reduces to $\beta \omega = - \beta p$.
"""
import json
import numpy as np
from dftpack.errors import NotConverged
from dftpack.profile import Profile


class DensityProfile:
    """
    Read only equilibrium density profile. The arrays are not writeable, and attributes can not be set.
    """

    def __init__(self, rho, rho_b, T, grid, functional, result=None):
        """
        Args:
            rho (ndarray) : Segment densities, shape (n_segments, *grid.shape)
            rho_b (1d array) : Bulk density of each component
            T (float) : Reduced temperature
            grid (Grid) : The grid
            functional (Functional) : The functional used to compute the profile
            result (EquilibriumResult, optional) : The solver output
        """
        rho = np.array(rho, dtype=float).reshape((functional.n_segments, *grid.shape))
        rho.flags.writeable = False
        rho_b = np.array(rho_b, dtype=float)
        rho_b.flags.writeable = False

        state = functional.evaluate(rho, T, grid)
        m = functional.graph.segment_counts[functional.graph.component_index]
        expand = (-1,) + (1,) * grid.ndim
        beta_omega = state.phi - np.sum(rho * state.dfdrho, axis=0) - np.sum(rho / m.reshape(expand), axis=0)
        beta_omega.flags.writeable = False

        set_attr = super().__setattr__
        set_attr('rho_segments', rho)
        set_attr('rho_b', rho_b)
        set_attr('T', T)
        set_attr('grid', grid)
        set_attr('functional', functional)
        set_attr('result', result)
        set_attr('beta_omega', beta_omega)
        set_attr('n_clipped', state.n_clipped)
        # Volume of the reference bulk phase, integrated with the same quadrature as the profile
        set_attr('volume', float(grid.integrate(np.ones(grid.shape))))

    def __setattr__(self, key, value):
        raise AttributeError(f'DensityProfile is read only, can not set {key}.')

    def __delattr__(self, key):
        raise AttributeError(f'DensityProfile is read only, can not delete {key}.')

    @staticmethod
    def from_result(result):
        """Construction
        Create a DensityProfile from the result of Functional.equilibrium.

        Raises:
            NotConverged : If the solver did not converge.
        """
        if not result.converged:
            raise NotConverged(f'Can not compute properties of a profile that did not converge: {result.message} '
                               f'(iterations : {result.iterations}, residual : {result.residual})')
        return DensityProfile(result.profile, result.rho_b, result.T, result.grid, result.functional, result=result)

    @property
    def segments(self):
        """
        list[Profile] : The density of every segment
        """
        return [Profile(r, self.grid) for r in self.rho_segments]

    @property
    def rho(self):
        """
        list[Profile] : The (molecular) density of every component, the mean of its segment densities
        """
        graph = self.functional.graph
        return [Profile(np.mean(self.rho_segments[seg_idx], axis=0), self.grid) for _, seg_idx in graph.components()]

    def total_moles(self):
        """Profile Property
        Number of molecules of each component in the domain (per unit area for planar grids, per unit length for
        polar grids).

        Returns:
            1d array : The integral of the density of each component
        """
        return np.array([r.integrate() for r in self.rho])

    def adsorption(self, z=None):
        """Profile Property
        The excess number of molecules, relative to a bulk phase filling the domain, per area of a dividing surface.

        Args:
            z (float, optional) : Position of the dividing surface used for the area, defaults to the outer boundary

        Returns:
            1d array : The adsorption of each component
        """
        return (self.total_moles() - self.rho_b * self.volume) / self.grid.area(z)

    def grand_potential_density(self):
        """Profile Property
        Returns:
            Profile : The reduced grand potential density, omega / epsilon
        """
        return Profile(self.T * self.beta_omega, self.grid)

    def grand_potential(self):
        """Profile Property
        Returns:
            float : The reduced grand potential of the domain, Omega / epsilon
        """
        return float(self.T * self.grid.integrate(self.beta_omega))

    def pressure(self):
        """Bulk Property
        Returns:
            float : The reduced pressure of the bulk phase, p sigma^3 / epsilon
        """
        return self.T * self.functional.pressure(self.rho_b, self.T)

    def surface_tension(self, z=None):
        """Profile Property
        The excess grand potential relative to a bulk phase filling the domain, per area of a dividing surface.

        Args:
            z (float, optional) : Position of the dividing surface used for the area, defaults to the outer boundary

        Returns:
            float : The reduced surface tension, gamma sigma^2 / epsilon
        """
        return (self.grand_potential() + self.pressure() * self.volume) / self.grid.area(z)

    def to_dict(self):
        """Utility
        Convert to a dict, used by save.
        """
        return {'T': self.T,
                'rho_b': self.rho_b.tolist(),
                'functional': repr(self.functional),
                'segments': [p.to_dict() for p in self.segments],
                'adsorption': self.adsorption().tolist(),
                'surface_tension': self.surface_tension()}

    def save(self, filename):
        """Utility
        Save the profile to a json file. The segment densities are stored under 'segments', each in the format read
        by Profile.from_dict.
        """
        with open(filename, 'w') as file:
            json.dump(self.to_dict(), file, indent=4)

    def __repr__(self):
        return f'DensityProfile at T : {self.T}, rho_b : {list(self.rho_b)}\n' \
               f'{self.grid}\n' \
               f'Functional : {self.functional}'
