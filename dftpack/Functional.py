r"""
The Functional is the parent class of all models, and implements everything that only depends on the reduced
Helmholtz energy density as a function of the weighted densities, $\phi(n)$:

    * The weighted densities of a density profile (through a Convolver)
    * The functional derivative, where the derivatives of $\phi$ wrt. the weighted densities are computed with jax
      automatic differentiation, and mapped back to the density fields with the adjoint convolutions
    * Bulk properties (the weighted densities of a uniform field are the weight integrals times the density)
    * The Euler-Lagrange fixpoint map, and the equilibrium density profile

A model only needs to implement `get_weights()`, returning the weights as w[<weight idx>][<segment idx>], and
`reduced_helmholtz_energy_density(n, T)`, written with jax.numpy such that it can be differentiated.

All quantities are reduced: Lengths in units of the segment diameter, energies in units of epsilon, T = kT / epsilon,
and phi = beta * (residual Helmholtz energy density). Density fields are indexed per *segment*, see topology.py.
For molecules with a single segment, segment and component are the same thing.
"""
import abc
from collections.abc import Iterable
import numpy as np
import jax
import jax.numpy as jnp
from dftpack.Convolver import Convolver, bulk_weighted_densities, weight_integrals
from dftpack.WeightFunction import Heaviside
from dftpack.errors import NonFiniteEvaluation
from dftpack.profile import Profile
from dftpack.solvers import SequentialSolver


class FunctionalState:
    """
    The transient result of evaluating a Functional on a density field.

    Attributes:
        rho (ndarray) : The (clipped) segment densities, shape (n_segments, *grid.shape)
        n (list[ndarray]) : The weighted densities
        phi (ndarray) : Reduced residual Helmholtz energy density at every node
        dfdrho (ndarray) : The functional derivative wrt. each segment density, same shape as rho
        n_clipped (int) : Number of density nodes that were raised to the floor before evaluation
    """
    def __init__(self, rho, n, phi, dfdrho, n_clipped):
        self.rho = rho
        self.n = n
        self.phi = phi
        self.dfdrho = dfdrho
        self.n_clipped = n_clipped

    def __repr__(self):
        return f'FunctionalState with shape {self.rho.shape}, {self.n_clipped} clipped nodes'


class Functional(metaclass=abc.ABCMeta):

    def __init__(self, graph, floor=1e-12, workers=None):
        """Internal
        Handles initialisation that is common for all functionals

        Args:
            graph (BondGraph) : The segments (and bonds) of all components
            floor (float) : Densities below this value are raised to it before evaluation
            workers (int, optional) : Number of threads used by scipy.fft
        """
        self.graph = graph
        self.ncomps = graph.ncomps
        self.n_segments = graph.n_segments
        self.floor = floor
        self.workers = workers

        self._convolvers = {}
        self._bond_kernels = {}
        self.computed_density_profiles = {}
        self._phi_and_derivatives = jax.jit(jax.value_and_grad(self._summed_phi, has_aux=True))

    @abc.abstractmethod
    def __repr__(self):
        pass

    @abc.abstractmethod
    def reduced_helmholtz_energy_density(self, n, T):
        r"""Profile Property
        Returns the reduced, residual helmholtz energy density, $\phi = \beta a^{res}$, at every node.
        Must be written with jax.numpy, vector weighted densities have the vector components along the first axis.

        Args:
            n (list[Array]) : The weighted densities, indexed as n[<weight idx>]
            T (float) : Reduced temperature

        Returns:
            Array : phi, with the shape of the (scalar) weighted densities
        """
        pass

    @abc.abstractmethod
    def get_weights(self):
        """Weights
        Returns the weights for weighted densities in a 2D array, ordered as
        weight[<weight idx>][<segment idx>]. Entries that are 0 are skipped.
        """
        pass

    def get_characteristic_lengths(self):
        """Utility
        The segment diameters.
        """
        return self.graph.diameters

    def _summed_phi(self, n, T):
        phi = self.reduced_helmholtz_energy_density(n, T)
        return jnp.sum(phi), phi

    def get_convolver(self, grid):
        """Internal
        The Convolver for a grid is built the first time the grid is used, and reused afterwards.
        """
        if grid not in self._convolvers:
            self._convolvers[grid] = Convolver(grid, self.get_weights(), workers=self.workers)
        return self._convolvers[grid]

    def get_bond_kernels(self, grid):
        """Internal
        Bond kernels evaluated on the transform of a grid, one per bond.
        """
        if grid not in self._bond_kernels:
            self._bond_kernels[grid] = [grid.transform.kernel(w) for w in self.graph.bond_weights()]
        return self._bond_kernels[grid]

    def validate_bulk_densities(self, rho_b):
        """Internal
        Returns:
            1d array : The bulk density of each component

        Raises:
            IndexError : If the number of densities does not match the number of components.
            ValueError : If a density is negative or not finite.
        """
        rho_b = np.array(rho_b, dtype=float).ravel()
        if len(rho_b) != self.ncomps:
            raise IndexError(f'Number of bulk densities ({len(rho_b)}) did not match number of components ({self.ncomps}).')
        if (not np.all(np.isfinite(rho_b))) or np.any(rho_b < 0):
            raise ValueError(f'Bulk densities must be finite and non-negative, got {rho_b}.')
        return rho_b

    def segment_densities(self, rho_b):
        """Utility
        The bulk density of every segment (equal to the density of the component it belongs to).
        """
        return self.validate_bulk_densities(rho_b)[self.graph.component_index]

    def evaluate(self, rho, T, grid=None):
        """Profile Property
        Evaluate the functional on a set of segment density fields.

        Densities below the floor are raised to the floor, the number of clipped nodes is reported on the returned
        state. Scalar weighted densities are clipped at the floor as well.

        Args:
            rho (list[Profile] or ndarray) : Segment densities, shape (n_segments, *grid.shape)
            T (float) : Reduced temperature
            grid (Grid, optional) : The grid, defaults to the grid of the first Profile in rho

        Returns:
            FunctionalState : The weighted densities, free energy density and functional derivative
        """
        if grid is None:
            grid = rho[0].grid
        rho = np.array(rho, dtype=float)
        if rho.shape != (self.n_segments, *grid.shape):
            raise ValueError(f'Expected densities with shape {(self.n_segments, *grid.shape)}, got {rho.shape}.')

        clipped = rho < self.floor
        n_clipped = int(np.count_nonzero(clipped))
        rho[clipped] = self.floor

        convolver = self.get_convolver(grid)
        n = convolver.weighted_densities(rho)
        n = [n_wi if convolver.is_vector[wi] else np.maximum(n_wi, self.floor) for wi, n_wi in enumerate(n)]

        (_, phi), dphidn = self._phi_and_derivatives([jnp.asarray(n_wi) for n_wi in n], T)
        dfdrho = convolver.functional_derivative([np.asarray(d) for d in dphidn])
        return FunctionalState(rho, n, np.asarray(phi), dfdrho, n_clipped)

    def _bulk(self, rho_b, T):
        """Internal
        Returns:
            float : phi in the bulk
            1d array : The derivative of phi wrt. each segment density
        """
        rho_seg = self.segment_densities(rho_b)
        weights = self.get_weights()
        n = bulk_weighted_densities(weights, rho_seg)
        (_, phi), dphidn = self._phi_and_derivatives([jnp.asarray(n_wi) for n_wi in n], T)
        dphidn = np.array([np.asarray(d).ravel()[0] for d in dphidn])
        dndrho = weight_integrals(weights)
        return float(np.asarray(phi).ravel()[0]), dndrho.T @ dphidn

    def helmholtz_energy_density(self, rho_b, T):
        """Bulk Property
        The reduced residual Helmholtz energy density, phi, of a bulk phase.

        Args:
            rho_b (list[float]) : Bulk density of each component
            T (float) : Reduced temperature

        Returns:
            float : phi
        """
        return self._bulk(rho_b, T)[0]

    def segment_chemical_potential(self, rho_b, T):
        """Bulk Property
        The derivative of the bulk phi wrt. each segment density (reduced). Sums to the residual chemical potential
        of each component.
        """
        return self._bulk(rho_b, T)[1]

    def residual_chemical_potential(self, rho_b, T):
        """Bulk Property
        Compute the reduced residual chemical potential, beta * mu_res, of each component.

        Args:
            rho_b (list[float]) : Bulk density of each component
            T (float) : Reduced temperature

        Returns:
            1d array : The chemical potentials
        """
        mu_seg = self.segment_chemical_potential(rho_b, T)
        return np.bincount(self.graph.component_index, weights=mu_seg, minlength=self.ncomps)

    def pressure(self, rho_b, T):
        """Bulk Property
        Compute the reduced pressure, beta * p, including the ideal gas contribution.

        Args:
            rho_b (list[float]) : Bulk density of each component
            T (float) : Reduced temperature

        Returns:
            float : beta * p
        """
        rho_b = self.validate_bulk_densities(rho_b)
        phi, mu_seg = self._bulk(rho_b, T)
        rho_seg = rho_b[self.graph.component_index]
        return float(np.sum(rho_b) + rho_seg @ mu_seg - phi)

    def grand_potential_density(self, rho_b, T):
        """Bulk Property
        The reduced grand potential density of a bulk phase, beta * omega = - beta * p
        """
        return - self.pressure(rho_b, T)

    def sanitize_Vext(self, Vext):
        """Internal
        Ensure that Vext is a tuple with one callable per component.
        """
        if Vext is None:
            return tuple(lambda *x: 0 for _ in range(self.ncomps))
        elif not isinstance(Vext, Iterable):
            return tuple(Vext for _ in range(self.ncomps))
        Vext = tuple(Vext)
        if len(Vext) != self.ncomps:
            raise IndexError(f'Got {len(Vext)} external potentials for {self.ncomps} components.')
        return Vext

    def packing_weights(self):
        """Weights
        The weight giving the local packing fraction of each component (sum of the segment volumes), used for
        initial guesses.
        """
        w3 = [None for _ in range(self.ncomps)]
        for ci, seg_idx in self.graph.components():
            for a in seg_idx:
                w = Heaviside(self.graph.segments[a].diameter / 2)
                w3[ci] = w if w3[ci] is None else w3[ci] + w
        return w3

    def segment_profiles(self, rho, grid):
        """Utility
        Expand component density profiles to segment density profiles. Segment profiles are returned unchanged.

        Returns:
            ndarray : Segment densities, shape (n_segments, *grid.shape)
        """
        rho = np.array([np.asarray(r, dtype=float) for r in rho])
        if rho.shape == (self.n_segments, *grid.shape):
            return rho
        elif rho.shape == (self.ncomps, *grid.shape):
            return rho[self.graph.component_index]
        raise ValueError(f'Density profiles with shape {rho.shape} do not fit {self.ncomps} components '
                         f'({self.n_segments} segments) on a grid with shape {grid.shape}.')

    def fixpoint(self, rho_b, T, grid, Vext=None):
        """
        Build the Euler-Lagrange fixpoint map for given bulk densities and external potential.

        Args:
            rho_b (list[float]) : Bulk density of each component
            T (float) : Reduced temperature
            grid (Grid) : Spatial discretisation
            Vext (callable or list[callable], optional) : External potential of each component (reduced)

        Returns:
            EulerLagrangeMap : Callable, mapping a flat iterate to the flat target iterate
        """
        return EulerLagrangeMap(self, rho_b, T, grid, Vext=Vext)

    @staticmethod
    def default_solver():
        """Utility
        A Picard stage, followed by an Anderson stage.
        """
        solver = SequentialSolver()
        solver.add_picard(1e-5, mixing_alpha=0.05, max_iter=50)
        solver.add_anderson(1e-10, beta_mix=0.15, m_max=100, max_iter=450)
        return solver

    def equilibrium(self, rho_b, T, grid, Vext=None, rho_0=None, solver=None, verbose=0):
        """Density Profile
        Solve for the equilibrium density profile in an external potential, in equilibrium with a bulk phase.
        Does not raise on iteration failures: Check the status of the returned result.

        Args:
            rho_b (list[float]) : The bulk densities
            T (float) : Reduced temperature
            grid (Grid) : Spatial discretization
            Vext (ExtPotential, optional) : External potential as a function of position (default : Vext(r) = 0)
            rho_0 (list[Profile], optional) : Initial guess for the component or segment density profiles.
            solver (SequentialSolver, optional) : The solver, defaults to Functional.default_solver()
            verbose (int) : Print progression information during run

        Returns:
            EquilibriumResult : The final iterate (flat segment densities), and convergence information
        """
        fixpoint = self.fixpoint(rho_b, T, grid, Vext=Vext)
        if rho_0 is None:
            rho_0 = Profile.from_potential(fixpoint.rho_b, T, grid, fixpoint.Vext, w3=self.packing_weights())
        x0 = self.segment_profiles(rho_0, grid).ravel()

        if solver is None:
            solver = self.default_solver()
        if verbose > 0:
            print(f'Solving for equilibrium profile of {self} on {grid}')

        result = solver(fixpoint, x0, rho_ref=fixpoint.rho_ref, verbose=verbose)
        result.functional = self
        result.rho_b = fixpoint.rho_b
        result.T = T
        result.grid = grid
        return result

    def density_profile_wall(self, rho_b, T, grid, Vext=None, rho_0=None, solver=None, verbose=0):
        """Density Profile
        Calculate equilibrium density profile for a given external potential
        Note: Uses lazy evaluation for (rho_b, T, grid, Vext) to return a previous result if the same
                calculation is done several times (only when neither rho_0 nor solver is given).

        Args:
            rho_b (list[float]) : The bulk densities
            T (float) : Reduced temperature
            grid (Grid) : Spatial discretization
            Vext (ExtPotential, optional) : External potential as a function of position (default : Vext(r) = 0)
                                                    Note: Must be hashable, to use with lazy evaluation
                                                    Recomended: Use the callable classes inherriting ExtPotential
            rho_0 (list[Profile], optional) : Initial guess for density profiles.
            solver (SequentialSolver, optional) : The solver
            verbose (int) : Print progression information during run

        Returns:
            DensityProfile : The equilibrium density profiles and derived properties

        Raises:
            Diverged, MaxIterExceeded, Timeout : If the solver did not converge
        """
        from dftpack.density_profile import DensityProfile

        key = None
        if (rho_0 is None) and (solver is None):
            key = (tuple(self.validate_bulk_densities(rho_b)), T, grid,
                   tuple(Vext) if isinstance(Vext, Iterable) else Vext)
            if key in self.computed_density_profiles:
                return self.computed_density_profiles[key]

        result = self.equilibrium(rho_b, T, grid, Vext=Vext, rho_0=rho_0, solver=solver, verbose=verbose)
        result.raise_for_status()
        profile = DensityProfile.from_result(result)
        if key is not None:
            self.computed_density_profiles[key] = profile
        return profile


class EulerLagrangeMap:
    r"""
    The fixpoint map of the Euler-Lagrange equation. For segment $\alpha$ of component $i$

        $\rho_\alpha = \rho_i^b e_\alpha \prod_{\gamma} I_{\gamma \to \alpha}$,
        $e_\alpha = \exp(\mu_\alpha^b - \delta F / \delta \rho_\alpha - \beta V_\alpha)$

    where $\mu_\alpha^b$ is the derivative of the bulk phi wrt. the segment density, and the bond integrals
    $I_{\gamma \to \alpha}$ are computed on the bond graph (BondGraph.bond_integrals). For molecules with a single
    segment, this is $\rho = \rho^b \exp(\beta \mu^{res} - \delta F / \delta \rho - \beta V)$.

    Called with a flat iterate (the segment densities), returns the flat target. The state of the last evaluation
    is kept, for diagnostics.
    """

    def __init__(self, functional, rho_b, T, grid, Vext=None):
        self.functional = functional
        self.rho_b = functional.validate_bulk_densities(rho_b)
        self.T = T
        self.grid = grid
        self.Vext = functional.sanitize_Vext(Vext)
        self.shape = (functional.n_segments, *grid.shape)
        self.rho_ref = float(np.max(self.rho_b)) if np.max(self.rho_b) > 0 else 1.

        comp_idx = functional.graph.component_index
        expand = (-1,) + (1,) * grid.ndim
        with np.errstate(divide='ignore', invalid='ignore'):
            beta_V = [np.broadcast_to(np.asarray(self.Vext[ci](*grid.positions), dtype=float), grid.shape) / T
                      for ci in range(functional.ncomps)]
        self.beta_V = np.array([beta_V[ci] for ci in comp_idx])
        self.excluded = np.isposinf(self.beta_V)
        self.rho_b_seg = self.rho_b[comp_idx].reshape(expand)
        self.mu_seg = functional.segment_chemical_potential(self.rho_b, T).reshape(expand)

        self.kernels = functional.get_bond_kernels(grid)
        self.state = None
        self.n_clipped = 0

    def convolve_bond(self, bond_idx, field):
        return self.grid.transform.scalar(self.kernels[bond_idx], field, workers=self.functional.workers)

    def __call__(self, x):
        rho = np.reshape(x, self.shape)
        self.state = self.functional.evaluate(rho, self.T, self.grid)
        self.n_clipped = self.state.n_clipped

        with np.errstate(over='ignore', invalid='ignore'):
            e = np.exp(self.mu_seg - self.state.dfdrho - self.beta_V)
        e[self.excluded] = 0.

        if self.functional.graph.has_bonds():
            e = e * self.functional.graph.bond_integrals(e, self.convolve_bond)
        target = self.rho_b_seg * e

        bad = ~np.isfinite(target)
        if np.any(bad):
            segment, *node = np.unravel_index(np.argmax(bad), self.shape)
            raise NonFiniteEvaluation(int(np.ravel_multi_index(node, self.grid.shape)), segment=int(segment))
        return target.ravel()
