"""
This is where the fixed-point solvers are implemented. See Functional.equilibrium for example usage.

All solvers work on a flat array (the iterate), and a fixpoint map, which takes an iterate and returns the target
iterate (for the density profile solver, the right hand side of the Euler-Lagrange equation, see
Functional.EulerLagrangeMap). The residual is the RMS of (target - iterate), divided by a reference density.

The solvers never raise on iteration failures: The outcome is stored in the status of the returned
EquilibriumResult, use EquilibriumResult.raise_for_status() to turn a failure into an exception.
"""
import time
import warnings
from collections import deque
from enum import IntEnum
import numpy as np
from dftpack.errors import NonFiniteEvaluation, Diverged, MaxIterExceeded, Timeout


class SolverStatus(IntEnum):
    INITIALIZING = 0
    ITERATING = 1
    CONVERGED = 2
    DIVERGED = 3
    MAX_ITER_EXCEEDED = 4
    TIMEOUT = 5


class EquilibriumResult:

    def __init__(self, profile, status, residuals, iterations, solver, max_iter, tol, failure=None, n_clipped=0,
                 n_restarts=0, elapsed=0.):
        """
        Args:
            profile (ndarray) : The final iterate (flat)
            status (SolverStatus) : How the solver exited
            residuals (list[float]) : Residual at every completed iteration
            iterations (int) : Number of fixpoint evaluations
            solver (str) : Name of the solver routine
            max_iter (int) : Iteration cap
            tol (float) : Convergence tolerance
            failure (NonFiniteEvaluation, optional) : The failure that stopped the solver, if any
            n_clipped (int) : Number of density nodes clipped at the floor in the last evaluation
            n_restarts (int) : Number of times the acceleration history was discarded
            elapsed (float) : Wall time [s]
        """
        self.profile = profile
        self.status = SolverStatus(status)
        self.converged = (self.status == SolverStatus.CONVERGED)
        self.residuals = list(residuals)
        self.residual = self.residuals[-1] if len(self.residuals) > 0 else np.nan
        self.iterations = iterations
        self.solver = solver
        self.max_iter = max_iter
        self.tol = tol
        self.failure = failure
        self.n_clipped = n_clipped
        self.n_restarts = n_restarts
        self.elapsed = elapsed

        # The state the profile belongs to, set by Functional.equilibrium
        self.functional = None
        self.rho_b = None
        self.T = None
        self.grid = None

    @property
    def message(self):
        if self.status == SolverStatus.CONVERGED:
            return 'Finished with convergence.'
        elif self.status == SolverStatus.MAX_ITER_EXCEEDED:
            return f'Exited after reaching max number of iterations ({self.max_iter}).'
        elif self.status == SolverStatus.TIMEOUT:
            return f'Exited after exceeding the time limit ({self.elapsed:.2f} s).'
        elif self.status == SolverStatus.DIVERGED:
            if self.failure is not None:
                return f'Diverged : {self.failure}'
            return 'Diverged : The residual kept growing.'
        return f'Exited, but the solver is still {self.status.name}.'

    def raise_for_status(self):
        """
        Raise the error matching the status of a failed solve, do nothing if the solver converged.

        Raises:
            Diverged, MaxIterExceeded, Timeout : With this result available as the .result attribute
        """
        errors = {SolverStatus.DIVERGED: Diverged,
                  SolverStatus.MAX_ITER_EXCEEDED: MaxIterExceeded,
                  SolverStatus.TIMEOUT: Timeout}
        if self.status in errors:
            raise errors[self.status](self)
        elif self.status != SolverStatus.CONVERGED:
            raise RuntimeError(f'Solver exited with status {self.status.name}.')

    def __repr__(self):
        r = 'EquilibriumResult\n'
        r += f'Solver     : {self.solver}\n'
        if self.grid is not None:
            r += f'profile    : {self.grid}\n'
        r += f'status     : {self.status.name}\n'
        r += f'residual   : {self.residual} / Tolerance : {self.tol}\n'
        r += f'iterations : {self.iterations} / Max iterations : {self.max_iter}\n'
        r += f'clipped    : {self.n_clipped} nodes, restarts : {self.n_restarts}\n'
        r += f'message    : {self.message}'
        return r

    def __str__(self):
        return self.__repr__()


def residual_norm(f, rho_ref=1.):
    """Utility
    RMS of the residual vector f, relative to the reference density.
    """
    return np.linalg.norm(f) / np.sqrt(f.size) / rho_ref


class _IterationMonitor:
    """Internal
    Keeps track of the stopping criteria that are common for all solvers. Called once per iteration with the
    residual, returns the new solver status.
    """

    def __init__(self, tol, max_iter, max_time, divergence_factor, patience):
        self.tol = tol
        self.max_iter = max_iter
        self.deadline = None if max_time is None else time.perf_counter() + max_time
        self.divergence_factor = divergence_factor
        self.patience = patience
        self.best = np.inf
        self.n_growing = 0
        self.iteration = 0

    def __call__(self, res):
        self.iteration += 1
        if res < self.tol:
            return SolverStatus.CONVERGED

        self.best = min(self.best, res)
        if res > self.divergence_factor * self.best:
            self.n_growing += 1
        else:
            self.n_growing = 0
        if self.n_growing >= self.patience:
            return SolverStatus.DIVERGED

        if (self.max_iter is not None) and (self.iteration >= self.max_iter):
            return SolverStatus.MAX_ITER_EXCEEDED
        if (self.deadline is not None) and (time.perf_counter() > self.deadline):
            return SolverStatus.TIMEOUT
        return SolverStatus.ITERATING


def _evaluate(fixpoint, x, iteration):
    """Internal
    Evaluate the fixpoint map, converting non-finite targets to a NonFiniteEvaluation.

    Returns:
        ndarray : The target (None on failure)
        NonFiniteEvaluation : The failure (None on success)
    """
    try:
        target = fixpoint(x)
    except NonFiniteEvaluation as err:
        return None, err.at_iteration(iteration)

    bad = ~np.isfinite(target)
    if np.any(bad):
        return None, NonFiniteEvaluation(int(np.argmax(bad.ravel())), iteration=iteration)
    return target, None


def picard(fixpoint, x0, tol=1e-8, mixing_alpha=0.1, max_iter=100, max_time=None, rho_ref=1.,
           divergence_factor=1e4, patience=5, verbose=0):
    r"""
    Damped fixed-point (Picard) iteration, $x_{n + 1} = (1 - \alpha) x_n + \alpha f(x_n)$.

    Args:
        fixpoint (callable) : The fixpoint map
        x0 (ndarray) : Initial guess
        tol (float) : Convergence tolerance for the residual
        mixing_alpha (float) : Damping factor (0 < mixing_alpha <= 1)
        max_iter (int) : Maximum number of fixpoint evaluations
        max_time (float, optional) : Deadline [s], checked once per iteration
        rho_ref (float) : Reference density used to normalise the residual
        divergence_factor (float) : Residual growth (relative to the best residual) that counts as diverging
        patience (int) : Number of consecutive diverging iterations before giving up
        verbose (int) : Print progress if > 0

    Returns:
        EquilibriumResult : The final iterate, with status and residual trace
    """
    start = time.perf_counter()
    monitor = _IterationMonitor(tol, max_iter, max_time, divergence_factor, patience)
    x = np.array(x0, dtype=float)
    residuals = []
    failure = None
    status = SolverStatus.ITERATING
    i = 0
    while status == SolverStatus.ITERATING:
        i += 1
        target, failure = _evaluate(fixpoint, x, i)
        if failure is not None:
            status = SolverStatus.DIVERGED
            break

        res = residual_norm(target - x, rho_ref)
        residuals.append(res)
        if verbose > 1:
            print(f'Picard iteration {i}, residual : {res}')
        status = monitor(res)
        if status != SolverStatus.ITERATING:
            break

        x = (1 - mixing_alpha) * x + mixing_alpha * target

    if verbose > 0:
        print(f'Picard exited with status {status.name} after {i} iterations (residual : {residuals[-1] if residuals else np.nan})')

    return EquilibriumResult(x, status, residuals, i, 'Picard', max_iter, tol, failure=failure,
                             n_clipped=getattr(fixpoint, 'n_clipped', 0), elapsed=time.perf_counter() - start)


def anderson(fixpoint, x0, tol=1e-10, beta_mix=0.05, m_max=50, max_iter=200, restart_factor=10., max_time=None,
             rho_ref=1., divergence_factor=1e4, patience=5, verbose=0):
    """
    Anderson mixing. The mixing coefficients are found from the (bordered) least squares problem over the last m_max
    residuals, and the next iterate is sum_i alpha_i (x_i + beta_mix f_i), where f_i are the residuals. Negative
    entries are reflected (abs), to keep densities non-negative.

    Plain damped steps are used until the history holds at least two entries. If the residual grows beyond
    restart_factor times the best residual seen, the history is discarded and a damped step is taken from the best
    iterate.

    Args:
        fixpoint (callable) : The fixpoint map
        x0 (ndarray) : Initial guess
        tol (float) : Convergence tolerance for the residual
        beta_mix (float) : Mixing parameter
        m_max (int) : Maximum size of the history (oldest entries are evicted first)
        max_iter (int) : Maximum number of fixpoint evaluations
        restart_factor (float) : Residual growth (relative to the best residual) that triggers a restart
        max_time (float, optional) : Deadline [s], checked once per iteration
        rho_ref (float) : Reference density used to normalise the residual
        divergence_factor (float) : Residual growth (relative to the best residual) that counts as diverging
        patience (int) : Number of consecutive diverging iterations before giving up
        verbose (int) : Print progress if > 0

    Returns:
        EquilibriumResult : The final iterate, with status and residual trace
    """
    start = time.perf_counter()
    monitor = _IterationMonitor(tol, max_iter, max_time, divergence_factor, patience)
    prev_res = deque(maxlen=m_max)
    prev_x = deque(maxlen=m_max)
    x = np.array(x0, dtype=float)
    x_best, f_best, res_best = None, None, np.inf
    residuals = []
    failure = None
    n_restarts = 0
    status = SolverStatus.ITERATING
    i = 0
    while status == SolverStatus.ITERATING:
        i += 1
        target, failure = _evaluate(fixpoint, x, i)
        if failure is not None:
            status = SolverStatus.DIVERGED
            if verbose > 0:
                print('Anderson mixing failed using parameters:')
                print(f'tol : {tol}, beta_mix : {beta_mix}, m_max : {m_max}')
                print(f'{failure}')
            break

        f = target - x
        res = residual_norm(f, rho_ref)
        residuals.append(res)
        if verbose > 1:
            print(f'Anderson iteration {i}, residual : {res}')
        status = monitor(res)
        if status != SolverStatus.ITERATING:
            break

        if res < res_best:
            x_best, f_best, res_best = x.copy(), f.copy(), res
        elif (res > restart_factor * res_best) and (len(prev_res) > 0):
            if verbose > 0:
                print(f'Anderson restarting at iteration {i} (residual : {res}, best : {res_best})')
            prev_res.clear()
            prev_x.clear()
            n_restarts += 1
            x = np.abs(x_best + beta_mix * f_best)
            continue

        prev_res.append(f)
        prev_x.append(x.copy())
        m = len(prev_res)
        if m < 2:
            x = np.abs(x + beta_mix * f)
            continue

        R = np.array(prev_res)
        RR = R @ R.T
        r = np.ones((m + 1, m + 1))
        r[m, m] = 0.0
        r[:-1, :-1] = RR / np.max(np.diag(RR))
        rhs = np.zeros(m + 1)
        rhs[m] = 1.0
        alpha = np.linalg.lstsq(r, rhs, rcond=None)[0]

        x = np.zeros_like(x)
        for j in range(m):
            x += alpha[j] * (prev_x[j] + beta_mix * prev_res[j])
        x = np.abs(x)

    if verbose > 0:
        print(f'Anderson exited with status {status.name} after {i} iterations (residual : {residuals[-1] if residuals else np.nan})')

    return EquilibriumResult(x, status, residuals, i, 'Anderson', max_iter, tol, failure=failure,
                             n_clipped=getattr(fixpoint, 'n_clipped', 0), n_restarts=n_restarts,
                             elapsed=time.perf_counter() - start)


class SequentialSolver:
    """
    A chain of solver stages, run in the order they are added. Typical use is

        solver = SequentialSolver()
        solver.add_picard(1e-5, mixing_alpha=0.05, max_iter=50)
        solver.add_anderson(1e-10, beta_mix=0.15, max_iter=450)
        result = solver(fixpoint, x0)

    such that the solver becomes more aggressive as the solution is approached. Each stage starts from the iterate
    the previous stage ended at. A stage that reaches its iteration cap hands its iterate on to the next stage, while
    a stage that diverges or times out ends the sequence. The sequence ends as soon as the residual is below the
    tolerance of the final stage.

    Args:
        max_iter (int, optional) : Cap on the total number of iterations, shared by all stages
        max_time (float, optional) : Deadline [s] for the whole sequence
    """

    def __init__(self, max_iter=None, max_time=None):
        self.max_iter = max_iter
        self.max_time = max_time
        self.stages = []

    def add_picard(self, tol, mixing_alpha=0.05, max_iter=100, **kwargs):
        self._add_stage(picard, tol, mixing_alpha=mixing_alpha, max_iter=max_iter, **kwargs)

    def add_anderson(self, tol, beta_mix=0.05, m_max=50, max_iter=200, restart_factor=10., **kwargs):
        self._add_stage(anderson, tol, beta_mix=beta_mix, m_max=m_max, max_iter=max_iter,
                        restart_factor=restart_factor, **kwargs)

    def _add_stage(self, routine, tol, **kwargs):
        if len(self.stages) > 0:
            if tol >= self.tolerances[-1]:
                warnings.warn(f'Adding solver with tol : {tol}. Previous tolerance is {self.tolerances[-1]}',
                              RuntimeWarning, stacklevel=3)
        self.stages.append((routine, tol, kwargs))

    @property
    def tolerances(self):
        return [tol for _, tol, _ in self.stages]

    def __repr__(self):
        return f"SequentialSolver({', '.join(routine.__name__ for routine, _, _ in self.stages)})"

    def __call__(self, fixpoint, x0, rho_ref=1., verbose=0):
        """
        Run the stages.

        Args:
            fixpoint (callable) : The fixpoint map
            x0 (ndarray) : Initial guess
            rho_ref (float) : Reference density used to normalise the residual
            verbose (int) : Print progress if > 0, stages are run with verbose - 1

        Returns:
            EquilibriumResult : With the residual trace of all stages, and the total number of iterations
        """
        if len(self.stages) == 0:
            raise ValueError('SequentialSolver has no stages. Use add_picard / add_anderson.')

        start = time.perf_counter()
        deadline = None if self.max_time is None else start + self.max_time
        final_tol = self.tolerances[-1]

        x = x0
        residuals = []
        n_iter, n_restarts = 0, 0
        sol = None
        status = SolverStatus.INITIALIZING
        for stage_idx, (routine, tol, kwargs) in enumerate(self.stages):
            kwargs = dict(kwargs)
            if self.max_iter is not None:
                if self.max_iter - n_iter <= 0:
                    status = SolverStatus.MAX_ITER_EXCEEDED
                    break
                kwargs['max_iter'] = min(kwargs['max_iter'], self.max_iter - n_iter)
            if deadline is not None:
                remaining = deadline - time.perf_counter()
                if remaining <= 0:
                    status = SolverStatus.TIMEOUT
                    break
                kwargs['max_time'] = remaining if kwargs.get('max_time') is None else min(kwargs['max_time'], remaining)

            sol = routine(fixpoint, x, tol=tol, rho_ref=rho_ref, verbose=verbose - 1, **kwargs)
            residuals.extend(sol.residuals)
            n_iter += sol.iterations
            n_restarts += sol.n_restarts
            x = sol.profile
            status = sol.status

            if verbose > 0:
                print('#' * 50)
                print(f'Solver {routine.__name__} (nr. {stage_idx}) with {kwargs}')
                print(f'{sol.message} after {sol.iterations} iterations (tol : {tol}, residual : {sol.residual}, '
                      f'clipped nodes : {sol.n_clipped})')
                print('#' * 50)

            if status in (SolverStatus.DIVERGED, SolverStatus.TIMEOUT):
                break
            if sol.residual < final_tol:
                status = SolverStatus.CONVERGED
                break

        if status != SolverStatus.CONVERGED:
            warnings.warn(f'Sequential solver could not converge ({status.name}, residual : '
                          f'{residuals[-1] if residuals else np.nan}). '
                          f'Call the solver with verbose > 0 for debugging info.', RuntimeWarning, stacklevel=2)

        max_iter = self.max_iter if self.max_iter is not None else sum(kw['max_iter'] for _, _, kw in self.stages)
        return EquilibriumResult(x, status, residuals, n_iter, repr(self), max_iter, final_tol,
                                 failure=None if sol is None else sol.failure,
                                 n_clipped=getattr(fixpoint, 'n_clipped', 0), n_restarts=n_restarts,
                                 elapsed=time.perf_counter() - start)
