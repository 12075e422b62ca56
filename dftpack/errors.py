"""
Error taxonomy for dftpack.

Construction-time errors (InvalidGeometry, DisconnectedTopology, InvalidBond) are raised immediately and are fatal.
Iteration-time failures are recorded on the EquilibriumResult returned by the solvers, and only turned into
exceptions (Diverged, MaxIterExceeded, Timeout) by EquilibriumResult.raise_for_status(). These carry the result,
so that the residual trace and iteration count are available to the caller.
"""


class DFTError(Exception):
    pass


class InvalidGeometry(DFTError, ValueError):
    pass


class DisconnectedTopology(DFTError, ValueError):
    pass


class InvalidBond(DFTError, ValueError):
    pass


class NonFiniteEvaluation(DFTError, ArithmeticError):
    """
    The functional (or the Euler-Lagrange map) produced NaN or Inf.

    Args:
        node (int) : Flat index of the first offending grid node
        iteration (int, optional) : Solver iteration at which the failure occurred
        segment (int, optional) : Segment index of the offending field
    """
    def __init__(self, node, iteration=None, segment=None):
        self.node = node
        self.iteration = iteration
        self.segment = segment
        super().__init__(self._message())

    def _message(self):
        msg = f'Non-finite value at grid node {self.node}'
        if self.segment is not None:
            msg += f' (segment {self.segment})'
        if self.iteration is not None:
            msg += f' in iteration {self.iteration}'
        return msg + '.'

    def at_iteration(self, iteration):
        self.iteration = iteration
        self.args = (self._message(),)
        return self


class SolverError(DFTError, RuntimeError):
    """
    Parent of the recoverable solver failures. The EquilibriumResult is available as `.result`.
    """
    def __init__(self, result):
        self.result = result
        super().__init__(f'{result.message} (iterations : {result.iterations}, residual : {result.residual})')


class Diverged(SolverError):
    pass


class MaxIterExceeded(SolverError):
    pass


class Timeout(SolverError):
    pass


class NotConverged(DFTError, RuntimeError):
    pass
