import jax
jax.config.update("jax_enable_x64", True)

from . import errors
from . import grid
from . import profile
from . import WeightFunction
from . import topology
from . import solvers
from . import Functional
from . import hardsphere
from . import chain
from . import density_profile
from . import external_potential
from . import records

Grid = grid.Grid
PlanarGrid = grid.PlanarGrid
SphericalGrid = grid.SphericalGrid
PolarGrid = grid.PolarGrid
CartesianGrid = grid.CartesianGrid
Geometry = grid.Geometry
Profile = profile.Profile
BondGraph = topology.BondGraph
Segment = topology.Segment
SequentialSolver = solvers.SequentialSolver
SolverStatus = solvers.SolverStatus
DensityProfile = density_profile.DensityProfile
Rosenfeld = hardsphere.Rosenfeld
WhiteBear = hardsphere.WhiteBear
WhiteBearMarkII = hardsphere.WhiteBearMarkII
HardChain = chain.HardChain
SegmentRecord = records.SegmentRecord
