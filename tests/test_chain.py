import numpy as np
import pytest
from pytest import approx
from dftpack.chain import HardChain, contact_value
from dftpack.hardsphere import WhiteBear, Rosenfeld
from dftpack.topology import BondGraph, Segment
from dftpack.grid import PlanarGrid
from dftpack.external_potential import HardWall
from dftpack.solvers import SolverStatus
from tools import all_grids, grid_ids, packing_fraction, cs_pressure, cs_helmholtz_energy_density


def cavity_value(eta):
    """Carnahan-Starling contact value for identical spheres"""
    return (1 - eta / 2) / (1 - eta)**3

def test_contact_value():
    eta = 0.3
    assert contact_value(eta, eta, 0.5) == approx(cavity_value(eta))
    assert contact_value(0., 0., 0.5) == 1.

@pytest.mark.parametrize('m', [2, 3, 5])
@pytest.mark.parametrize('rho', [0.02, 0.1])
def test_tpt1_bulk(m, rho):
    """In the bulk, the chain functional is the TPT1 equation of state for tangent Carnahan-Starling spheres"""
    functional = HardChain(BondGraph.linear_chains([m], [1.]))
    rho_seg = m * rho
    eta = packing_fraction(rho_seg)

    phi = cs_helmholtz_energy_density(rho_seg) - (m - 1) * rho * np.log(cavity_value(eta))
    assert functional.helmholtz_energy_density([rho], 1.) == approx(phi, rel=1e-10)

    dlny = 3 / (1 - eta) - 1 / (2 - eta)
    p = rho + (cs_pressure(rho_seg) - rho_seg) - (m - 1) * rho * eta * dlny
    assert functional.pressure([rho], 1.) == approx(p, rel=1e-10)

def test_segment_chemical_potentials_sum_to_component():
    functional = HardChain(BondGraph.linear_chains([3, 1], [1., 0.8]))
    rho = [0.05, 0.2]
    mu_seg = functional.segment_chemical_potential(rho, 1.)
    mu = functional.residual_chemical_potential(rho, 1.)
    assert len(mu_seg) == 4
    assert mu[0] == approx(np.sum(mu_seg[:3]))
    assert mu[1] == approx(mu_seg[3])
    # The end segments of a linear chain are equivalent
    assert mu_seg[0] == approx(mu_seg[2])

def test_bulk_derivative():
    functional = HardChain(BondGraph.linear_chains([3, 2], [1., 0.8]))
    rho = np.array([0.05, 0.1])
    mu = functional.residual_chemical_potential(rho, 1.)
    h = 1e-6
    for i in range(2):
        dr = np.zeros(2)
        dr[i] = h
        dphi = (functional.helmholtz_energy_density(rho + dr, 1.) - functional.helmholtz_energy_density(rho - dr, 1.)) / (2 * h)
        assert dphi == approx(mu[i], rel=1e-6)

@pytest.mark.parametrize('fmt', [WhiteBear, Rosenfeld])
def test_monomers_reduce_to_fmt(fmt):
    chain = HardChain(BondGraph.monomers([1., 0.6]), fmt=fmt)
    hs = fmt([0.5, 0.3])
    rho = [0.3, 0.5]
    assert chain.pressure(rho, 1.) == approx(hs.pressure(rho, 1.), rel=1e-12)
    assert np.allclose(chain.residual_chemical_potential(rho, 1.), hs.residual_chemical_potential(rho, 1.), rtol=1e-12)

def test_weights_layout():
    functional = HardChain(BondGraph.linear_chains([2], [1.]))
    w = functional.get_weights()
    assert len(w) == 6 + 2 * 2
    assert all(len(wi) == 2 for wi in w)
    assert w[6][1] == 0 and w[7][0] == 0
    assert w[6][0].real_integral() == approx(1.)
    assert w[8][0].real_integral() == 1

@pytest.mark.parametrize('grid', all_grids(), ids=grid_ids)
def test_uniform_functional_derivative(grid):
    functional = HardChain(BondGraph.linear_chains([2, 1], [1., 0.8]))
    rho_b = [0.1, 0.2]
    rho = np.array([r * np.ones(grid.shape) for r in functional.segment_densities(rho_b)])
    state = functional.evaluate(rho, 1., grid)
    mu_seg = functional.segment_chemical_potential(rho_b, 1.)
    for a in range(3):
        assert np.allclose(state.dfdrho[a], mu_seg[a], rtol=1e-8)

def test_branched_molecule():
    """A star with three arms, the three arm segments are equivalent"""
    graph = BondGraph([Segment(0), Segment(0), Segment(0), Segment(0)], [(0, 1), (0, 2), (0, 3)])
    functional = HardChain(graph)
    mu_seg = functional.segment_chemical_potential([0.05], 1.)
    assert mu_seg[1] == approx(mu_seg[2]) and mu_seg[2] == approx(mu_seg[3])
    assert mu_seg[0] != approx(mu_seg[1])

def test_dimers_at_hard_wall():
    grid = PlanarGrid(128, 8.)
    functional = HardChain(BondGraph.linear_chains([2], [1.]))
    profile = functional.density_profile_wall([0.15], 1., grid, Vext=HardWall(0.5, is_pore=False))

    assert profile.result.status == SolverStatus.CONVERGED
    seg_a, seg_b = profile.segments
    assert np.allclose(seg_a, seg_b, atol=1e-8)
    assert np.all(seg_a[grid.z < 0.5] == 0)
    assert np.all(np.abs(profile.rho[0][grid.z > 6.] - 0.15) < 1e-2)
    assert profile.pressure() == approx(functional.pressure([0.15], 1.))
