import numpy as np
import jax.numpy as jnp
import pytest
from pytest import approx
from dftpack.hardsphere import Rosenfeld, WhiteBear, WhiteBearMarkII, rosenfeld_phi, whitebear_phi, SERIES_LIMIT
from dftpack.grid import PlanarGrid
from tools import all_grids, grid_ids, packing_fraction, py_pressure, cs_pressure, cs_chemical_potential, \
    cs_helmholtz_energy_density, rosenfeld_derivatives, random_fmt_weighted_densities


def test_rosenfeld_derivatives():
    """Automatic differentiation of the Rosenfeld functional reproduces the analytical derivatives"""
    functional = Rosenfeld(0.5)
    n = random_fmt_weighted_densities(50)
    (_, phi), dphidn = functional._phi_and_derivatives([jnp.asarray(ni) for ni in n], 1.)
    assert np.allclose(np.asarray(phi), np.asarray(rosenfeld_phi(n)))

    expected = rosenfeld_derivatives(n)
    for i in range(4):
        assert np.allclose(np.asarray(dphidn[i]), expected[i], rtol=1e-10)
    for i in range(4, 6):
        assert np.asarray(dphidn[i]).shape == (1, 50)
        assert np.allclose(np.asarray(dphidn[i])[0], expected[i], rtol=1e-10)

def test_whitebear_reduces_to_rosenfeld():
    n = random_fmt_weighted_densities(20)
    dilute = [ni * 1e-4 for ni in n]
    assert np.allclose(np.asarray(whitebear_phi(dilute)), np.asarray(rosenfeld_phi(dilute)), rtol=1e-6)
    # At finite density they differ
    assert not np.allclose(np.asarray(whitebear_phi(n)), np.asarray(rosenfeld_phi(n)), rtol=1e-3)

@pytest.mark.parametrize('functional', [WhiteBear(0.5), WhiteBearMarkII(0.5)])
def test_series_branch_is_continuous(functional):
    """The small n3 expansion joins the exact expression"""
    rho_below = SERIES_LIMIT * (1 - 1e-6) / packing_fraction(1.)
    rho_above = SERIES_LIMIT * (1 + 1e-6) / packing_fraction(1.)
    mu_below = functional.residual_chemical_potential([rho_below], 1.)[0]
    mu_above = functional.residual_chemical_potential([rho_above], 1.)[0]
    assert mu_below == approx(mu_above, rel=1e-5)
    assert np.isfinite(mu_below)

@pytest.mark.parametrize('rho', [1e-4, 0.1, 0.5, 0.8])
def test_rosenfeld_bulk(rho):
    """The Rosenfeld functional gives the Percus-Yevick (compressibility) equation of state"""
    assert Rosenfeld(0.5).pressure([rho], 1.) == approx(py_pressure(rho), rel=1e-10)

@pytest.mark.parametrize('rho', [1e-3, 0.1, 0.5, 0.8])
def test_whitebear_bulk(rho):
    """The White Bear functional gives the Carnahan-Starling equation of state"""
    functional = WhiteBear(0.5)
    assert functional.pressure([rho], 1.) == approx(cs_pressure(rho), rel=1e-10)
    assert functional.residual_chemical_potential([rho], 1.)[0] == approx(cs_chemical_potential(rho), rel=1e-10)
    assert functional.helmholtz_energy_density([rho], 1.) == approx(cs_helmholtz_energy_density(rho), rel=1e-10)
    assert functional.grand_potential_density([rho], 1.) == approx(- cs_pressure(rho), rel=1e-10)
    assert functional.packing_fraction([rho]) == approx(packing_fraction(rho))

def test_whitebear_mark2_bulk():
    functional = WhiteBearMarkII(0.5)
    rho = 2e-3
    eta = packing_fraction(rho)
    Z = functional.pressure([rho], 1.) / rho
    assert Z - 1 == approx(4 * eta, rel=1e-2)
    for rho in [0.3, 0.6]:
        assert functional.pressure([rho], 1.) == approx(cs_pressure(rho), rel=1e-2)

def test_temperature_independent():
    functional = WhiteBear(0.5)
    assert functional.pressure([0.5], 1.) == approx(functional.pressure([0.5], 3.))

@pytest.mark.parametrize('functional', [Rosenfeld([0.5, 0.3]), WhiteBear([0.5, 0.3]), WhiteBearMarkII([0.5, 0.3])],
                         ids=['Rosenfeld', 'WhiteBear', 'WhiteBearMarkII'])
def test_bulk_derivative(functional):
    """The residual chemical potential is the derivative of phi wrt. density"""
    rho = np.array([0.2, 0.5])
    mu = functional.residual_chemical_potential(rho, 1.)
    h = 1e-6
    for i in range(2):
        dr = np.zeros(2)
        dr[i] = h
        dphi = (functional.helmholtz_energy_density(rho + dr, 1.) - functional.helmholtz_energy_density(rho - dr, 1.)) / (2 * h)
        assert dphi == approx(mu[i], rel=1e-6)

@pytest.mark.parametrize('grid', all_grids(), ids=grid_ids)
def test_uniform_functional_derivative(grid):
    """For a uniform density, the functional derivative is the bulk residual chemical potential everywhere"""
    functional = WhiteBear([0.5, 0.3])
    rho_b = [0.3, 0.6]
    rho = np.array([r * np.ones(grid.shape) for r in rho_b])
    state = functional.evaluate(rho, 1., grid)
    mu = functional.residual_chemical_potential(rho_b, 1.)
    for i in range(2):
        assert np.allclose(state.dfdrho[i], mu[i], rtol=1e-8)
    assert np.allclose(state.phi, functional.helmholtz_energy_density(rho_b, 1.), rtol=1e-8)
    assert state.n_clipped == 0

def test_evaluate_clips_at_floor():
    functional = Rosenfeld(0.5)
    grid = PlanarGrid(64, 8.)
    rho = 0.3 * np.ones((1, 64))
    rho[0, :10] = 0.
    rho[0, 10:12] = - 1e-3
    state = functional.evaluate(rho, 1., grid)
    assert state.n_clipped == 12
    assert np.all(state.rho >= functional.floor)
    assert np.all(np.isfinite(state.dfdrho))
    assert rho[0, 0] == 0 # The input is not modified

def test_evaluate_wrong_shape():
    functional = Rosenfeld(0.5)
    with pytest.raises(ValueError):
        functional.evaluate(np.ones((2, 64)), 1., PlanarGrid(64, 8.))

def test_bulk_density_validation():
    functional = WhiteBear([0.5, 0.3])
    with pytest.raises(IndexError):
        functional.pressure([0.1], 1.)
    with pytest.raises(ValueError):
        functional.pressure([0.1, - 0.1], 1.)
    with pytest.raises(ValueError):
        functional.pressure([0.1, np.nan], 1.)
    with pytest.raises(IndexError):
        functional.sanitize_Vext([lambda z: 0])

def test_radius():
    functional = WhiteBear([0.5, 0.3])
    assert np.allclose(functional.get_R(), [0.5, 0.3])
    assert np.allclose(functional.get_characteristic_lengths(), [1., 0.6])
    assert 'WhiteBear' in repr(functional)
