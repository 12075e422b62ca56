import numpy as np
import pytest
from pytest import approx
from dftpack.profile import Profile
from dftpack.grid import PlanarGrid, SphericalGrid, CartesianGrid
from dftpack.external_potential import HardWall, SlitPore, LennardJones93, Steele
from dftpack.WeightFunction import Heaviside
from dftpack.hardsphere import WhiteBear


def test_profile_keeps_grid():
    grid = PlanarGrid(100, 10.)
    p = Profile(np.ones(100), grid)
    assert p.grid is grid
    assert (2 * p + 1).grid is grid
    assert p.integrate() == approx(10.)
    with pytest.raises(ValueError):
        Profile(np.ones(99), grid)

def test_interpolation():
    grid = PlanarGrid(100, 10.)
    p = Profile(grid.z ** 2, grid)
    assert p(grid.z[10]) == approx(grid.z[10] ** 2)
    assert p(100.) == approx(grid.z[-1] ** 2) # Edge value outside the grid

    fine = PlanarGrid(200, 10.)
    q = p.on_grid(fine)
    assert q.grid is fine
    assert np.allclose(q[10:-10], fine.z[10:-10] ** 2, rtol=2e-2)

@pytest.mark.parametrize('grid', [PlanarGrid(50, 5., domain_start=1.), SphericalGrid(50, 5.), CartesianGrid((4, 6), (2., 3.))],
                         ids=['planar', 'spherical', 'cartesian'])
def test_save_load(tmp_path, grid):
    p = Profile(np.random.default_rng(1).uniform(size=grid.shape), grid)
    filename = tmp_path / 'profile.json'
    p.save(filename)
    loaded = Profile.load(filename)
    assert loaded.grid == grid
    assert np.allclose(loaded, p)

    Profile.save_list([p, 2 * p], tmp_path / 'profiles.json')
    loaded = Profile.load_file(tmp_path / 'profiles.json')
    assert len(loaded) == 2
    assert np.allclose(loaded[1], 2 * p)

def test_tanh_profile():
    grid = PlanarGrid(300, 30.)
    left, right = [0.1, 0.7], [0.6, 0.05]
    profiles = Profile.tanh_profile(grid, left, right)
    for p, l, r in zip(profiles, left, right):
        assert p[0] == approx(l)
        assert p[-1] == approx(r)
        assert p(15.) == approx(0.5 * (l + r), rel=1e-2)
    with pytest.warns(RuntimeWarning):
        Profile.tanh_profile(PlanarGrid(20, 2.), left, right)

def test_from_potential():
    grid = PlanarGrid(100, 10.)
    wall = HardWall(2., is_pore=False)
    p = Profile.from_potential([0.3], 1., grid, [wall])[0]
    assert np.all(p[grid.z < 2.] == 0)
    assert np.allclose(p[grid.z > 2.], 0.3)

    # Ideal gas in a linear potential
    p = Profile.from_potential([0.3], 2., grid, lambda z: z)[0]
    assert np.allclose(p, 0.3 * np.exp(- grid.z / 2.))

def test_from_potential_caps_packing():
    """A strongly attractive potential would give an ideal gas density far beyond close packing"""
    grid = PlanarGrid(100, 10.)
    w3 = [Heaviside(0.5)]
    well = lambda z: np.where(np.abs(z - 5.) < 1., - 10., 0.)
    p = Profile.from_potential([0.3], 1., grid, well, w3=w3)[0]
    cap = 0.99 / w3[0].real_integral()
    assert np.max(p) == approx(cap)
    assert p[50] == approx(cap)
    assert np.max(Profile.from_potential([0.3], 1., grid, well)[0]) > 1e3

def test_zeros():
    grid = PlanarGrid(10, 1.)
    assert np.all(Profile.zeros(grid) == 0)
    profiles = Profile.zeros(grid, 3)
    assert len(profiles) == 3
    assert len(Profile.zeros_like(profiles)) == 3

def test_hard_wall():
    z = np.linspace(0, 2, 5)
    assert np.all(HardWall(1.)(z) == [0, 0, 0, np.inf, np.inf])
    assert np.all(HardWall(1., is_pore=False)(z) == [np.inf, np.inf, 0, 0, 0])
    assert HardWall(1.) == HardWall(1.)
    assert HardWall(1.) != HardWall(1., is_pore=False)

def test_slit_pore():
    pore = SlitPore(6., LennardJones93(1., 1.))
    z = np.linspace(0.5, 5.5, 11)
    V = pore(z)
    assert np.allclose(V, V[::-1])
    assert np.isinf(pore(np.array([0., 6.]))).all()

def test_lj93_minimum():
    wall = LennardJones93(1., 2.)
    z_min = 3 ** (1 / 6)
    assert float(wall(np.array([z_min]))[0]) == approx(- 2 * 2. / (3 * np.sqrt(3)))
    z = np.linspace(z_min - 0.1, z_min + 0.1, 21)
    assert np.argmin(wall(z)) == 10
    assert np.isinf(wall(np.array([0.]))[0])

def test_steele():
    wall = Steele(1., 1., 0.335, 1.)
    z = np.linspace(0.8, 5., 100)
    V = wall(z)
    assert np.all(np.isfinite(V))
    assert V[0] > 0 and np.min(V) < 0
    assert abs(V[-1]) < abs(np.min(V))

def test_potential_is_cached_by_value():
    functional = WhiteBear(0.5)
    assert hash(LennardJones93(1., 1.)) == hash(LennardJones93(1., 1.))
    assert functional.sanitize_Vext(HardWall(1.)) == (HardWall(1.),)
