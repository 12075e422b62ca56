import numpy as np
import pytest
from pytest import approx
from dftpack.WeightFunction import LocalDensity, Heaviside, NormTheta, Delta, DeltaVec, BondShell, get_FMT_weights


@pytest.mark.parametrize('w', [Heaviside(0.5), NormTheta(0.7), Delta(0.5), BondShell(1.2), 3 * Delta(0.4),
                               Heaviside(0.5) / 2, Delta(0.5) - Heaviside(0.5), Delta(0.5) + Heaviside(0.5)])
def test_kernel_at_zero_is_integral(w):
    assert float(w(0.)) == approx(w.real_integral(), rel=1e-12)

def test_integrals():
    R = 0.6
    assert Heaviside(R).real_integral() == approx((4 / 3) * np.pi * R**3)
    assert NormTheta(R).real_integral() == 1
    assert Delta(R).real_integral() == approx(4 * np.pi * R**2)
    assert BondShell(R).real_integral() == 1
    assert DeltaVec(R).real_integral() == 0

def test_parity():
    assert DeltaVec(0.5).is_odd()
    assert (2 * DeltaVec(0.5)).is_odd()
    assert not Heaviside(0.5).is_odd()
    assert Heaviside(0.5).is_even()
    assert BondShell(1.).is_even()

def test_scalar_multiplication():
    k = np.linspace(0, 3, 31)
    w = Delta(0.5)
    assert np.allclose((2.5 * w)(k), 2.5 * w(k))
    assert np.allclose((w * 2.5)(k), 2.5 * w(k))
    assert np.allclose((np.float64(2.5) * w)(k), 2.5 * w(k))
    assert np.allclose((w / 4)(k), w(k) / 4)
    assert (np.float64(2.5) * w).real_integral() == approx(2.5 * w.real_integral())

def test_delta_vec_is_gradient_of_heaviside():
    # The transform of the vector kernel is -i k_hat A(k), and the transform of the gradient is 2 pi i k
    R, k = 0.5, np.linspace(0.01, 4, 50)
    assert np.allclose(DeltaVec(R)(k), - 2 * np.pi * k * Heaviside(R)(k))

def test_bond_shell_decays():
    k = np.linspace(0, 10, 200)
    w = BondShell(1.)
    assert np.all(np.abs(w(k)) <= 1 + 1e-14)

def test_local_density():
    w = 2 * LocalDensity()
    assert isinstance(w, LocalDensity)
    assert w.mult_factor == 2
    assert w.real_integral() == 2
    with pytest.raises(AttributeError):
        w(0.)

def test_equality():
    assert (Heaviside(0.5) == 1) is False
    with pytest.raises(TypeError):
        Heaviside(0.5) == Heaviside(0.5)

@pytest.mark.parametrize('R', [[0.5], [0.5, 0.3]])
def test_fmt_weights(R):
    w = get_FMT_weights(R)
    assert len(w) == 6
    assert all(len(wi) == len(R) for wi in w)
    for i, Ri in enumerate(R):
        assert w[0][i].real_integral() == approx(1.)
        assert w[1][i].real_integral() == approx(Ri)
        assert w[2][i].real_integral() == approx(4 * np.pi * Ri**2)
        assert w[3][i].real_integral() == approx((4 / 3) * np.pi * Ri**3)
        assert w[4][i].is_odd() and w[5][i].is_odd()

    wd = get_FMT_weights(R, as_dict=True)
    assert list(wd.keys()) == ['w0', 'w1', 'w2', 'w3', 'wv1', 'wv2']
