import numpy as np
import pytest
from dftpack.topology import Segment, BondGraph
from dftpack.errors import InvalidBond, DisconnectedTopology
from dftpack.WeightFunction import BondShell


def test_segment():
    s = Segment(0, 1.2, name='CH3')
    assert s.diameter == 1.2
    with pytest.raises(ValueError):
        Segment(0, 0.)
    with pytest.raises(ValueError):
        Segment(0, -1.)

@pytest.mark.parametrize('bonds', [[(0, 3)],           # Unknown segment
                                   [(0, -1)],          # Unknown segment
                                   [(0, 1.)],          # Not an index
                                   [(1, 1)],           # Self bond
                                   [(0, 1), (1, 0)],   # Repeated
                                   [(0, 1), (0, 1)],   # Repeated
                                   [(0, 1, 2)],        # Not a pair
                                   [(0, 1), (1, 2), (2, 0)]]) # Ring
def test_invalid_bonds(bonds):
    segments = [Segment(0), Segment(0), Segment(0)]
    with pytest.raises(InvalidBond):
        BondGraph(segments, bonds)

def test_bond_between_components():
    with pytest.raises(InvalidBond):
        BondGraph([Segment(0), Segment(1)], [(0, 1)])

def test_bond_lengths():
    segments = [Segment(0, 1.), Segment(0, 2.)]
    assert BondGraph(segments, [(0, 1)]).bond_lengths == (1.5,)
    assert BondGraph(segments, [(0, 1)], bond_lengths=[1.]).bond_lengths == (1.,)
    with pytest.raises(InvalidBond):
        BondGraph(segments, [(0, 1)], bond_lengths=[0.])
    with pytest.raises(InvalidBond):
        BondGraph(segments, [(0, 1)], bond_lengths=[1., 1.])

def test_disconnected():
    # Three segments, only two bonded
    with pytest.raises(DisconnectedTopology):
        BondGraph([Segment(0), Segment(0), Segment(0)], [(0, 1)])
    # Component 1 declared, but empty
    with pytest.raises(DisconnectedTopology):
        BondGraph([Segment(0)], ncomps=2)
    with pytest.raises(ValueError):
        BondGraph([Segment(0), Segment(2)], ncomps=2)

def test_disconnected_is_value_error():
    with pytest.raises(ValueError):
        BondGraph([Segment(0), Segment(0)])

def test_monomers():
    graph = BondGraph.monomers([1., 0.5])
    assert graph.ncomps == 2
    assert graph.n_segments == 2
    assert not graph.has_bonds()
    assert np.all(graph.segment_counts == [1, 1])
    assert np.allclose(graph.diameters, [1., 0.5])

def test_linear_chains():
    graph = BondGraph.linear_chains([3, 1, 2], [1., 0.8, 1.2])
    assert graph.ncomps == 3
    assert graph.n_segments == 6
    assert graph.bonds == ((0, 1), (1, 2), (4, 5))
    assert np.all(graph.component_index == [0, 0, 0, 1, 2, 2])
    assert np.all(graph.segment_counts == [3, 1, 2])
    assert graph.component_segments(2) == [4, 5]
    assert list(graph.components()) == [(0, [0, 1, 2]), (1, [3]), (2, [4, 5])]
    assert sorted(graph.neighbours(1)) == [0, 2]
    assert graph.bond_lengths == (1., 1., 1.2)
    assert all(isinstance(w, BondShell) for w in graph.bond_weights())

    with pytest.raises(ValueError):
        BondGraph.linear_chains([1.5], [1.])
    with pytest.raises(ValueError):
        BondGraph.linear_chains([0], [1.])

def star(n_arms):
    segments = [Segment(0) for _ in range(n_arms + 1)]
    bonds = [(0, i) for i in range(1, n_arms + 1)]
    return BondGraph(segments, bonds)

@pytest.mark.parametrize('graph', [BondGraph.linear_chains([5], [1.]), star(4), BondGraph.linear_chains([3, 2], [1., 1.])],
                         ids=['chain', 'star', 'mixture'])
def test_bond_integrals_of_constant_kernel(graph):
    """With e = 1 and a convolution that multiplies by c, every segment sees c^(m - 1), with m the number of
    segments in its molecule"""
    c = 0.9
    e = np.ones((graph.n_segments, 10))
    calls = []
    def convolve(bi, field):
        calls.append(bi)
        return c * field

    I = graph.bond_integrals(e, convolve)
    m = graph.segment_counts[graph.component_index]
    assert np.allclose(I, (c ** (m - 1))[:, None])
    assert len(calls) == 2 * len(graph.bonds) # One message per directed bond

def test_bond_integrals_dimer():
    graph = BondGraph.linear_chains([2], [1.])
    e = np.array([np.linspace(1, 2, 5), np.linspace(3, 4, 5)])
    I = graph.bond_integrals(e, lambda bi, field: 2 * field)
    assert np.allclose(I[0], 2 * e[1])
    assert np.allclose(I[1], 2 * e[0])

def test_bond_integrals_trimer():
    graph = BondGraph.linear_chains([3], [1.])
    e = np.array([[1.], [2.], [3.]])
    I = graph.bond_integrals(e, lambda bi, field: field)
    assert np.allclose(I[:, 0], [2 * 3, 1 * 3, 1 * 2])
