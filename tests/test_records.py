import numpy as np
import pytest
from pytest import approx
from dftpack.records import SegmentRecord
from dftpack.topology import BondGraph


def test_record_validation():
    with pytest.raises(ValueError):
        SegmentRecord(0.5, 3., 100.)
    with pytest.raises(ValueError):
        SegmentRecord(1., 0., 100.)

def test_hard_sphere_diameter():
    rec = SegmentRecord(1., 3.7039, 150.03, name='C1')
    T = 150.03
    assert rec.hard_sphere_diameter(T) == approx(3.7039 * (1 - 0.12 * np.exp(- 3)))
    # The diameter approaches sigma at high temperature
    assert rec.hard_sphere_diameter(1e8) == approx(3.7039, rel=1e-6)
    assert rec.reduce_temperature(300.) == approx(300. / 150.03)

def test_segment_count():
    assert SegmentRecord(3., 3., 100.).segment_count() == 3
    with pytest.warns(RuntimeWarning):
        assert SegmentRecord(1.6069, 3.5206, 191.42, name='C3').segment_count() == 2
    with pytest.warns(RuntimeWarning):
        assert SegmentRecord(1.2, 3., 100.).segment_count() == 1

def test_graph_from_records():
    records = [SegmentRecord(3., 3., 100.), SegmentRecord(1., 2.4, 80.)]
    graph = BondGraph.from_records(records, 100.)
    assert graph.ncomps == 2
    assert np.all(graph.segment_counts == [3, 1])
    assert graph.bonds == ((0, 1), (1, 2))
    d0 = records[0].hard_sphere_diameter(100.) / 3.
    d1 = records[1].hard_sphere_diameter(100.) / 3.
    assert np.allclose(graph.diameters, [d0, d0, d0, d1])

    graph = BondGraph.from_records(records, 100., sigma_ref=2.4)
    assert graph.diameters[-1] == approx(records[1].hard_sphere_diameter(100.) / 2.4)

def test_from_thermopack():
    pytest.importorskip('thermopack')
    records = SegmentRecord.from_thermopack('C1,NC6')
    assert [rec.name for rec in records] == ['C1', 'NC6']
    assert records[0].segment_count() == 1
    assert 2.5 < records[0].sigma < 5. # Å
    assert records[1].m > records[0].m
