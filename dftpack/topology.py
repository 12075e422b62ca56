"""
Molecule topology for segment based (chain) models.

A BondGraph is an arena of Segment nodes (indexed by their position in the segment list) and an edge list of index
pairs (the bonds). Every segment belongs to a component, and the segments of a component must form a tree (a
connected graph without rings), such that the bond integrals of the ideal chain can be computed by passing one
message along every directed bond, see BondGraph.bond_integrals.

The graph is validated on construction, and is immutable afterwards.
"""
from collections import deque
import numpy as np
from dftpack.errors import DisconnectedTopology, InvalidBond
from dftpack.WeightFunction import BondShell


class Segment:
    """
    A (spherical) segment of a molecule.

    Args:
        component (int) : Index of the component the segment belongs to
        diameter (float) : Hard sphere diameter (reduced)
        name (str, optional) : Label, for printing
    """
    def __init__(self, component, diameter=1., name=None):
        if diameter <= 0:
            raise ValueError(f'Segment diameter must be positive, got {diameter}.')
        self.component = int(component)
        self.diameter = float(diameter)
        self.name = name

    def __repr__(self):
        label = '' if self.name is None else f'{self.name}, '
        return f'Segment({label}component={self.component}, diameter={self.diameter})'


class BondGraph:

    def __init__(self, segments, bonds=(), ncomps=None, bond_lengths=None):
        """
        Args:
            segments (list[Segment]) : The segments, a segment is referred to by its index in this list
            bonds (list[tuple[int, int]]) : Pairs of bonded segment indices
            ncomps (int, optional) : Number of declared components, defaults to the highest component index + 1
            bond_lengths (list[float], optional) : Length of each bond, defaults to the mean of the two diameters

        Raises:
            InvalidBond : If a bond refers to an unknown segment, bonds a segment to itself, is repeated, connects two
                          components, closes a ring, or has a non-positive length
            DisconnectedTopology : If a declared component has no segments, or its segments are not all connected
        """
        self.segments = tuple(segments)
        self.n_segments = len(self.segments)
        if ncomps is None:
            ncomps = max((s.component for s in self.segments), default=-1) + 1
        self.ncomps = ncomps

        for i, seg in enumerate(self.segments):
            if not 0 <= seg.component < ncomps:
                raise ValueError(f'Segment {i} belongs to component {seg.component}, but only {ncomps} components are declared.')

        self._component_segments = [[] for _ in range(ncomps)]
        for i, seg in enumerate(self.segments):
            self._component_segments[seg.component].append(i)
        for ci, seg_idx in enumerate(self._component_segments):
            if len(seg_idx) == 0:
                raise DisconnectedTopology(f'Component {ci} is declared, but has no segments.')

        self.bonds = []
        self._neighbours = [[] for _ in range(self.n_segments)]
        self._bond_index = {}
        for bi, bond in enumerate(bonds):
            a, b = self._check_bond(bond)
            self._bond_index[(a, b)] = bi
            self._bond_index[(b, a)] = bi
            self._neighbours[a].append(b)
            self._neighbours[b].append(a)
            self.bonds.append((min(a, b), max(a, b)))
        self.bonds = tuple(self.bonds)

        if bond_lengths is None:
            bond_lengths = [0.5 * (self.segments[a].diameter + self.segments[b].diameter) for a, b in self.bonds]
        elif len(bond_lengths) != len(self.bonds):
            raise InvalidBond(f'Got {len(bond_lengths)} bond lengths for {len(self.bonds)} bonds.')
        for (a, b), l in zip(self.bonds, bond_lengths):
            if not l > 0:
                raise InvalidBond(f'Bond ({a}, {b}) has non-positive length {l}.')
        self.bond_lengths = tuple(float(l) for l in bond_lengths)

        self._order, self._parent = self._traverse()

    def _check_bond(self, bond):
        try:
            a, b = bond
        except (TypeError, ValueError):
            raise InvalidBond(f'A bond must be a pair of segment indices, got {bond}.')
        for idx in (a, b):
            if not (isinstance(idx, (int, np.integer)) and 0 <= idx < self.n_segments):
                raise InvalidBond(f'Bond ({a}, {b}) refers to segment {idx}, but there are {self.n_segments} segments.')
        if a == b:
            raise InvalidBond(f'Segment {a} can not be bonded to itself.')
        if (a, b) in self._bond_index:
            raise InvalidBond(f'Bond ({a}, {b}) is given more than once.')
        if self.segments[a].component != self.segments[b].component:
            raise InvalidBond(f'Bond ({a}, {b}) connects components {self.segments[a].component} '
                              f'and {self.segments[b].component}.')
        return int(a), int(b)

    def _traverse(self):
        """Internal
        Breadth first traversal of every component, starting at its first segment. Also verifies that every
        component is a tree.

        Returns:
            list[int] : Segment indices in traversal order
            list[int] : Parent of each segment in the traversal (-1 for the root of each component)
        """
        order, parent = [], [-1 for _ in range(self.n_segments)]
        for ci, seg_idx in enumerate(self._component_segments):
            n_bonds = sum(1 for a, _ in self.bonds if self.segments[a].component == ci)
            if n_bonds >= len(seg_idx):
                raise InvalidBond(f'The bonds of component {ci} form a ring, which is not supported.')

            root = seg_idx[0]
            visited = {root}
            queue = deque([root])
            while queue:
                node = queue.popleft()
                order.append(node)
                for nb in self._neighbours[node]:
                    if nb not in visited:
                        visited.add(nb)
                        parent[nb] = node
                        queue.append(nb)

            if len(visited) != len(seg_idx):
                missing = sorted(set(seg_idx) - visited)
                raise DisconnectedTopology(f'Segments {missing} of component {ci} are not bonded to segment {root}.')
        return order, parent

    @staticmethod
    def monomers(diameters):
        """Construction
        One spherical segment per component.
        """
        return BondGraph([Segment(ci, d) for ci, d in enumerate(diameters)])

    @staticmethod
    def linear_chains(segment_counts, diameters):
        """Construction
        One linear chain of tangent, identical segments per component.

        Args:
            segment_counts (list[int]) : Number of segments in each chain
            diameters (list[float]) : Segment diameter of each component
        """
        segments, bonds = [], []
        for ci, (m, d) in enumerate(zip(segment_counts, diameters)):
            if int(m) != m or m < 1:
                raise ValueError(f'Segment count must be a positive integer, got {m} for component {ci}.')
            start = len(segments)
            segments.extend(Segment(ci, d) for _ in range(int(m)))
            bonds.extend((start + i, start + i + 1) for i in range(int(m) - 1))
        return BondGraph(segments, bonds, ncomps=len(segment_counts))

    @staticmethod
    def from_records(records, T, sigma_ref=None):
        """Construction
        Linear tangent chains from parameter records (see records.py), with round(m) segments per component, and
        diameters given by the temperature dependent hard sphere diameter of each record.

        Args:
            records (list[SegmentRecord]) : One record per component
            T (float) : Temperature [K]
            sigma_ref (float, optional) : Length unit, defaults to the sigma of the first record

        Returns:
            BondGraph : The chains, with diameters in units of sigma_ref
        """
        if sigma_ref is None:
            sigma_ref = records[0].sigma
        counts = [rec.segment_count() for rec in records]
        diameters = [rec.hard_sphere_diameter(T) / sigma_ref for rec in records]
        return BondGraph.linear_chains(counts, diameters)

    @property
    def diameters(self):
        return np.array([s.diameter for s in self.segments])

    @property
    def component_index(self):
        """Index of the component of each segment"""
        return np.array([s.component for s in self.segments], dtype=int)

    @property
    def segment_counts(self):
        """Number of segments in each component"""
        return np.array([len(s) for s in self._component_segments])

    def component_segments(self, ci):
        return list(self._component_segments[ci])

    def components(self):
        """Utility
        Iterate over (component index, segment indices) pairs.
        """
        for ci, seg_idx in enumerate(self._component_segments):
            yield ci, list(seg_idx)

    def neighbours(self, a):
        return list(self._neighbours[a])

    def has_bonds(self):
        return len(self.bonds) > 0

    def bond_weights(self):
        """
        The normalised bond shell kernel of each bond, in the same order as self.bonds.
        """
        return [BondShell(l) for l in self.bond_lengths]

    def bond_integrals(self, e, convolve):
        r"""
        Compute the product of all bond integrals entering each segment,
            $\prod_{\gamma \in nbr(\alpha)} I_{\gamma \to \alpha}$, where
            $I_{\gamma \to \alpha} = \omega_{\gamma\alpha} * [e_\gamma \prod_{\delta \in nbr(\gamma) \setminus \alpha} I_{\delta \to \gamma}]$

        The messages are computed once for every directed bond, first from the leaves towards the root of every
        component, then back out again.

        Args:
            e (ndarray) : The Boltzmann factor of every segment, shape (n_segments, *grid.shape)
            convolve (callable) : convolve(bond_idx, field), convolution with the bond kernel of bond bond_idx

        Returns:
            ndarray : The product of incoming bond integrals for each segment, same shape as e
        """
        messages = {}

        def outgoing(src, dst):
            field = e[src]
            for nb in self._neighbours[src]:
                if nb != dst:
                    field = field * messages[(nb, src)]
            return convolve(self._bond_index[(src, dst)], field)

        for node in reversed(self._order):
            if self._parent[node] >= 0:
                messages[(node, self._parent[node])] = outgoing(node, self._parent[node])
        for node in self._order:
            for nb in self._neighbours[node]:
                if nb != self._parent[node]:
                    messages[(node, nb)] = outgoing(node, nb)

        I = np.ones_like(e)
        for a in range(self.n_segments):
            for nb in self._neighbours[a]:
                I[a] = I[a] * messages[(nb, a)]
        return I

    def __repr__(self):
        return f'BondGraph with {self.n_segments} segments in {self.ncomps} components, bonds : {list(self.bonds)}'
