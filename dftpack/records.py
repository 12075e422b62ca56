"""
Parameter records for segment based models. A SegmentRecord holds the PC-SAFT pure fluid parameters of a component
(segment number, segment diameter and dispersion energy), which are used to build the BondGraph (see
BondGraph.from_records) and the reduced temperature.

The records can be read from thermopack, which is only imported when needed.
"""
import warnings
import numpy as np


class SegmentRecord:

    def __init__(self, m, sigma, epsilon_k, name=None):
        """
        Args:
            m (float) : Segment number
            sigma (float) : Segment diameter [Å]
            epsilon_k (float) : Dispersion energy divided by Boltzmanns constant [K]
            name (str, optional) : Component identifier
        """
        if m < 1:
            raise ValueError(f'Segment number must be at least 1, got {m}.')
        if sigma <= 0:
            raise ValueError(f'Segment diameter must be positive, got {sigma}.')
        self.m = m
        self.sigma = sigma
        self.epsilon_k = epsilon_k
        self.name = name

    def __repr__(self):
        return f'SegmentRecord({self.name}, m : {self.m}, sigma : {self.sigma} Å, epsilon / k : {self.epsilon_k} K)'

    def segment_count(self):
        """Utility
        The number of (whole) segments used to represent the molecule as a chain.
        """
        count = max(1, int(round(self.m)))
        if abs(count - self.m) > 1e-10:
            warnings.warn(f'Rounding segment number of {self.name} from {self.m} to {count}.', RuntimeWarning,
                          stacklevel=2)
        return count

    def hard_sphere_diameter(self, T):
        """
        Temperature dependent hard sphere diameter of PC-SAFT

        Args:
            T (float) : Temperature [K]

        Returns:
            float : The diameter [Å]
        """
        return self.sigma * (1 - 0.12 * np.exp(- 3 * self.epsilon_k / T))

    def reduce_temperature(self, T):
        """Utility
        T* = k T / epsilon
        """
        return T / self.epsilon_k

    @staticmethod
    def from_thermopack(comps):
        """Construction
        Read PC-SAFT parameters from thermopack.

        Args:
            comps (str) : Comma separated component identifiers, following thermopack convention.

        Returns:
            list[SegmentRecord] : One record per component
        """
        from thermopack.pcsaft import pcsaft
        eos = pcsaft(comps)
        records = []
        for i, name in enumerate(comps.split(',')):
            m, sigma, epsilon_k = eos.get_pure_fluid_param(i + 1)[:3]
            records.append(SegmentRecord(m, sigma * 1e10, epsilon_k, name=name.strip()))
        return records
