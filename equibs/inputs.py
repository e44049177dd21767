"""
.. _equibs-inputs:

Input Data Structures
---------------------

Module with container dataclasses to encompass expected necessary inputs.
Various parts of ``equibs`` perform calculations based on ring and optics parameters.

The former is encompassed in a `RingParameters` dataclass which is initiated from the summary header of a
``TWISS`` (the ``MAD-X`` summary keys) and the configuration of the RF systems. The latter is encompassed in
an `OpticsParameters` dataclass which is initiated from the per-element columns of a ``TWISS`` table.
"""
from __future__ import annotations  # important for sphinx to alias ArrayLike

from dataclasses import InitVar, dataclass, field
from logging import getLogger
from typing import Mapping, Sequence

import numpy as np

from numpy.typing import ArrayLike
from scipy.constants import c

from equibs.formulary import beta_from_gamma, classical_radius, slip_factor

LOGGER = getLogger(__name__)

# Per-element columns needed from a TWISS table
OPTICS_COLUMNS = ("s", "l", "angle", "k1l", "betx", "bety", "alfx", "alfy", "dx", "dy", "dpx", "dpy")

# ----- Dataclasses for ring and optics inputs ----- #


@dataclass
class RingParameters:
    r"""
    .. versionadded:: 0.1.0

    Container dataclass for the necessary ring parameters: the reference particle, the machine's global
    parameters and the RF systems. It is initiated from the summary header of a ``TWISS`` (as given by
    ``MAD-X``, keys are looked up case-insensitively) and the arrays of RF harmonics and voltages.

    Args:
        header (Mapping[str, float]): the scalar ring parameters. Expected keys are ``GAMMA``,
            ``PC`` (in [GeV]), ``GAMMATR``, ``MASS`` (in [GeV]), ``CHARGE``, ``LENGTH`` (in [m])
            and ``Q1``. If ``Q2`` is given it is used as vertical tune, otherwise ``Q1`` is used
            for both planes. This is an init-only parameter used for instanciation and it will not
            be kept in the instance's attributes.
        harmonics (ArrayLike): harmonic number of each RF system.
        voltages (ArrayLike): voltage of each RF system, in [V].

    Attributes:
        gamma_rel (float): relativistic gamma of the reference particle.
        beta_rel (float): relativistic beta of the reference particle.
        momentum_eV (float): momentum of the reference particle, as pc in [eV].
        total_energy_eV (float): total energy of the reference particle in [eV].
        gamma_transition (float): transition gamma of the machine.
        particle_mass_eV (float): particle rest mass in [eV].
        particle_charge (float): particle charge, in # of elementary charges.
        particle_classical_radius_m (float): the particles' classical radius in [m].
        circumference (float): machine circumference in [m].
        tune_x (float): horizontal betatron tune.
        tune_y (float): vertical betatron tune.
    """

    # ----- To be provided at initialization ----- #
    header: InitVar[Mapping[str, float]]
    harmonics: ArrayLike
    voltages: ArrayLike
    # ----- Below are attributes derived from the header ----- #
    gamma_rel: float = field(init=False)
    beta_rel: float = field(init=False)
    momentum_eV: float = field(init=False)
    total_energy_eV: float = field(init=False)
    gamma_transition: float = field(init=False)
    particle_mass_eV: float = field(init=False)
    particle_charge: float = field(init=False)
    particle_classical_radius_m: float = field(init=False)
    circumference: float = field(init=False)
    tune_x: float = field(init=False)
    tune_y: float = field(init=False)

    def __post_init__(self, header: Mapping[str, float]):
        LOGGER.debug("Initializing RingParameters from header")
        lowercase_header = {str(key).lower(): value for key, value in header.items()}
        expected_keys = ("gamma", "pc", "gammatr", "mass", "charge", "length", "q1")
        missing = [key.upper() for key in expected_keys if key not in lowercase_header]
        if missing:
            LOGGER.error("Missing expected ring parameters, see raised error message.")
            raise KeyError(
                f"Missing keys in the ring header: {missing}. "
                f"Expected: {[key.upper() for key in expected_keys]}"
            )

        self.gamma_rel = float(lowercase_header["gamma"])
        self.momentum_eV = float(lowercase_header["pc"]) * 1e9  # in [GeV] in MAD-X but we want [eV]
        self.gamma_transition = float(lowercase_header["gammatr"])
        self.particle_mass_eV = float(lowercase_header["mass"]) * 1e9  # in [GeV] in MAD-X but we want [eV]
        self.particle_charge = float(lowercase_header["charge"])
        self.circumference = float(lowercase_header["length"])
        self.tune_x = float(lowercase_header["q1"])
        self.tune_y = float(lowercase_header.get("q2", self.tune_x))
        self.harmonics = np.atleast_1d(np.asarray(self.harmonics, dtype=float))
        self.voltages = np.atleast_1d(np.asarray(self.voltages, dtype=float))
        self._check_validity()

        self.beta_rel = beta_from_gamma(self.gamma_rel)
        self.total_energy_eV = self.gamma_rel * self.particle_mass_eV
        self.particle_classical_radius_m = classical_radius(self.particle_charge, self.particle_mass_eV)

    @property
    def slip_factor(self) -> float:
        """Slip factor of the machine (xsuite convention, positive above transition)."""
        return slip_factor(self.gamma_rel, self.gamma_transition)

    @property
    def revolution_frequency(self) -> float:
        """Revolution frequency of the reference particle, in [Hz]."""
        return self.beta_rel * c / self.circumference

    @property
    def omega0(self) -> float:
        """Angular revolution frequency of the reference particle, in [rad/s]."""
        return 2 * np.pi * self.revolution_frequency

    def _check_validity(self) -> None:
        """Checks the invariants of the ring configuration, raises if any is violated."""
        if self.harmonics.size == 0 or self.harmonics.shape != self.voltages.shape:
            LOGGER.error("Invalid RF configuration, see raised error message.")
            raise ValueError(
                "The RF harmonics and voltages must be non-empty arrays of equal length, one value per RF "
                f"system. Got {self.harmonics.size} harmonics and {self.voltages.size} voltages."
            )
        if self.circumference <= 0:
            LOGGER.error(f"Invalid ring circumference '{self.circumference}'.")
            raise ValueError(f"The ring circumference must be strictly positive, got {self.circumference}.")
        if self.gamma_rel <= 1:
            LOGGER.error(f"Invalid relativistic gamma '{self.gamma_rel}'.")
            raise ValueError(f"The relativistic gamma must be greater than 1, got {self.gamma_rel}.")

    @classmethod
    def from_madx(
        cls, madx: "cpymad.madx.Madx", harmonics: ArrayLike, voltages: ArrayLike  # noqa: F821
    ) -> RingParameters:
        r"""
        .. versionadded:: 0.1.0

        Constructor to return a `RingParameters` object from a `~cpymad.madx.Madx` object.
        This is a convenience method for the user, which essentially queries the relevant
        information from the current sequence's beam and the ``SUMM`` table.

        .. warning::
            This method will make a ``TWISS`` call for the current active sequence, in order to
            determine it and to get the summary table.

        Args:
            madx (cpymad.madx.Madx): a `~cpymad.madx.Madx` instance to create a `RingParameters`
                object from.
            harmonics (ArrayLike): harmonic number of each RF system.
            voltages (ArrayLike): voltage of each RF system, in [V].

        Returns:
            A `RingParameters` object.
        """
        LOGGER.debug("Running TWISS for active sequence")
        madx.command.twiss()  # want the table to determine the sequence name and access its beam
        seq_name = madx.table.twiss.summary.sequence  # will give us the active sequence
        beam = madx.sequence[seq_name].beam

        LOGGER.debug("Getting relevant information from current sequence's beam and summary table")
        header = {
            "GAMMA": beam.gamma,
            "PC": beam.pc,
            "GAMMATR": madx.table.summ.gammatr[0],
            "MASS": beam.mass,
            "CHARGE": beam.charge,
            "LENGTH": madx.table.summ.length[0],
            "Q1": madx.table.summ.q1[0],
            "Q2": madx.table.summ.q2[0],
        }
        return cls(header, harmonics, voltages)


@dataclass
class OpticsParameters:
    r"""
    .. versionadded:: 0.1.0

    Container dataclass for necessary optics parameters. It is initiated from the per-element
    columns of a ``TWISS`` table, for instance the result of a ``TWISS`` call in ``MAD-X`` as a
    dataframe (as given by ``cpymad`` by default), or a simple dictionary of arrays.

    Args:
        twiss (Mapping[str, Sequence[float]]): the ``TWISS`` table, as any mapping or dataframe with
            lowercase keys. The expected columns are ``s, l, angle, k1l, betx, bety, alfx, alfy, dx,
            dy, dpx`` and ``dpy``, all of equal length (one value per element). This is an init-only
            parameter used for instanciation and it will not be kept in the instance's attributes.

    Attributes:
        s (ArrayLike): longitudinal positions of the machine elements in [m].
        circumference (float): machine circumference in [m].
        l (ArrayLike): lengths of the machine elements in [m].
        angle (ArrayLike): bending angles of the machine elements in [rad].
        k1l (ArrayLike): integrated quadrupolar strengths of the machine elements in [m^-1].
        betx (ArrayLike): horizontal beta functions in [m].
        bety (ArrayLike): vertical beta functions in [m].
        alfx (ArrayLike): horizontal alpha functions.
        alfy (ArrayLike): vertical alpha functions.
        dx (ArrayLike): horizontal dispersion functions in [m].
        dy (ArrayLike): vertical dispersion functions in [m].
        dpx (ArrayLike): horizontal dispersion of px (d px / d delta).
        dpy (ArrayLike): vertical dispersion of py (d py / d delta).
    """

    # ----- To be provided at initialization ----- #
    twiss: InitVar[Mapping[str, Sequence[float]]]  # Almost all is derived from there, this is not kept!
    # ----- Below are attributes derived from the twiss table ----- #
    s: ArrayLike = field(init=False)
    circumference: float = field(init=False)
    l: ArrayLike = field(init=False)  # noqa: E741
    angle: ArrayLike = field(init=False)
    k1l: ArrayLike = field(init=False)
    betx: ArrayLike = field(init=False)
    bety: ArrayLike = field(init=False)
    alfx: ArrayLike = field(init=False)
    alfy: ArrayLike = field(init=False)
    dx: ArrayLike = field(init=False)
    dy: ArrayLike = field(init=False)
    dpx: ArrayLike = field(init=False)
    dpy: ArrayLike = field(init=False)
    # The following is private and just for us, information necessary in the MAD-X formalism
    _is_centered: bool = field(init=False)

    def __post_init__(self, twiss: Mapping[str, Sequence[float]]):
        missing = [column for column in OPTICS_COLUMNS if column not in twiss]
        if missing:
            LOGGER.error("Missing expected optics columns, see raised error message.")
            raise KeyError(f"Missing columns in the provided twiss: {missing}.")

        for column in OPTICS_COLUMNS:
            setattr(self, column, np.asarray(twiss[column], dtype=float))
        if len({getattr(self, column).shape for column in OPTICS_COLUMNS}) != 1 or self.s.ndim != 1:
            LOGGER.error("Optics columns have inconsistent lengths.")
            raise ValueError("All optics columns must be one-dimensional and hold one value per element.")

        self.circumference = float(self.s[-1])
        self._is_centered = _is_twiss_centered(self.s, self.l)
        LOGGER.debug(f"Initialized OpticsParameters for {self.s.size} elements")

    @classmethod
    def from_madx(cls, madx: "cpymad.madx.Madx", **kwargs) -> OpticsParameters:  # noqa: F821
        r"""
        .. versionadded:: 0.1.0

        Constructor to return an `OpticsParameters` object from a `~cpymad.madx.Madx` object.
        This is a convenience method for the user, which makes a ``TWISS`` call for the active
        sequence and extracts the relevant columns.

        Args:
            madx (cpymad.madx.Madx): a `~cpymad.madx.Madx` instance to create an `OpticsParameters`
                object from.
            **kwargs: any keyword argument will be transmitted to the `madx.twiss` call.
                The default `centre` argument is ``true`` (recommended) but it can be overriden.

        Returns:
            An `OpticsParameters` object.
        """
        centre = kwargs.pop("centre", True)  # by default centered, can be overriden
        LOGGER.debug("Running TWISS for active sequence")
        twiss = madx.twiss(centre=centre, **kwargs).dframe()

        cminus = madx.table.summ.dqmin[0]  # just to check coupling
        if not np.isclose(cminus, 0, atol=0, rtol=1e-4):  # there is some betatron coupling
            LOGGER.warning(
                f"There is betatron coupling in the machine (|Cminus| = {cminus:.3f}), "
                "which is not taken into account in analytical calculations."
            )

        LOGGER.debug("Initializing OpticsParameters from TWISS dataframe")
        return cls(twiss)


# ----- Helper functions ----- #


def _is_twiss_centered(s: ArrayLike, lengths: ArrayLike) -> bool:
    r"""
    .. versionadded:: 0.1.0

    Determines if the ``TWISS`` was performed at the center of elements, as done in ``MAD-X``.

    .. tip::
        The check is performed as in the Fortran code of the ``IBS`` module in ``MAD-X``.
        We skip all elements until we get to the first one with non-zero length, note its
        `s` position, then the `s` and `l` of the next element with non-zero length. If the
        :math:`\Delta s` matches the length of the second element, the `s` values are given at
        the end of elements, and therefore we are not centered. Otherwise, we are.

    Args:
        s (ArrayLike): longitudinal positions of the elements in [m].
        lengths (ArrayLike): lengths of the elements in [m].

    Returns:
        `True` if the TWISS was centered, `False` otherwise. A table with fewer than two
        elements of non-zero length is considered not centered.
    """
    thick = np.flatnonzero(lengths != 0)
    if thick.size < 2:
        return False
    s0, s1 = s[thick[0]], s[thick[1]]
    return not np.isclose(s1 - s0, lengths[thick[1]])
