""" Kinematics and the containers that hold event data """
import collections
import awkward as ak
import numpy as np
from . import Constants, PDGNames


def confine_angle(angle):
    """
    Confine angle x, s.t. -pi <= x < pi

    Parameters
    ----------
    angle : float or arraylike of floats
        angle to be confined

    Returns
    -------
    angle : float or arraylike of floats
        confined angle

    """
    return ((angle + np.pi)%(2*np.pi)) - np.pi


def angular_distance(a, b):
    """
    Get the shortest distance between a and b

    Parameters
    ----------
    a : float or arraylike of floats
        angle

    b : float or arraylike of floats
        angle


    Returns
    -------
    : float or arraylike of floats
        absolute distance between angles

    """
    raw = a - b
    return np.min((raw%(2*np.pi), np.abs(-raw%(2*np.pi))), axis=0)


def ptpz_to_theta(pt_list, pz_list):
    """
    Given pt (transverse momentum) and pz (momentum in the z direction)
    calculate theta.

    Parameters
    ----------
    pt_list : float or array like
        pt inputs
    pz_list : float or array like
        pz inputs

    Returns
    -------
    theta : float or array like
        theta as a float or a numpy array, depending on the input

    """
    return np.arctan2(pt_list, pz_list)


def pxpy_to_phipt(px_list, py_list):
    """
    Given px and py (momentum in the x and y directions) calculate
    phi angle and pt (transverse momentum)

    Parameters
    ----------
    px_list : float or array like
        px inputs
    py_list : float or array like
        py inputs

    Returns
    -------
    phi : float or array like
        phi as a float or a numpy array, depending on the input
    pt : float or array like
        pt as a float or a numpy array, depending on the input
    """
    px_list = np.asarray(px_list, dtype=float)
    py_list = np.asarray(py_list, dtype=float)
    phi, pt = np.arctan2(py_list, px_list), np.sqrt(px_list**2 + py_list**2)
    if phi.ndim == 0:
        return float(phi), float(pt)
    return phi, pt


def theta_to_pseudorapidity(theta_list):
    """
    Given the angle theta calculate pseudorapidity.

    Parameters
    ----------
    theta_list : float or array like
        theta inputs

    Returns
    -------
    pseudorapidity : float or array like
        pseudorapidity as a float or a numpy array, depending on the input

    """
    return_float = not hasattr(theta_list, '__iter__')
    theta_list = np.atleast_1d(np.array(theta_list, dtype=float))
    with np.errstate(invalid='ignore'):
        infinite = np.logical_or(theta_list == 0, theta_list == np.pi)
        restricted_theta = confine_angle(theta_list)
        restricted_theta = np.minimum(restricted_theta, np.pi - restricted_theta)
    tan_restricted = np.tan(np.abs(restricted_theta)/2)
    pseudorapidity = np.full_like(theta_list, np.inf)
    pseudorapidity[~infinite] = -np.log(tan_restricted[~infinite])
    pseudorapidity[theta_list > np.pi/2] *= -1.
    if return_float:
        pseudorapidity = float(pseudorapidity[0])
    return pseudorapidity


def ptpze_to_rapidity(pt_list, pz_list, e_list):
    """
    Given pt and pz (momentum in the transverse and z directions) and energy
    calculate the rapidity.

    Parameters
    ----------
    pt_list : float or array like
        pt inputs
    pz_list : float or array like
        pz inputs
    e_list : float or array like
        energy inputs

    Returns
    -------
    rapidity : float or array like
        rapidity as a float or a numpy array, depending on the input

    """
    return_float = not hasattr(pt_list, '__iter__')
    pt_list = np.atleast_1d(np.array(pt_list, dtype=float))
    pz_list = np.atleast_1d(np.array(pz_list, dtype=float))
    e_list = np.atleast_1d(np.array(e_list, dtype=float))
    rapidity = np.zeros_like(e_list)
    # particles travelling down the beam have infinite rapidity
    inf_mask = np.logical_and(pt_list == 0, e_list == np.abs(pz_list))
    rapidity[inf_mask] = np.inf
    # don't caculate rapidity that should be exactly 0 either
    to_calculate = np.logical_and(~inf_mask, pz_list != 0)
    e_use = e_list[to_calculate]
    pz_use = pz_list[to_calculate]
    pt2_use = pt_list[to_calculate]**2
    m2 = np.clip(e_use**2 - pz_use**2 - pt2_use, 0, None)
    with np.errstate(divide='ignore'):
        mag_rapidity = 0.5*np.log((pt2_use + m2)/((e_use - np.abs(pz_use))**2))
    rapidity[to_calculate] = mag_rapidity
    with np.errstate(invalid='ignore'):
        rapidity = rapidity * np.sign(pz_list)
    if return_float:
        rapidity = float(rapidity[0])
    return rapidity


def pxpypze_to_mass(px_list, py_list, pz_list, e_list):
    """
    Invariant mass of four-momenta, spacelike vectors are given 0 mass.

    Parameters
    ----------
    px_list : float or array like
        px inputs
    py_list : float or array like
        py inputs
    pz_list : float or array like
        pz inputs
    e_list : float or array like
        energy inputs

    Returns
    -------
    mass : float or array like
        mass as a float or a numpy array, depending on the input
    """
    m2 = (np.asarray(e_list, dtype=float)**2 - np.asarray(px_list, dtype=float)**2
          - np.asarray(py_list, dtype=float)**2 - np.asarray(pz_list, dtype=float)**2)
    mass = np.sqrt(np.clip(m2, 0, None))
    if mass.ndim == 0:
        return float(mass)
    return mass


class Particle(collections.namedtuple("Particle",
                                      ["pid", "energy", "px", "py", "pz", "status"],
                                      defaults=[Constants.final_state_status])):
    """ A particle read from an event record.
    Kinematic properties are derived from the four-momentum on request. """
    __slots__ = ()

    @property
    def four_momentum(self):
        return np.array([self.energy, self.px, self.py, self.pz])

    @property
    def pt(self):
        return pxpy_to_phipt(self.px, self.py)[1]

    @property
    def phi(self):
        return pxpy_to_phipt(self.px, self.py)[0]

    @property
    def rapidity(self):
        return ptpze_to_rapidity(self.pt, self.pz, self.energy)

    @property
    def pseudorapidity(self):
        return theta_to_pseudorapidity(ptpz_to_theta(self.pt, self.pz))

    @property
    def mass(self):
        return pxpypze_to_mass(self.px, self.py, self.pz, self.energy)

    @property
    def name(self):
        return PDGNames.particle_name(self.pid)

    @property
    def is_final_state(self):
        return self.status == Constants.final_state_status

    @property
    def is_parton(self):
        return PDGNames.is_parton(self.pid)

    @property
    def is_hadron(self):
        return PDGNames.is_hadron(self.pid)


class EventWise:
    """ Column oriented store of many events.
    Each column holds one awkward array entry per event.
    When selected_event is set, columns are read for that event only. """
    particle_columns = ["MCPID", "Status", "Energy", "Px", "Py", "Pz"]
    derived_columns = ["PT", "Phi", "Rapidity", "Pseudorapidity"]

    def __init__(self, contents=None):
        """
        Class constructor

        Parameters
        ----------
        contents : dict of arraylike (optional)
            initial columns, every column must have one entry per event
        """
        self.selected_event = None
        self.columns = []
        self._column_contents = {}
        if contents:
            self.append(**contents)

    @classmethod
    def from_particles(cls, events):
        """Alternative constructor, takes lists of particles.

        Parameters
        ----------
        events : iterable of iterable of Particle
            the particles of each event

        Returns
        -------
        eventWise : EventWise
            the events in columns
        """
        contents = {name: [] for name in cls.particle_columns}
        for particles in events:
            particles = list(particles)
            contents["MCPID"].append([int(p.pid) for p in particles])
            contents["Status"].append([int(p.status) for p in particles])
            contents["Energy"].append([float(p.energy) for p in particles])
            contents["Px"].append([float(p.px) for p in particles])
            contents["Py"].append([float(p.py) for p in particles])
            contents["Pz"].append([float(p.pz) for p in particles])
        return cls(contents)

    def __len__(self):
        if not self.columns:
            return 0
        return len(self._column_contents[self.columns[0]])

    def __dir__(self):
        new_attrs = set(super().__dir__())
        new_attrs.update(self.columns)
        if set(self.particle_columns).issubset(self.columns):
            new_attrs.update(self.derived_columns)
        return sorted(new_attrs)

    def append(self, **new_content):
        """
        Add or replace columns.

        Parameters
        ----------
        new_content : dict of arraylike
            column name and the values for every event
        """
        for name, values in new_content.items():
            if not isinstance(values, ak.Array):
                values = ak.from_iter(values)
            n_events = len(self)
            if self.columns and name not in self.columns \
                    and len(values) != n_events:
                raise ValueError(f"Column {name} has {len(values)} entries,"
                                 f" but there are {n_events} events")
            if name not in self.columns:
                self.columns.append(name)
            self._column_contents[name] = values

    def __getattr__(self, attr_name):
        """
        Columns appear as attributes, those that can be derived
        from the four-momenta are calculated when asked for.
        """
        if attr_name.startswith('_'):
            raise AttributeError(attr_name)
        if attr_name in self._column_contents:
            values = self._column_contents[attr_name]
            if self.selected_event is not None:
                return values[self.selected_event]
            return values
        if attr_name in self.derived_columns:
            return self._derive(attr_name)
        raise AttributeError(
                f"{self.__class__.__name__} does not have {attr_name}")

    def _derive(self, attr_name):
        """ Calculate a kinematic column from the four-momenta """
        px, py, pz, energy = self.Px, self.Py, self.Pz, self.Energy
        if self.selected_event is None:
            counts = ak.num(energy)
            flat = [ak.to_numpy(ak.flatten(values)).astype(float)
                    for values in (px, py, pz, energy)]
        else:
            counts = None
            flat = [ak.to_numpy(values).astype(float)
                    for values in (px, py, pz, energy)]
        px, py, pz, energy = flat
        phi, pt = pxpy_to_phipt(px, py)
        if attr_name == "PT":
            found = pt
        elif attr_name == "Phi":
            found = phi
        elif attr_name == "Rapidity":
            found = ptpze_to_rapidity(pt, pz, energy)
        else:
            found = theta_to_pseudorapidity(ptpz_to_theta(pt, pz))
        if counts is None:
            return found
        return ak.unflatten(found, counts)

    def particles(self):
        """
        The particles of the selected event.

        Returns
        -------
        particles : list of Particle
            in the order they are stored
        """
        if self.selected_event is None:
            raise ValueError("Select an event before asking for its particles")
        columns = [ak.to_list(getattr(self, name)) for name in self.particle_columns]
        return [Particle(pid, energy, px, py, pz, status)
                for pid, status, energy, px, py, pz in zip(*columns)]
