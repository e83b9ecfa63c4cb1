""" Cluster the particles of an event into jets by sequential recombination """
import bisect
import enum
import logging
import operator
import time

import awkward as ak
import numpy as np

from . import Components, Constants

logger = logging.getLogger(__name__)


class InvalidParameter(ValueError):
    """A clustering setting is not one of the permitted values."""


class MalformedInput(ValueError):
    """A particle offered for clustering has unusable kinematics."""


def ca_distances2(rapidity, phi, rapidity_column=None, phi_column=None):
    """ Distances in physical space according to the Cambridge Aachen metric.

    Parameters
    ----------
    rapidity : array of float
        Row of rapidity values.
    phi : array of float
        Row of phi values.
    rapidity_column : 2d array of float (optional)
        Column of rapidity values.
        If not given, taken as the transpose of the row.
    phi_column : 2d array of float (optional)
        Column of phi values.
        If not given, taken as the transpose of the row.

    Returns
    -------
    distances2 : 2d array of float
        Distances squared between points in the row and the column.
    """
    if rapidity_column is None:
        rapidity_column = np.expand_dims(rapidity, 1)
    rapidity_distances = rapidity - rapidity_column
    if phi_column is None:
        phi_column = np.expand_dims(phi, 1)
    phi_distances = Components.angular_distance(phi, phi_column)
    distances2 = phi_distances**2 + rapidity_distances**2
    return distances2


def genkt_factor(exponent, pt, pt_column=None):
    """A gen-kt factor, which will be used to reduce
    affinity to particles with low pt.

    Parameters
    ----------
    exponent : float
        power to raise each pt to.
    pt : array of float
        Row of pt values.
    pt_column : 2d array of float (optional)
        Column of pt values.
        If not given, taken as the transpose of the row.

    Returns
    -------
    factor : 2d array of float
        PT factors between points in the row and the column.
    """
    pt_power = pt**exponent
    if pt_column is None:
        pt_power_column = np.expand_dims(pt_power, 1)
    else:
        pt_power_column = pt_column**exponent
    factor = np.minimum(pt_power, pt_power_column)
    return factor


def check_hyperparameters(cluster_class, params):
    """
    Check the clustering parameters chosen are valid for the
    clustering class to be used.
    Raises an InvalidParameter if there is a problem.

    Parameters
    ----------
    cluster_class : class
        clustering class defining requirements in permited_values
    params : dict
        parameters to be checked

    """
    permitted = cluster_class.permited_values
    # check all the given params are the in permitted
    unwanted_keys = [name for name in params if name not in permitted]
    if unwanted_keys:
        raise InvalidParameter("Some parameters not permited for "
                               + f"{cluster_class.__name__}; {unwanted_keys}")
    error_str = f"In {cluster_class.__name__} {{}} is not a permitted " +\
            f"value for {{}}. Permitted value are {{}}"
    for name, opts in permitted.items():
        try:
            value = params[name]
        except KeyError:
            continue  # the default will be used
        if not isinstance(opts, list):
            opts = [opts]
        if any(_is_permitted(value, opt) for opt in opts):
            continue
        raise InvalidParameter(error_str.format(value, name, opts))


def _is_permitted(value, opt):
    if opt is None:
        return value is None
    if isinstance(opt, str) and opt in Constants.numeric_classes.values():
        return Constants.is_numeric_class(value, opt)
    # True == 1 in python, but a bool is never an option here
    if isinstance(value, (bool, np.bool_)):
        return False
    try:
        return bool(value == opt)
    except (TypeError, ValueError):
        return False


class Agglomerative:
    """ Bottom up clustering on a table of pseudojets.
    Each row of the tables is a pseudojet, its row number is its handle.
    Inputs fill the first rows, and each merge writes the next free row. """
    int_columns = ["Label",
                   "Parent", "Child1", "Child2",
                   "Rank"]
    float_columns = ["PT", "Rapidity", "Phi",
                     "Energy", "Px", "Py", "Pz",
                     "JoinDistance", "Size"]
    default_params = {}
    permited_values = {}

    def __init__(self, input_data, dict_jet_params=None, run=False):
        """
        Class constructor

        Parameters
        ----------
        input_data : (2d array of ints, 2d array of floats)
            rows of inputs for clustering
        dict_jet_params : dict (optional)
            Settings for jet clustering. If not given defaults are used.
        run : bool (optional)
            Should the jets be clustered immediately?
            (Default; False)
        """
        self.setup_hyperparams(dict_jet_params or {})
        self.setup_column_numbers()
        self.roots = []
        self.history = []
        self.setup_ints_floats(input_data)
        if run:
            self.run()

    @classmethod
    def from_kinematics(cls, energy, px, py, pz,
                        pt=None, rapidity=None, phi=None,
                        **kwargs):
        """Alternative constructor, takes the kinematics of the particles.

        Parameters
        ----------
        energy : array of floats
            energy of the input particles
        px : array of floats
            px of the input particles
        py : array of floats
            py of the input particles
        pz : array of floats
            pz of the input particles
        pt : array of floats (optional)
            pt of the input particles
        rapidity : array of floats (optional)
            rapidity of the input particles
        phi : array of floats (optional)
            phi of the input particles
        dict_jet_params : dict (optional)
            Settings for jet clustering. If not given defaults are used.
        run : bool (optional)
            Should the jets be clustered immediately?
            (Default; False)
        """
        energy, px, py, pz = (np.asarray(values, dtype=float).reshape(-1)
                              for values in (energy, px, py, pz))
        if phi is None or pt is None:
            phi, pt = Components.pxpy_to_phipt(px, py)
        if rapidity is None:
            rapidity = Components.ptpze_to_rapidity(pt, pz, energy)
        n_inputs = len(energy)
        ints = [[i, -1, -1, -1, -1] for i in range(n_inputs)]
        floats = [pt, rapidity, phi, energy, px, py, pz,
                  np.zeros(n_inputs),  # Join distance
                  np.ones(n_inputs)]  # Size
        # transpose a list of iterables
        floats = list(map(list, zip(*floats)))
        return cls((ints, floats), **kwargs)

    def setup_ints_floats(self, input_data):
        """ Create the _ints and _floats, along with
        the _avaliable_mask and _avaliable_idxs

        Parameters
        ----------
        input_data : (2d array of ints, 2d array of floats)
            rows of inputs for clustering
        """
        start_ints, start_floats = input_data
        self._ints, self._floats = \
            self.create_int_float_tables(start_ints, start_floats)
        self._avaliable_mask = (self.Label != -1)*(self.Parent == -1)
        self._avaliable_idxs = np.where(self._avaliable_mask)[0].tolist()

    def create_int_float_tables(self, start_ints, start_floats):
        """ Format the data for clustering, allocating memory.
        The tables created have space for pseudojets that will be created.

        Parameters
        ----------
        start_ints : list of list of int
            initial integer input data for clustering
        start_floats : list of list of floats
            initial float input data for clustering

        Returns
        -------
        ints : 2d array of int
            integer input data for clustering
        floats : 2d array of floats
            float input data for clustering
        """
        n_inputs = len(start_ints)
        if n_inputs == 0:
            ints = np.empty((0, len(self.int_columns)), dtype=int)
            floats = np.empty((0, len(self.float_columns)), dtype=float)
            return ints, floats
        start_labels = [row[self._col_num["Label"]] for row in start_ints]
        assert -1 not in start_labels, "-1 is a reserved label"
        # this will form a binary tree,
        # each join removes one unclustered pseudojet
        n_unclustered = int(np.sum([row[self._col_num["Parent"]] == -1
                                    for row in start_ints]))
        max_elements = n_inputs + max(n_unclustered - 1, 0)
        ints = -np.ones((max_elements, len(self.int_columns)),
                        dtype=int)
        ints[:n_inputs] = start_ints
        floats = np.full((max_elements, len(self.float_columns)),
                         np.nan, dtype=float)
        floats[:n_inputs] = start_floats
        return ints, floats

    def _next_free_row(self):
        """Find the next free index to place a new point.

        Returns
        -------
        i : int
            index of free point
        """
        label = self.Label
        n_rows = len(label)
        i = next((i for i in range(n_rows)
                  if label[i] == -1), n_rows)
        return i

    def _update_avalible(self, idxs_out, idxs_in=()):
        """Update which indices are avalible

        Parameters
        ----------
        idxs_out : iterable of ints
            the indices of points that are no longer avaliable.
        idxs_in : iterable of ints (optional)
            the indices of points that are now avaliable.
        """
        for idx in idxs_out:
            self._avaliable_mask[idx] = False
            self._avaliable_idxs.remove(idx)
        for idx in idxs_in:
            self._avaliable_mask[idx] = True
            bisect.insort(self._avaliable_idxs, idx)

    def setup_hyperparams(self, dict_jet_params):
        """
        Using the default parameters and the chosen parameters set
        the attributes of the Clustering to contain the parameters
        used for clustering.  Harmless to call multiple times.

        Parameters
        ----------
        dict_jet_params : dict of params
            parameters may be supplied together as a dictionary
            key is parameter name, value is parameter value
        """
        check_hyperparameters(type(self), dict_jet_params)
        for name in self.default_params:
            value = dict_jet_params.get(name, self.default_params[name])
            setattr(self, name, value)

    def setup_column_numbers(self):
        """
        Using the list of column names make a dict for quick indexing
        """
        self._col_num = {}
        for i, name in enumerate(self.int_columns):
            self._col_num[name] = i
        for i, name in enumerate(self.float_columns):
            self._col_num[name] = i

    def __dir__(self):
        """ Ensure the attributes are displayed in consistant order """
        new_attrs = set(super().__dir__())
        columns = self.float_columns + self.int_columns
        new_attrs.update(columns)
        new_attrs.update(["Leaf_" + name for name in columns])
        new_attrs.update(["Available_" + name for name in columns])
        return sorted(new_attrs)

    def __getattr__(self, attr_name):
        """
        Make the attributes for the floats and ints used to construct jets.
        The integer columns are simply returned as numpy arrays.
        """
        if attr_name.startswith("_"):
            raise AttributeError(attr_name)
        if attr_name.startswith("Leaf_"):
            mask = ((self._ints[:, self._col_num["Child1"]] == -1) *
                    (self._ints[:, self._col_num["Label"]] != -1))
            return getattr(self, attr_name[5:])[mask]
        if attr_name.startswith("Available_"):
            return getattr(self, attr_name[10:])[self._avaliable_idxs]
        if attr_name in self.float_columns:
            # phi is set by arctan2, so it is already -pi to pi
            col_num = self._col_num[attr_name]
            return self._floats[:, col_num]
        if attr_name in self.int_columns:
            col_num = self._col_num[attr_name]
            return self._ints[:, col_num]
        raise AttributeError(
                f"{self.__class__.__name__} does not have {attr_name}")

    @property
    def _2d_avaliable_indices(self):
        """
        Using the _avaliable_idxs make indices for indexing
        the corrisponding minor or a 2d matrix.

        Returns
        -------
        : tuple of arrays
            tuple that will index the matrix minor
        """
        num_avail = len(self._avaliable_idxs)
        avail = np.tile(self._avaliable_idxs, (num_avail, 1)).astype(int)
        return avail.T, avail

    def setup_internal(self):
        """Setup needed for a particular clustering calculation.

        Should generate the matrix of distances."""
        raise NotImplementedError

    def run(self):
        """Perform the clustering, until no pseudojets are avaliable."""
        if not self._avaliable_idxs:
            return
        self.setup_internal()
        while self._avaliable_idxs:
            idx1, idx2 = self.chose_pair()
            self.step(idx1, idx2)

    def step(self, idx1, idx2):
        """ Perform a step of clustering

        Parameters
        ----------
        idx1 : int
            index of first of the pair of particles to next join.
        idx2 : int
            index of second of the pair of particles to next join.
        """
        if idx1 == idx2:
            self._step_same(idx1)
        else:
            self._step_differ(idx1, idx2)

    def _step_same(self, idx):
        """ Perform a step of clustering, if next closest particle
        is close to the beam. It becomes a jet.

        Parameters
        ----------
        idx : int
            index of the particle near the beam.
        """
        self.history.append((idx, idx, -1, self._distances2[idx, idx]))
        self.roots.append(idx)
        self._update_avalible([idx])

    def _step_differ(self, idx1, idx2):
        """ Perform a step of clustering, if next closest particle
        is close to another particle.

        Parameters
        ----------
        idx1 : int
            index of first of the pair of particles to next join.
        idx2 : int
            index of second of the pair of particles to next join.
        """
        distance2 = self._distances2[idx1, idx2]
        idx_parent = self._next_free_row()
        new_int_row, new_float_row = self.combine_ints_floats(idx1, idx2,
                                                              distance2)
        self._ints[idx_parent] = new_int_row
        self._floats[idx_parent] = new_float_row
        self.history.append((idx1, idx2, idx_parent, distance2))
        self._update_avalible([idx1, idx2], [idx_parent])
        self.update_after_join(idx1, idx2, idx_parent)

    def chose_pair(self):
        """ Find the next two particles to join.
        Ties go to the pair with the lowest indices,
        as argmin returns the first minimum of the row major minor.

        Return
        ----------
        row : int
            index of first of the pair of particles to next join.
        column : int
            index of second of the pair of particles to next join.
        """
        masked_distances2 = self._distances2[self._2d_avaliable_indices]
        # this is the row and col in the masked array
        row, column = np.unravel_index(np.argmin(masked_distances2),
                                       masked_distances2.shape)
        # this is the row and col in the whole array
        row = self._avaliable_idxs[row]
        column = self._avaliable_idxs[column]
        return row, column

    def combine_ints_floats(self, idx1, idx2, distance2):
        """
        Caluclate the floats and ints created by combining two pseudojets.

        Parameters
        ----------
        idx1 : int
            index of the first pseudojet to input
        idx2 : int
            index of the second pseudojet to input
        distance2 : float
            distance between the pseudojets

        Returns
        -------
        ints : list of ints
            int columns of the combined pseudojet,
            order as per the column attributes
        floats : list of floats
            float columns of the combined pseudojet,
            order as per the column attributes
        """
        new_id = self._next_free_row()
        self.Parent[idx1] = new_id
        self.Parent[idx2] = new_id
        rank = max(self.Rank[idx1], self.Rank[idx2]) + 1
        ints = [new_id,
                -1,
                self.Label[idx1],
                self.Label[idx2],
                rank]
        # four vectors add, size adds
        # pt, phi and rapidity are calculated afresh
        floats = self._floats[idx1] + self._floats[idx2]
        px = floats[self._col_num["Px"]]
        py = floats[self._col_num["Py"]]
        pz = floats[self._col_num["Pz"]]
        energy = floats[self._col_num["Energy"]]
        phi, pt = Components.pxpy_to_phipt(px, py)
        floats[self._col_num["PT"]] = pt
        floats[self._col_num["Phi"]] = phi
        floats[self._col_num["Rapidity"]] = \
            Components.ptpze_to_rapidity(pt, pz, energy)
        floats[self._col_num["JoinDistance"]] = distance2
        return ints, floats

    def update_after_join(self, idx1, idx2, idx_parent):
        """Peform updates to internal data, after combining two particles.

        Parameters
        ----------
        idx1 : int
            index of first input particle
        idx2 : int
            index of second input particle
        idx_parent : int
            index of the new particle created
        """
        raise NotImplementedError

    def get_decendants(self, last_only=True, start_label=None, start_idx=None):
        """
        Get all decendants of a chosen particle
        within the structure of the jet.
        Leaves come out in merge order, the first child's
        leaves before the second child's.

        Parameters
        ----------
        last_only : bool
            Only return the end point decendants
            (Default value = True)
        start_label : int
            start_label used to identify the starting particle
            if not given idx required
            (Default value = None)
        start_idx : int
            Internal index to identify the particle
            if not given start_label required
            (Default value = None)

        Returns
        -------
        decendants : list of ints
            local indices of the decendants

        """
        label = self.Label
        child1 = self.Child1
        child2 = self.Child2
        if start_idx is None and start_label is None:
            raise TypeError("Need to specify a pseudojet")
        if start_idx is None:
            start_idx = int(np.where(label == start_label)[0][0])
        label = label.tolist()
        stack = [start_idx]
        decendants = []
        while stack:
            idx = stack.pop()
            if child1[idx] == -1:
                decendants.append(idx)
                continue
            if not last_only:
                decendants.append(idx)
            # second child goes on the stack first, so it comes off last
            stack.append(label.index(child2[idx]))
            stack.append(label.index(child1[idx]))
        return decendants


class GeneralisedKT(Agglomerative):
    """ The kt family of algorithms.
    The exponent of pt in the distance, ExpofPTInput, picks the algorithm;
    1 for kt, 0 for Cambridge Aachen and -1 for anti-kt. """
    default_params = {'DeltaR': Constants.default_radius,
                      'ExpofPTInput': -1}
    permited_values = {'DeltaR': Constants.numeric_classes['pdn'],
                       'ExpofPTInput': [-1, 0, 1]}

    def _physical_distances(self, angular_distances2, kt_factor):
        """ Combine angular distance and the kt factor.
        Undefined products (0 times inf) are taken as infinitely far. """
        with np.errstate(invalid='ignore'):
            distances2 = angular_distances2*kt_factor
        distances2[np.isnan(distances2)] = np.inf
        return distances2

    def setup_internal(self):
        """Setup needed for a particular clustering calculation.

        Generates the matrix of distances, the diagonal
        holds the distance to the beam."""
        self._DeltaR2 = self.DeltaR**2
        with np.errstate(divide='ignore'):
            kt_factor = genkt_factor(2*self.ExpofPTInput, self.Available_PT)
        angular_distances2 = ca_distances2(self.Available_Rapidity,
                                           self.Available_Phi)/self._DeltaR2
        np.fill_diagonal(angular_distances2, 1.)
        # the distances2 array should be large enough to
        # evenually take all nodes
        self._distances2 = np.full((self._ints.shape[0], self._ints.shape[0]),
                                   np.inf, dtype=float)
        self._distances2[self._2d_avaliable_indices] = \
            self._physical_distances(angular_distances2, kt_factor)

    def update_after_join(self, idx1, idx2, idx_parent):
        """Peform updates to internal data, after combining two particles.

        Parameters
        ----------
        idx1 : int
            index of first input particle
        idx2 : int
            index of second input particle
        idx_parent : int
            index of the new particle created
        """
        new_rapidity = self.Rapidity[[idx_parent]]
        new_phi = self.Phi[[idx_parent]]
        with np.errstate(invalid='ignore'):
            new_angular_distance2 = ca_distances2(
                self.Available_Rapidity, self.Available_Phi,
                new_rapidity, new_phi)/self._DeltaR2
        masked_idx_parent = self._avaliable_idxs.index(idx_parent)
        new_angular_distance2[masked_idx_parent] = 1.
        new_pt = self.PT[[idx_parent]]
        with np.errstate(divide='ignore'):
            new_kt_factor = genkt_factor(
                2*self.ExpofPTInput, self.Available_PT, new_pt)
        new_distance2 = self._physical_distances(new_angular_distance2,
                                                 new_kt_factor)
        self._distances2[idx_parent, self._avaliable_mask] = new_distance2
        self._distances2.T[idx_parent, self._avaliable_mask] = new_distance2


class JetAlgorithm(enum.Enum):
    """ The algorithms of the kt family, valued by their exponent of pt """
    KT = 1
    CAMBRIDGE_AACHEN = 0
    ANTI_KT = -1

    @property
    def exponent(self):
        return self.value

    @property
    def display_name(self):
        return _algorithm_display_names[self]

    def __str__(self):
        return self.display_name

    @classmethod
    def lookup(cls, algorithm):
        """
        Find the algorithm from a member, an exponent or a name.

        Parameters
        ----------
        algorithm : JetAlgorithm or int or str
            a member, its exponent, its name or its display name

        Returns
        -------
        : JetAlgorithm
            the matching member
        """
        if isinstance(algorithm, cls):
            return algorithm
        if isinstance(algorithm, str):
            wanted = algorithm.lower()
            for member in cls:
                if wanted in (member.name.lower(), member.display_name.lower()):
                    return member
        elif Constants.is_numeric_class(algorithm, 'rn'):
            for member in cls:
                if algorithm == member.value:
                    return member
        raise InvalidParameter(f"{algorithm!r} is not a jet algorithm, "
                               f"options are {[str(member) for member in cls]}")


_algorithm_display_names = {JetAlgorithm.KT: "kt",
                            JetAlgorithm.CAMBRIDGE_AACHEN: "Cambridge/Aachen",
                            JetAlgorithm.ANTI_KT: "anti-kt"}


class ClusterSettings:
    """ Everything that decides how an event is clustered. """
    default_params = {**GeneralisedKT.default_params,
                      'MinPT': 0.,
                      'MinJetPT': None,
                      'JetInputs': 'final_state'}
    permited_values = {**GeneralisedKT.permited_values,
                       'MinPT': Constants.numeric_classes['nnn'],
                       'MinJetPT': [None, Constants.numeric_classes['nnn']],
                       'JetInputs': ['final_state', 'hadronic']}

    def __init__(self, algorithm=JetAlgorithm.ANTI_KT,
                 radius=Constants.default_radius, min_pt=0.,
                 min_jet_pt=None, jet_inputs='final_state'):
        """
        Class constructor, raises InvalidParameter for bad settings.

        Parameters
        ----------
        algorithm : JetAlgorithm or int or str (optional)
            the algorithm, or its exponent or name
            (Default; JetAlgorithm.ANTI_KT)
        radius : float (optional)
            the jet radius R, must be positive
            (Default; 0.4)
        min_pt : float (optional)
            particles need more pt than this to be clustered
            (Default; 0.)
        min_jet_pt : float (optional)
            jets need more pt than this to be kept,
            the particles of jets that fail are unclustered.
            None for no cut.
            (Default; None)
        jet_inputs : str (optional)
            'final_state' to cluster all final state particles,
            'hadronic' to cluster only partons and hadrons
            (Default; 'final_state')
        """
        self.algorithm = JetAlgorithm.lookup(algorithm)
        self.radius = radius
        self.min_pt = min_pt
        self.min_jet_pt = min_jet_pt
        self.jet_inputs = jet_inputs
        self.validate()

    @property
    def jet_params(self):
        return {'DeltaR': self.radius,
                'ExpofPTInput': JetAlgorithm.lookup(self.algorithm).exponent,
                'MinPT': self.min_pt,
                'MinJetPT': self.min_jet_pt,
                'JetInputs': self.jet_inputs}

    @property
    def engine_params(self):
        """ The parameters that GeneralisedKT takes """
        params = self.jet_params
        return {name: params[name] for name in GeneralisedKT.default_params}

    def validate(self):
        check_hyperparameters(type(self), self.jet_params)

    @classmethod
    def from_jet_params(cls, dict_jet_params):
        """Alternative constructor, from a dict of hyperparameters
        named as in permited_values. Unspecified parameters take defaults.

        Parameters
        ----------
        dict_jet_params : dict
            key is parameter name, value is parameter value

        Returns
        -------
        : ClusterSettings
        """
        check_hyperparameters(cls, dict_jet_params)
        params = {**cls.default_params, **dict_jet_params}
        return cls(algorithm=params['ExpofPTInput'],
                   radius=params['DeltaR'],
                   min_pt=params['MinPT'],
                   min_jet_pt=params['MinJetPT'],
                   jet_inputs=params['JetInputs'])

    @classmethod
    def coerce(cls, settings):
        """ Accept either settings or a dict of hyperparameters """
        if isinstance(settings, cls):
            settings.validate()
            return settings
        if isinstance(settings, dict):
            return cls.from_jet_params(settings)
        raise TypeError(f"Cannot cluster with settings {settings!r}")

    def __eq__(self, other):
        if not isinstance(other, ClusterSettings):
            return NotImplemented
        return self.jet_params == other.jet_params

    def __repr__(self):
        return (f"{self.__class__.__name__}(algorithm={self.algorithm.name}, "
                f"radius={self.radius}, min_pt={self.min_pt}, "
                f"min_jet_pt={self.min_jet_pt}, jet_inputs={self.jet_inputs!r})")


class Jet:
    """ Summed four-momentum of the particles in a jet """
    def __init__(self, energy, px, py, pz, constituents):
        self.energy = float(energy)
        self.px = float(px)
        self.py = float(py)
        self.pz = float(pz)
        # indices of the input particles, in the order they were merged
        self.constituents = list(constituents)

    @property
    def four_momentum(self):
        return np.array([self.energy, self.px, self.py, self.pz])

    @property
    def pt(self):
        return Components.pxpy_to_phipt(self.px, self.py)[1]

    @property
    def phi(self):
        return Components.pxpy_to_phipt(self.px, self.py)[0]

    @property
    def rapidity(self):
        return Components.ptpze_to_rapidity(self.pt, self.pz, self.energy)

    @property
    def pseudorapidity(self):
        return Components.theta_to_pseudorapidity(
                Components.ptpz_to_theta(self.pt, self.pz))

    @property
    def mass(self):
        return Components.pxpypze_to_mass(self.px, self.py, self.pz, self.energy)

    def __len__(self):
        return len(self.constituents)

    def __repr__(self):
        return (f"Jet(pt={self.pt:.4g}, rapidity={self.rapidity:.4g}, "
                f"phi={self.phi:.4g}, constituents={self.constituents})")


class ClusterResult:
    """
    The jets of one event and the particles left out of them.

    Attributes
    ----------
    jets : list of Jet
        ordered by descending pt
    unclustered : list of int
        indices of final state particles in no jet, ascending
    candidates : list of int
        indices of the particles that entered the clustering,
        the pseudojet handle i < len(candidates) is candidates[i]
    history : list of tuple
        (handle1, handle2, parent handle, distance) for each step
        of the clustering, parent handle is -1 when a jet is finished
    """
    def __init__(self, jets=None, unclustered=None, candidates=None, history=None):
        self.jets = jets or []
        self.unclustered = unclustered or []
        self.candidates = candidates or []
        self.history = history or []

    def __len__(self):
        return len(self.jets)

    def __iter__(self):
        return iter(self.jets)

    def __repr__(self):
        return (f"ClusterResult({len(self.jets)} jets, "
                f"{len(self.unclustered)} unclustered)")


def select_jet_inputs(particles, settings):
    """
    Sort the final state particles into those that will be clustered
    and those that will not.

    Parameters
    ----------
    particles : list of Particle
        every particle in the event
    settings : ClusterSettings
        gives the pt threshold and which particles are jet inputs

    Returns
    -------
    candidates : list of int
        indices of particles to cluster
    unclustered : list of int
        indices of final state particles that won't be clustered
    """
    candidates = []
    unclustered = []
    for idx, particle in enumerate(particles):
        if not particle.is_final_state:
            continue
        four_momentum = (particle.energy, particle.px, particle.py, particle.pz)
        if not np.all(np.isfinite(four_momentum)):
            raise MalformedInput(f"Particle {idx} has four-momentum {four_momentum}")
        if settings.jet_inputs == 'hadronic' and \
                not (particle.is_parton or particle.is_hadron):
            unclustered.append(idx)
        elif particle.pt > settings.min_pt:
            candidates.append(idx)
        else:
            unclustered.append(idx)
    return candidates, unclustered


def cluster(particles, settings):
    """
    Cluster the final state particles of an event into jets.

    Parameters
    ----------
    particles : list of Particle
        every particle in the event, final state or not.
        Their position in the list is their index in the result.
    settings : ClusterSettings or dict
        settings, or a dict of hyperparameters as in
        ClusterSettings.permited_values

    Returns
    -------
    result : ClusterResult
        jets and unclustered particle indices, between them
        covering every final state particle exactly once
    """
    settings = ClusterSettings.coerce(settings)
    particles = list(particles)
    candidates, unclustered = select_jet_inputs(particles, settings)
    if not candidates:
        logger.debug("No particles to cluster, %d unclustered", len(unclustered))
        return ClusterResult(unclustered=sorted(unclustered))
    energy, px, py, pz = (np.array([getattr(particles[idx], name) for idx in candidates],
                                   dtype=float)
                          for name in ("energy", "px", "py", "pz"))
    phi, pt = Components.pxpy_to_phipt(px, py)
    rapidity = Components.ptpze_to_rapidity(pt, pz, energy)
    bad_rapidity = ~np.isfinite(rapidity)
    if np.any(bad_rapidity):
        bad_idxs = [candidates[i] for i in np.where(bad_rapidity)[0]]
        raise MalformedInput(f"Particles {bad_idxs} have no finite rapidity")
    agglomerative = GeneralisedKT.from_kinematics(
            energy, px, py, pz, pt, rapidity, phi,
            dict_jet_params=settings.engine_params, run=True)
    jets = []
    for root in agglomerative.roots:
        leaves = agglomerative.get_decendants(last_only=True, start_idx=root)
        jet = Jet(agglomerative.Energy[root], agglomerative.Px[root],
                  agglomerative.Py[root], agglomerative.Pz[root],
                  [candidates[leaf] for leaf in leaves])
        if settings.min_jet_pt is not None and not jet.pt > settings.min_jet_pt:
            unclustered += jet.constituents
            continue
        jets.append(jet)
    # stable, so jets with equal pt stay in the order they were finished
    jets.sort(key=operator.attrgetter('pt'), reverse=True)
    logger.debug("Clustered %d particles into %d jets with %s, %d unclustered",
                 len(candidates), len(jets), settings.algorithm, len(unclustered))
    return ClusterResult(jets, sorted(unclustered), candidates,
                         agglomerative.history)


def cluster_multiapply(eventWise, settings, start=0, end=None, should_stop=None):
    """
    Cluster many events with the same settings.

    Parameters
    ----------
    eventWise : EventWise
        data file with inputs
    settings : ClusterSettings or dict
        settings for every event
    start : int (optional)
        first event to cluster
        (Default; 0)
    end : int (optional)
        event to stop before, None for the end of the eventWise
        (Default; None)
    should_stop : callable (optional)
        checked before each event, when it returns True
        no further events are clustered
        (Default; None)

    Returns
    -------
    results : list of ClusterResult
        one for each event clustered, in order
    """
    settings = ClusterSettings.coerce(settings)
    eventWise.selected_event = None
    n_events = len(eventWise)
    end_point = n_events if end is None else min(end, n_events)
    logger.info("Clustering events %d to %d of %d with %r",
                start, end_point, n_events, settings)
    log_frequency = max(int((end_point - start)/100), 1)
    start_time = time.time()
    results = []
    try:
        for event_n in range(start, end_point):
            if should_stop is not None and should_stop():
                logger.info("Stopped before event %d", event_n)
                break
            if (event_n - start) % log_frequency == 0:
                logger.debug("%.1f%%", 100*(event_n - start)/(end_point - start))
            eventWise.selected_event = event_n
            results.append(cluster(eventWise.particles(), settings))
    finally:
        eventWise.selected_event = None
    logger.info("Clustered %d events in %.3g s",
                len(results), time.time() - start_time)
    return results


def create_jet_contents(results, jet_name="AntiKtJet"):
    """Process the results of clustering many events to a content dict
    for an eventWise.

    Parameters
    ----------
    results : list of ClusterResult
        one for each event
    jet_name : string (optional)
        prefix for the column names, "Jet" is appended if missing
        (Default; "AntiKtJet")

    Return
    ------
    contents : dict
        A dict of awkward arrays, indexed by event then jet
    """
    if not jet_name.endswith("Jet"):
        jet_name += "Jet"
    attributes = {"Energy": "energy", "Px": "px", "Py": "py", "Pz": "pz",
                  "PT": "pt", "Rapidity": "rapidity", "Phi": "phi",
                  "Constituents": "constituents"}
    contents = {f"{jet_name}_{name}": [] for name in attributes}
    contents[f"{jet_name}_Unclustered"] = []
    for result in results:
        for name, attr in attributes.items():
            contents[f"{jet_name}_{name}"].append(
                    [getattr(jet, attr) for jet in result.jets])
        contents[f"{jet_name}_Unclustered"].append(list(result.unclustered))
    contents = {name: ak.from_iter(values) for name, values in contents.items()}
    return contents
