""" Fixed values shared between the modules """
import numbers
import numpy as np

# names of the numeric classes that can appear in permited_values
numeric_classes = {'rn': 'real number',
                   'pdn': 'positive definite number',
                   'nnn': 'non-negative number',
                   'nn': 'natural number'}


def is_numeric_class(value, numeric_class):
    """
    Check if a value belongs to one of the numeric_classes.

    Parameters
    ----------
    value : object
        the value to check
    numeric_class : str
        a key or a value of numeric_classes

    Returns
    -------
    : bool
        value is a member of the class
    """
    if numeric_class in numeric_classes:
        numeric_class = numeric_classes[numeric_class]
    if numeric_class not in numeric_classes.values():
        raise ValueError(f"{numeric_class} is not a numeric class")
    # bools are ints in python, but never a sensible number here
    if isinstance(value, (bool, np.bool_)):
        return False
    if not isinstance(value, numbers.Real):
        return False
    if np.isnan(value):
        return False
    if numeric_class == 'real number':
        return True
    if numeric_class == 'positive definite number':
        return value > 0
    if numeric_class == 'non-negative number':
        return value >= 0
    # natural number
    return value >= 0 and float(value).is_integer()


# status code of a final state particle in HepMC2 and LHEF records
final_state_status = 1

# pdg codes
gluon_pid = 21
# top quarks decay before they can form jets
max_parton_quark_pid = 5
boson_pids = range(21, 26)
fermion_pids = range(1, 17)

# generic jet settings
default_radius = 0.4
