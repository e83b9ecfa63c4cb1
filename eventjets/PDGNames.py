""" Names and classification of particles from their pdg code """
from . import Constants

particle_names = {1: "d", 2: "u", 3: "s", 4: "c", 5: "b", 6: "t",
                  11: "e¯", 12: "νₑ", 13: "μ", 14: "ν(μ)",
                  15: "τ", 16: "ν(τ)",
                  21: "g", 22: "γ", 23: "Z", 24: "W⁺", 25: "h",
                  -1: " ̅d", -2: " ̅u", -3: " ̅s", -4: " ̅c", -5: " ̅b", -6: " ̅t",
                  -11: "e⁺", -12: " ̅νₑ", -13: "μ⁺", -14: " ̅ν(μ)",
                  -15: "τ⁺", -16: " ̅ν(τ)",
                  -24: "W¯"}

# neutral kaons are the only hadrons without a 2J+1 digit
_spinless_hadrons = {130, 310}


def particle_name(pid):
    """
    Short printable name of a particle.

    Parameters
    ----------
    pid : int
        pdg code of the particle

    Returns
    -------
    : str
        the name, or "N/A" for particles without a short name
    """
    return particle_names.get(int(pid), "N/A")


def spin_type(pid):
    """ "Fermion", "Boson" or "Unknown" for a fundamental particle code """
    abs_pid = abs(int(pid))
    if abs_pid in Constants.fermion_pids:
        return "Fermion"
    if abs_pid in Constants.boson_pids:
        return "Boson"
    return "Unknown"


def is_antiparticle(pid):
    return pid < 0


def is_parton(pid):
    """ Gluons and all quarks lighter than the top are partons """
    abs_pid = abs(int(pid))
    return abs_pid == Constants.gluon_pid or 1 <= abs_pid <= Constants.max_parton_quark_pid


def is_hadron(pid):
    """
    Check if the pdg code is a meson or a baryon, following the
    numbering scheme of the particle data group.
    Codes with seven or more digits (excited states, SUSY partners,
    nuclei) are not counted.

    Parameters
    ----------
    pid : int
        pdg code of the particle

    Returns
    -------
    : bool
        is the code a hadron
    """
    abs_pid = abs(int(pid))
    if abs_pid >= 1000000:
        return False
    if abs_pid in _spinless_hadrons:
        return True
    n_j = abs_pid % 10
    n_q3 = (abs_pid // 10) % 10
    n_q2 = (abs_pid // 100) % 10
    return n_j != 0 and n_q3 != 0 and n_q2 != 0
