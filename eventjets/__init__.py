# seems to be needed when package is treated as submodule
from . import Constants
from . import PDGNames
from . import Components
from . import FormJets
# also, make the clustering entry points available at top level
from .Components import EventWise, Particle
from .FormJets import (cluster, ClusterSettings, ClusterResult, Jet,
                       JetAlgorithm, InvalidParameter, MalformedInput)
