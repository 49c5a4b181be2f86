"""
bwhmm: Baum-Welch parameter estimation for discrete Hidden Markov Models

Log-space forward-backward recursions and expected-count re-estimation of
transition and emission probabilities from a single observation sequence.
"""

__version__ = "0.1.0"
__author__ = "bwhmm Development Team"

from .config import get_config, set_config
from .logger import get_logger
from .hmm import DiscreteHMM
from .train import BaumWelchTrainer, fit

__all__ = [
    "fit",
    "BaumWelchTrainer",
    "DiscreteHMM",
    "get_config",
    "set_config",
    "get_logger",
    "__version__"
]
