"""
Training module for Baum-Welch parameter estimation and model persistence.
"""

from .trainer import BaumWelchTrainer, fit, model_divergence
from .persistence import ModelPersistence

__all__ = [
    "BaumWelchTrainer",
    "fit",
    "model_divergence",
    "ModelPersistence"
]
