from .cord import Cord, cord
from .effects import check_coeffs, effect_alt, effect_null
from .equivtest import equivtest
from .errors import (
    DimensionMismatchError,
    InsufficientReplicatesError,
    InvalidResponseError,
    InvalidTermError,
    RefitConvergenceError,
)
from .estimator import PowerCurve
from .extend import extend
from .manyglm import ManyGLM, manyglm
from .powersim import powersim
from .types import EquivTestOutput, PowerOutput

__all__ = [
    "Cord",
    "DimensionMismatchError",
    "EquivTestOutput",
    "InsufficientReplicatesError",
    "InvalidResponseError",
    "InvalidTermError",
    "ManyGLM",
    "PowerCurve",
    "PowerOutput",
    "RefitConvergenceError",
    "check_coeffs",
    "cord",
    "effect_alt",
    "effect_null",
    "equivtest",
    "extend",
    "manyglm",
    "powersim",
]
