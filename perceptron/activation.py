"""
activation.py
~~~~~~~~~~~~~

Catalogue of scalar activation functions.

Every function is an immutable :class:`ActivationFunction` record holding the
function itself, its derivative, its range and a few shape facts. Instances
carry no mutable state, so a single instance is shared by every neuron of a
layer. The ``name`` attribute is the tag written into network snapshots.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict

from perceptron.exceptions import UnknownActivationError

# Returned by BinaryStep's derivative at x == 0, where it is not defined.
# Callers must test for it with ``math.isnan``.
UNDEFINED_DERIVATIVE = float('nan')


@dataclass(frozen=True)
class ActivationFunction:
    """
    A scalar activation function and its mathematical properties.

    Attributes:
        name: Stable tag used for serialization
        evaluate: f(x)
        derivative: f'(x)
        lower_bound: Infimum of f
        upper_bound: Supremum of f
        is_monotonic: Whether f is monotonic
        is_derivative_monotonic: Whether f' is monotonic
        is_centered_around_zero: Whether f(0) == 0 and f is symmetric around it
        parameter: Free parameter of the function (only used by the ReLU leak)
    """

    name: str
    evaluate: Callable[[float], float] = field(repr=False, compare=False)
    derivative: Callable[[float], float] = field(repr=False, compare=False)
    lower_bound: float
    upper_bound: float
    is_monotonic: bool
    is_derivative_monotonic: bool
    is_centered_around_zero: bool
    parameter: float = 0.0

    def __call__(self, x: float) -> float:
        return self.evaluate(x)


def _logistic(x: float) -> float:
    # split on the sign so math.exp never overflows
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def _logistic_derivative(x: float) -> float:
    y = _logistic(x)
    return y * (1.0 - y)


def _tanh_derivative(x: float) -> float:
    return 1.0 - math.tanh(x) ** 2


def _binary_step(x: float) -> float:
    return 0.0 if x < 0 else 1.0


def _binary_step_derivative(x: float) -> float:
    return 0.0 if x != 0 else UNDEFINED_DERIVATIVE


def _gaussian(x: float) -> float:
    return math.exp(-x ** 2)


def _gaussian_derivative(x: float) -> float:
    return -2.0 * x * _gaussian(x)


IDENTITY = ActivationFunction(
    name='Identity',
    evaluate=lambda x: x,
    derivative=lambda x: 1.0,
    lower_bound=-math.inf,
    upper_bound=math.inf,
    is_monotonic=True,
    is_derivative_monotonic=True,
    is_centered_around_zero=True,
)

LOGISTIC = ActivationFunction(
    name='LogisticFunction',
    evaluate=_logistic,
    derivative=_logistic_derivative,
    lower_bound=0.0,
    upper_bound=1.0,
    is_monotonic=True,
    is_derivative_monotonic=False,
    is_centered_around_zero=False,
)

HYPERBOLIC_TANGENT = ActivationFunction(
    name='HyperbolicTangent',
    evaluate=math.tanh,
    derivative=_tanh_derivative,
    lower_bound=-1.0,
    upper_bound=1.0,
    is_monotonic=True,
    is_derivative_monotonic=False,
    is_centered_around_zero=True,
)

ARC_TANGENT = ActivationFunction(
    name='ArcTangent',
    evaluate=math.atan,
    derivative=lambda x: 1.0 / (x ** 2 + 1.0),
    lower_bound=-math.pi / 2,
    upper_bound=math.pi / 2,
    is_monotonic=True,
    is_derivative_monotonic=False,
    is_centered_around_zero=True,
)

BINARY_STEP = ActivationFunction(
    name='BinaryStep',
    evaluate=_binary_step,
    derivative=_binary_step_derivative,
    lower_bound=0.0,
    upper_bound=1.0,
    is_monotonic=True,
    is_derivative_monotonic=False,
    is_centered_around_zero=False,
)

GAUSSIAN = ActivationFunction(
    name='GaussianFunction',
    evaluate=_gaussian,
    derivative=_gaussian_derivative,
    lower_bound=0.0,
    upper_bound=1.0,
    is_monotonic=False,
    is_derivative_monotonic=False,
    is_centered_around_zero=False,
)

SINUSOID = ActivationFunction(
    name='SinusoidFunction',
    evaluate=math.sin,
    derivative=math.cos,
    lower_bound=-1.0,
    upper_bound=1.0,
    is_monotonic=False,
    is_derivative_monotonic=False,
    is_centered_around_zero=True,
)


def rectified_linear_unit(parameter: float = 0.0) -> ActivationFunction:
    """
    Build a (leaky) rectified linear unit.

    Args:
        parameter: Slope applied to negative inputs; 0 gives the plain ReLU

    Returns:
        ActivationFunction: The configured ReLU
    """
    parameter = float(parameter)

    def evaluate(x: float) -> float:
        return parameter * x if x < 0 else x

    def derivative(x: float) -> float:
        return parameter if x < 0 else 1.0

    return ActivationFunction(
        name='RectifiedLinearUnit',
        evaluate=evaluate,
        derivative=derivative,
        lower_bound=-math.inf if parameter > 0 else 0.0,
        upper_bound=math.inf,
        is_monotonic=True,
        is_derivative_monotonic=True,
        is_centered_around_zero=False,
        parameter=parameter,
    )


RECTIFIED_LINEAR_UNIT = rectified_linear_unit()

# Name tag -> function. ReLU is resolved through its factory so the leak
# parameter can be restored.
CATALOGUE: Dict[str, ActivationFunction] = {
    fn.name: fn for fn in (
        ARC_TANGENT,
        BINARY_STEP,
        GAUSSIAN,
        HYPERBOLIC_TANGENT,
        IDENTITY,
        LOGISTIC,
        RECTIFIED_LINEAR_UNIT,
        SINUSOID,
    )
}


def get_activation_function(
    name: str,
    parameter: float = 0.0
) -> ActivationFunction:
    """
    Look up an activation function by its serialization tag.

    Args:
        name: One of the names in :data:`CATALOGUE`
        parameter: Leak parameter, only meaningful for RectifiedLinearUnit

    Returns:
        ActivationFunction: The matching function

    Raises:
        UnknownActivationError: If the name is not in the catalogue
    """
    if name == RECTIFIED_LINEAR_UNIT.name:
        return rectified_linear_unit(parameter)
    try:
        return CATALOGUE[name]
    except (KeyError, TypeError):
        raise UnknownActivationError(name) from None
