"""
perceptron package
~~~~~~~~~~~~~~~~~~

Small multilayer-perceptron engine with backpropagation training.
Contains the neuron/connection graph, the feed-forward network with online
and batch training, the snapshot codec, model persistence, and an HTTP
server hosting networks.
"""

from perceptron.activation import (
    ARC_TANGENT,
    BINARY_STEP,
    GAUSSIAN,
    HYPERBOLIC_TANGENT,
    IDENTITY,
    LOGISTIC,
    RECTIFIED_LINEAR_UNIT,
    SINUSOID,
    ActivationFunction,
    get_activation_function,
    rectified_linear_unit,
)
from perceptron.codec import dumps, from_snapshot, loads, to_snapshot
from perceptron.exceptions import (
    CountMismatchError,
    EmptyTrainingSetError,
    NetworkError,
    SizeMismatchError,
    SnapshotError,
    UnknownActivationError,
)
from perceptron.network import FeedforwardNetwork, Network, NeuralNetwork

__version__ = "1.0.0"
