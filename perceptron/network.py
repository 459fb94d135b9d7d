"""
network.py
~~~~~~~~~~

Multilayer perceptron trained with backpropagation.

A network is an input layer, any number of hidden layers and an output layer.
Every neuron of a layer is connected to every neuron of the following layer.
Inference is a layer-by-layer forward pass over scalar neurons. Training runs
the forward pass, propagates the output error back towards the input, and
moves each weight along the negative error gradient (the delta rule).

Two training disciplines are supported:

- online (:meth:`NeuralNetwork.train`): weights change after every example;
- batch (:meth:`NeuralNetwork.train_batch`): weight changes from a full pass
  over the training set are collected and applied at once, so every example
  of a pass sees the same weights.

Example:
    >>> net = FeedforwardNetwork(2, [4], 1, seed=501935)
    >>> error = net.train_batch([[0, 1], [1, 1]], [[0], [1]], iterations=100)
    >>> net.predict([1, 1])
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence, Union

from perceptron.activation import (
    HYPERBOLIC_TANGENT,
    IDENTITY,
    ActivationFunction,
    get_activation_function,
)
from perceptron.exceptions import (
    CountMismatchError,
    EmptyTrainingSetError,
    SizeMismatchError,
)
from perceptron.layer import Layer, OutputLayer
from perceptron.weights import RandomSource, WeightSupplier

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.3
DEFAULT_ERROR_THRESHOLD = 0.005

ActivationSpec = Union[ActivationFunction, str]


def _resolve_activation(activation: ActivationSpec) -> ActivationFunction:
    """Accept either an ActivationFunction or its serialization name."""
    if isinstance(activation, ActivationFunction):
        return activation
    return get_activation_function(activation)


class NeuralNetwork:
    """
    Layered network of neurons with backpropagation training.

    Subclasses decide how the layers are connected and how input flows
    through them by implementing :meth:`_create_connections` and
    :meth:`_feed`.
    """

    def __init__(
        self,
        input_count: int,
        hidden_counts: Sequence[int],
        output_count: int,
        seed: Optional[int] = None,
        learning_rate: Optional[float] = None,
        hidden_activation: ActivationSpec = HYPERBOLIC_TANGENT,
        output_activation: ActivationSpec = HYPERBOLIC_TANGENT,
        weights: Optional[Iterable[float]] = None
    ):
        """
        Build the layers and connect them.

        Args:
            input_count: Number of input neurons
            hidden_counts: Number of neurons in each hidden layer
            output_count: Number of output neurons
            seed: Seed for the random weight initialization
            learning_rate: Step size of every weight update (default 0.3)
            hidden_activation: Activation function of the hidden layers
            output_activation: Activation function of the output layer
            weights: Initial weights in connection-creation order; used
                before falling back to random initialization

        Raises:
            UnknownActivationError: If an activation name is not recognized
            ValueError: If a layer size is not positive, or more initial
                weights are given than the network has connections
        """
        hidden_activation = _resolve_activation(hidden_activation)
        output_activation = _resolve_activation(output_activation)

        self.seed = seed
        self.learning_rate = (
            DEFAULT_LEARNING_RATE if learning_rate is None
            else float(learning_rate)
        )
        self.weight_supplier = WeightSupplier(RandomSource(seed), weights)

        # the input layer never transforms its input
        self.layers: List[Layer] = [
            Layer(input_count, IDENTITY, self.weight_supplier)
        ]
        for count in hidden_counts:
            self.layers.append(
                Layer(count, hidden_activation, self.weight_supplier)
            )
        self.layers.append(
            OutputLayer(output_count, output_activation, self.weight_supplier)
        )

        self._create_connections()
        leftover = self.weight_supplier.remaining_predefined
        if leftover:
            raise ValueError(
                f"{leftover} initial weight(s) left over after connecting "
                f"layers of sizes {self.sizes}"
            )

        logger.debug(
            f"Created {type(self).__name__} with sizes {self.sizes}, "
            f"hidden={hidden_activation.name}, "
            f"output={output_activation.name}, "
            f"learning_rate={self.learning_rate}, seed={self.seed}"
        )

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    def _create_connections(self) -> None:
        raise NotImplementedError(
            f"Method not implemented in subclass `{type(self).__name__}`"
        )

    @property
    def sizes(self) -> List[int]:
        """Number of neurons per layer, input layer first."""
        return [layer.size for layer in self.layers]

    @property
    def number_of_layers(self) -> int:
        return len(self.layers)

    def get_layer(self, index: int) -> Layer:
        return self.layers[index]

    @property
    def input_layer(self) -> Layer:
        return self.layers[0]

    @property
    def output_layer(self) -> OutputLayer:
        return self.layers[-1]

    def reset(self) -> None:
        for layer in self.layers:
            layer.reset()

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def _feed(self, input: Sequence[float]) -> None:
        raise NotImplementedError(
            f"Method not implemented in subclass `{type(self).__name__}`"
        )

    def _check_input(self, input: Sequence[float]) -> None:
        if len(input) != self.input_layer.size:
            raise SizeMismatchError('input', self.input_layer.size, len(input))

    def _check_desired_output(self, desired_output: Sequence[float]) -> None:
        if len(desired_output) != self.output_layer.size:
            raise SizeMismatchError(
                'desired output', self.output_layer.size, len(desired_output)
            )

    def _get_output(self) -> List[float]:
        return [float(neuron.activation) for neuron in self.output_layer]

    def predict(self, input: Sequence[float]) -> List[float]:
        """
        Run a forward pass and return the output activations.

        Only the transient per-example state changes; weights are untouched.

        Raises:
            SizeMismatchError: If the input length differs from the input layer
        """
        self._feed(input)
        return self._get_output()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _backpropagate(self, desired_output: Sequence[float]) -> None:
        self.output_layer.update_deltas(desired_output)
        # hidden layers, last to first; each reads the deltas of its successor
        for index in range(len(self.layers) - 2, 0, -1):
            self.layers[index].update_deltas()

    def _update_weights_in_network(self, immediate: bool) -> None:
        # the output layer owns no connections
        for layer in self.layers[:-1]:
            layer.update_weights_in_layer(self.learning_rate, immediate)

    def _release_weight_updates_in_network(self) -> None:
        for layer in self.layers[:-1]:
            layer.release_weight_updates_in_layer()

    def _discard_weight_updates_in_network(self) -> None:
        for layer in self.layers[:-1]:
            layer.discard_weight_updates_in_layer()

    def train(
        self,
        input: Sequence[float],
        desired_output: Sequence[float]
    ) -> float:
        """
        Train on a single example and update the weights immediately.

        Args:
            input: Input vector
            desired_output: Target vector

        Returns:
            float: Mean squared error of the example, measured before the update

        Raises:
            SizeMismatchError: If a vector does not match its layer
        """
        self._check_input(input)
        self._check_desired_output(desired_output)

        self._feed(input)
        self._backpropagate(desired_output)
        sum_squared_error = self.output_layer.calculate_sum_squared_error(
            desired_output
        )
        self._update_weights_in_network(True)
        return sum_squared_error / self.output_layer.size

    def train_batch(
        self,
        inputs: Sequence[Sequence[float]],
        desired_outputs: Sequence[Sequence[float]],
        iterations: int = 1,
        error_threshold: float = DEFAULT_ERROR_THRESHOLD
    ) -> float:
        """
        Train on a full training set, updating the weights once per pass.

        Passes are repeated until ``iterations`` passes have run or the mean
        squared error of a pass is no longer above ``error_threshold``.

        Args:
            inputs: Input vectors
            desired_outputs: Target vectors, one per input
            iterations: Maximum number of passes
            error_threshold: Stop once the error drops to this value

        Returns:
            float: Mean squared error of the last pass (``inf`` if none ran)

        Raises:
            CountMismatchError: If the number of inputs and targets differ
            SizeMismatchError: If any vector does not match its layer
            EmptyTrainingSetError: If there is nothing to train on
        """
        if len(inputs) != len(desired_outputs):
            raise CountMismatchError(len(inputs), len(desired_outputs))
        for input, desired_output in zip(inputs, desired_outputs):
            self._check_input(input)
            self._check_desired_output(desired_output)
        if iterations > 0 and len(inputs) == 0:
            raise EmptyTrainingSetError("Training set must not be empty")

        output_layer = self.output_layer
        error = math.inf
        iteration = 0
        while iteration < iterations and error > error_threshold:
            total = 0.0
            try:
                for input, desired_output in zip(inputs, desired_outputs):
                    self._feed(input)
                    self._backpropagate(desired_output)
                    self._update_weights_in_network(False)
                    total += output_layer.calculate_sum_squared_error(
                        desired_output
                    )
            except Exception:
                # a failed pass must not leak its updates into the next one
                self._discard_weight_updates_in_network()
                logger.warning(
                    f"Batch pass {iteration + 1} failed, "
                    f"pending weight updates discarded"
                )
                raise
            error = total / (len(inputs) * output_layer.size)
            self._release_weight_updates_in_network()
            iteration += 1

        logger.info(
            f"Batch training finished after {iteration} iteration(s) "
            f"on {len(inputs)} pattern(s): error={error}"
        )
        return error

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Snapshot of the topology, weights and options."""
        return {
            'layers': [layer.to_dict() for layer in self.layers],
            'learningRate': self.learning_rate,
            'seed': self.seed,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(sizes={self.sizes}, "
            f"learning_rate={self.learning_rate}, seed={self.seed})"
        )


class FeedforwardNetwork(NeuralNetwork):
    """Densely connected network where activations only flow forward."""

    def _create_connections(self) -> None:
        # source neurons outer, target neurons inner: this is the order in
        # which initial weights are consumed
        for previous_layer, current_layer in zip(self.layers, self.layers[1:]):
            for source in previous_layer:
                for target in current_layer:
                    source.connect_to(target)

    def _feed(self, input: Sequence[float]) -> None:
        self._check_input(input)
        self.reset()
        for neuron, value in zip(self.input_layer, input):
            neuron.feed(value)
        for layer in self.layers:
            layer.propagate_all_neurons()

    def to_json(self) -> str:
        from perceptron.codec import dumps
        return dumps(self)

    @classmethod
    def from_json(cls, text: str) -> 'FeedforwardNetwork':
        from perceptron.codec import loads
        return loads(text, network_class=cls)


Network = FeedforwardNetwork
