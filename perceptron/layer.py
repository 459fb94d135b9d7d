"""
layer.py
~~~~~~~~

Layers group a fixed number of neurons that share one activation function
and one weight supplier.
"""

from typing import Any, Dict, Iterator, List, Sequence, Type

from perceptron.activation import ActivationFunction
from perceptron.exceptions import SizeMismatchError
from perceptron.neuron import Neuron, OutputNeuron
from perceptron.weights import WeightSupplier


class Layer:
    """
    An ordered, fixed-size set of neurons.

    Subclasses pick the neuron kind through ``neuron_class``.
    """

    neuron_class: Type[Neuron] = Neuron

    def __init__(
        self,
        size: int,
        activation_function: ActivationFunction,
        weight_supplier: WeightSupplier
    ):
        if size < 1:
            raise ValueError(f"Layer size must be positive, got {size}")
        self.activation_function = activation_function
        self.weight_supplier = weight_supplier
        self.neurons: List[Neuron] = [
            self.neuron_class(self) for _ in range(size)
        ]

    @property
    def size(self) -> int:
        return len(self.neurons)

    def __len__(self) -> int:
        return len(self.neurons)

    def __iter__(self) -> Iterator[Neuron]:
        return iter(self.neurons)

    def get_neuron(self, index: int) -> Neuron:
        return self.neurons[index]

    def propagate_all_neurons(self) -> None:
        """
        Propagate every neuron's activation to the following layer.

        All neurons must have received their complete input first.
        """
        for neuron in self.neurons:
            neuron.propagate()

    def reset(self) -> None:
        for neuron in self.neurons:
            neuron.reset()

    def update_deltas(self) -> None:
        """Recompute the deltas. The next layer's deltas must be current."""
        for neuron in self.neurons:
            neuron.update_delta()

    def update_weights_in_layer(
        self,
        learning_rate: float,
        immediate: bool
    ) -> None:
        for neuron in self.neurons:
            neuron.update_weights_at_connections(learning_rate, immediate)

    def release_weight_updates_in_layer(self) -> None:
        for neuron in self.neurons:
            neuron.release_weight_updates_at_connections()

    def discard_weight_updates_in_layer(self) -> None:
        for neuron in self.neurons:
            neuron.discard_weight_updates_at_connections()

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the layer's weights and activation function.

        Returns:
            dict: ``{'neurons': [...], 'activationFunction': name}``, plus
            ``activationParameter`` for a leaky ReLU
        """
        data: Dict[str, Any] = {
            'neurons': [neuron.to_dict() for neuron in self.neurons],
            'activationFunction': self.activation_function.name,
        }
        if self.activation_function.parameter:
            data['activationParameter'] = self.activation_function.parameter
        return data

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={self.size}, "
            f"activation_function={self.activation_function.name!r})"
        )


class OutputLayer(Layer):
    """Last layer of a network, compared against desired outputs."""

    neuron_class = OutputNeuron

    def _check_size(self, desired_output: Sequence[float]) -> None:
        if len(desired_output) != self.size:
            raise SizeMismatchError(
                'desired output', self.size, len(desired_output)
            )

    def update_deltas(self, desired_output: Sequence[float]) -> None:
        """
        Recompute the deltas against the desired output.

        Args:
            desired_output: One target value per output neuron

        Raises:
            SizeMismatchError: If the length differs from the layer size
        """
        self._check_size(desired_output)
        for neuron, desired in zip(self.neurons, desired_output):
            neuron.update_delta(desired)

    def calculate_sum_squared_error(
        self,
        desired_output: Sequence[float]
    ) -> float:
        """
        Sum of the squared differences between desired and actual outputs.

        Raises:
            SizeMismatchError: If the length differs from the layer size
        """
        self._check_size(desired_output)
        squared_errors = 0.0
        for neuron, desired in zip(self.neurons, desired_output):
            squared_errors += neuron.calculate_error(desired) ** 2
        return squared_errors
