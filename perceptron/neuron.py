"""
neuron.py
~~~~~~~~~

Neurons of a feed-forward network.

A :class:`Neuron` accumulates the weighted activations fed to it by the
previous layer, applies its layer's activation function and feeds the result
forward through its outgoing connections. During backpropagation it derives
its delta from the deltas of the neurons it feeds. An :class:`OutputNeuron`
has no outgoing connections and derives its delta from a desired value.
"""

from typing import Any, Dict, List

from perceptron.connection import Connection


class Neuron:
    """A hidden or input neuron owning its outgoing connections."""

    def __init__(self, layer):
        self.input = 0.0
        self.activation = 0.0
        self.delta = 0.0
        self.layer = layer
        self.connections: List[Connection] = []

    def get_connection(self, index: int) -> Connection:
        return self.connections[index]

    def reset(self) -> None:
        """Clear the per-example state. The delta is kept."""
        self.input = 0.0
        self.activation = 0.0

    def feed(self, value: float) -> None:
        """Add ``value`` to the accumulated input."""
        self.input += value

    def propagate(self) -> None:
        """Compute the activation and feed it to every connected neuron."""
        self.activation = self.layer.activation_function.evaluate(self.input)
        for connection in self.connections:
            connection.target_neuron.feed(self.activation * connection.weight)

    def connect_to(self, target_neuron: 'Neuron') -> Connection:
        """
        Create an outgoing connection to ``target_neuron``.

        The initial weight comes from the layer's weight supplier.

        Args:
            target_neuron: Neuron in the following layer

        Returns:
            Connection: The new connection
        """
        initial_weight = self.layer.weight_supplier.next_weight()
        connection = Connection(target_neuron, initial_weight)
        self.connections.append(connection)
        return connection

    def calculate_error(self) -> float:
        """
        Share of the downstream error this neuron is responsible for.

        Requires the deltas of the following layer to be up to date.
        """
        error = 0.0
        for connection in self.connections:
            error += connection.get_weighted_delta()
        return error

    def update_delta(self) -> None:
        derivative = self.layer.activation_function.derivative(self.input)
        self.delta = derivative * self.calculate_error()

    def update_weights_at_connections(
        self,
        learning_rate: float,
        immediate: bool
    ) -> None:
        """
        Apply the delta rule to every outgoing connection.

        Args:
            learning_rate: Step size
            immediate: Apply now, or defer until the next release
        """
        for connection in self.connections:
            update = (
                learning_rate
                * connection.target_neuron.delta
                * self.activation
            )
            connection.update_weight(update, immediate)

    def release_weight_updates_at_connections(self) -> None:
        for connection in self.connections:
            connection.release_weight_updates()

    def discard_weight_updates_at_connections(self) -> None:
        for connection in self.connections:
            connection.discard_weight_updates()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'connections': [
                connection.to_dict() for connection in self.connections
            ]
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input={self.input!r}, "
            f"activation={self.activation!r}, delta={self.delta!r}, "
            f"connections={len(self.connections)})"
        )


class OutputNeuron(Neuron):
    """Neuron of the output layer, trained against a desired value."""

    def calculate_error(self, desired_output: float) -> float:
        """Difference between the desired and the actual output."""
        return desired_output - self.activation

    def update_delta(self, desired_output: float) -> None:
        derivative = self.layer.activation_function.derivative(self.input)
        self.delta = derivative * self.calculate_error(desired_output)
