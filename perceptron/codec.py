"""
codec.py
~~~~~~~~

Conversion between networks and snapshots.

A snapshot is a JSON-compatible dictionary::

    {
        "layers": [
            {"neurons": [{"connections": [{"weight": 0.1}, ...]}, ...],
             "activationFunction": "Identity"},
            ...
        ],
        "learningRate": 0.3,
        "seed": 501935
    }

Restoring a snapshot builds a fresh network with the same topology and hands
it the saved weights in connection-creation order (source neuron outer,
target neuron inner, layer pairs from input to output), so the new network
reproduces the original weights exactly.
"""

import json
import logging
import numbers
from typing import Any, Dict, List, Mapping, Type

import numpy as np

from perceptron.activation import IDENTITY, get_activation_function
from perceptron.exceptions import SnapshotError
from perceptron.network import FeedforwardNetwork, NeuralNetwork

logger = logging.getLogger(__name__)


class NetworkEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles numpy arrays and scalars."""

    def default(self, obj: Any) -> Any:
        """
        Convert numpy values to plain Python types for JSON serialization.

        Args:
            obj: Object to serialize

        Returns:
            JSON-serializable representation
        """
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        return super().default(obj)


def to_snapshot(network: NeuralNetwork) -> Dict[str, Any]:
    """Capture the topology, weights, learning rate and seed of a network."""
    return network.to_dict()


def _layer_weights(layer: Mapping[str, Any]) -> List[float]:
    return [
        connection['weight']
        for neuron in layer['neurons']
        for connection in neuron['connections']
    ]


def _layer_activation(layer: Mapping[str, Any]):
    return get_activation_function(
        layer['activationFunction'],
        layer.get('activationParameter', 0.0)
    )


def _is_real(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _check_options(snapshot: Mapping[str, Any]) -> None:
    learning_rate = snapshot.get('learningRate')
    if learning_rate is not None and not _is_real(learning_rate):
        raise SnapshotError(
            f"learningRate must be a number, got {learning_rate!r}"
        )
    seed = snapshot.get('seed')
    if seed is not None and (
        not isinstance(seed, numbers.Integral) or isinstance(seed, bool)
        or seed < 0
    ):
        raise SnapshotError(
            f"seed must be a non-negative integer or null, got {seed!r}"
        )


def _check_connections(
    layers: List[Mapping[str, Any]],
    sizes: List[int]
) -> None:
    # every neuron connects to each neuron of the next layer, output neurons
    # to none, so saved weights land on the connections they came from
    for index, layer in enumerate(layers):
        expected = sizes[index + 1] if index + 1 < len(sizes) else 0
        for position, neuron in enumerate(layer['neurons']):
            connections = neuron['connections']
            if len(connections) != expected:
                raise SnapshotError(
                    f"Neuron {position} of layer {index} has "
                    f"{len(connections)} connections, expected {expected}"
                )
            for connection in connections:
                if not _is_real(connection['weight']):
                    raise SnapshotError(
                        f"Weight of neuron {position} in layer {index} must "
                        f"be a number, got {connection['weight']!r}"
                    )


def from_snapshot(
    snapshot: Mapping[str, Any],
    network_class: Type[NeuralNetwork] = FeedforwardNetwork
) -> NeuralNetwork:
    """
    Rebuild a network from a snapshot.

    Args:
        snapshot: Dictionary produced by :func:`to_snapshot`
        network_class: Network type to construct

    Returns:
        A new network with the snapshot's topology and weights

    Raises:
        SnapshotError: If the snapshot is structurally invalid
        UnknownActivationError: If a layer names an unknown activation
    """
    try:
        layers = list(snapshot['layers'])
        input_layer, hidden_layers, output_layer = (
            layers[0], layers[1:-1], layers[-1]
        )
        sizes = [len(layer['neurons']) for layer in layers]
        if len(layers) < 2:
            raise SnapshotError(
                f"A network needs at least 2 layers, snapshot has {len(layers)}"
            )
        if min(sizes) < 1:
            raise SnapshotError(f"Every layer needs a neuron, got sizes {sizes}")
        _check_connections(layers, sizes)
        weights: List[float] = []
        for layer in layers:
            weights.extend(_layer_weights(layer))
    except (KeyError, IndexError, TypeError) as e:
        raise SnapshotError(f"Malformed network snapshot: {e!r}") from e

    _check_options(snapshot)

    if hidden_layers:
        hidden_activation = _layer_activation(hidden_layers[0])
    else:
        hidden_activation = IDENTITY
    output_activation = _layer_activation(output_layer)

    network = network_class(
        len(input_layer['neurons']),
        [len(layer['neurons']) for layer in hidden_layers],
        len(output_layer['neurons']),
        seed=snapshot.get('seed'),
        learning_rate=snapshot.get('learningRate'),
        hidden_activation=hidden_activation,
        output_activation=output_activation,
        weights=weights,
    )
    logger.debug(f"Restored network with sizes {sizes}")
    return network


def dumps(network: NeuralNetwork, **kwargs) -> str:
    """Serialize a network to a JSON string."""
    return json.dumps(to_snapshot(network), cls=NetworkEncoder, **kwargs)


def loads(
    text: str,
    network_class: Type[NeuralNetwork] = FeedforwardNetwork
) -> NeuralNetwork:
    """
    Restore a network from a JSON string.

    Raises:
        SnapshotError: If the text is not valid JSON or not a snapshot
    """
    try:
        snapshot = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid snapshot JSON: {e}") from e
    if not isinstance(snapshot, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    return from_snapshot(snapshot, network_class)
