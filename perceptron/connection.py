"""
connection.py
~~~~~~~~~~~~~

Weighted edge from one neuron to a neuron in the following layer.
"""

from typing import Any, Dict


class Connection:
    """
    A connection to another neuron.

    The connection is owned by its source neuron and only references the
    target. Weight changes are either applied right away or collected in
    ``pending_update`` until :meth:`release_weight_updates` is called.
    """

    __slots__ = ('target_neuron', 'weight', 'pending_update')

    def __init__(self, target_neuron, initial_weight: float):
        self.target_neuron = target_neuron
        self.weight = initial_weight
        self.pending_update = 0.0

    def get_weight(self) -> float:
        return self.weight

    def update_weight(self, addend: float, immediate: bool) -> None:
        """
        Change the weight by ``addend``.

        Args:
            addend: Amount to add to the weight
            immediate: Apply now, or defer until the next release
        """
        if immediate:
            self.weight += addend
        else:
            self.pending_update += addend

    def release_weight_updates(self) -> None:
        """Apply all deferred updates and clear the accumulator."""
        self.weight += self.pending_update
        self.pending_update = 0.0

    def discard_weight_updates(self) -> None:
        """Drop deferred updates without touching the weight."""
        self.pending_update = 0.0

    def get_weighted_delta(self) -> float:
        """Target's delta scaled by this connection's weight."""
        return self.target_neuron.delta * self.weight

    def to_dict(self) -> Dict[str, Any]:
        return {'weight': self.weight}

    def __repr__(self) -> str:
        return (
            f"Connection(weight={self.weight!r}, "
            f"pending_update={self.pending_update!r})"
        )
