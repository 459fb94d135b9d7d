"""
test_model_persistence.py
~~~~~~~~~~~~~~~~~~~~~~~~~~

Unit tests for SQLite-based model persistence.
"""

import pytest
import json
import os
import sys
import sqlite3

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from perceptron.activation import LOGISTIC, rectified_linear_unit
from perceptron.network import FeedforwardNetwork
from perceptron.model_persistence import (
    save_network,
    load_network,
    list_saved_networks,
    delete_network,
    get_network_metadata,
    delete_old_networks,
    ModelDatabase
)


def all_weights(network):
    return [
        connection.weight
        for layer in network.layers
        for neuron in layer
        for connection in neuron.connections
    ]


def age_network(db_path, network_id, modifier):
    """Move a network's creation time into the past."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute('''
        UPDATE networks
        SET created_at = datetime('now', ?)
        WHERE network_id = ?
    ''', (modifier, network_id))
    conn.commit()
    conn.close()


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def simple_network():
    """Create a simple 3-layer network for testing."""
    return FeedforwardNetwork(3, [4], 2, seed=11)


@pytest.fixture
def trained_network(simple_network):
    """Create a simple network with some training applied."""
    import numpy as np

    # Create minimal training data
    rng = np.random.default_rng(3)
    inputs = rng.standard_normal((10, 3)).tolist()
    desired_outputs = [[1.0, 0.0] if i % 2 else [0.0, 1.0] for i in range(10)]

    # Train briefly
    simple_network.train_batch(inputs, desired_outputs, iterations=5)
    return simple_network


@pytest.mark.unit
class TestModelPersistence:
    """Test basic model persistence operations."""

    def test_save_network_creates_database(self, simple_network, temp_db_dir):
        """Test that saving a network creates the database file."""
        network_id = "test_network_1"

        success = save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=False
        )

        assert success is True
        assert os.path.exists(f"{temp_db_dir}/networks.db")

    def test_save_network_with_metadata(self, trained_network, temp_db_dir):
        """Test that network metadata is saved correctly."""
        network_id = "trained_network_1"
        error = 0.125

        success = save_network(
            trained_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            error=error
        )

        assert success is True

        # Verify metadata
        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata is not None
        assert metadata['network_id'] == network_id
        assert metadata['trained'] is True
        assert metadata['error'] == error
        assert metadata['architecture'] == [3, 4, 2]

    def test_save_rejects_negative_error(self, simple_network, temp_db_dir):
        """Test that an invalid error value is rejected."""
        success = save_network(
            simple_network, "bad_error", model_dir=temp_db_dir, error=-0.5
        )
        assert success is False
        assert get_network_metadata("bad_error", temp_db_dir) is None

    def test_save_rejects_empty_id(self, simple_network, temp_db_dir):
        assert save_network(simple_network, "", model_dir=temp_db_dir) is False

    def test_network_stored_as_snapshot(self, simple_network, temp_db_dir):
        """Test that the stored payload is a readable JSON snapshot."""
        import json

        save_network(simple_network, "json_check", model_dir=temp_db_dir)

        conn = sqlite3.connect(os.path.join(temp_db_dir, "networks.db"))
        row = conn.execute(
            "SELECT network_data FROM networks WHERE network_id = ?",
            ("json_check",)
        ).fetchone()
        conn.close()

        snapshot = json.loads(row[0])
        assert snapshot['seed'] == 11
        assert len(snapshot['layers']) == 3

    def test_load_network_returns_network(self, simple_network, temp_db_dir):
        """Test that loading a network returns a valid Network object."""
        network_id = "test_network_2"

        save_network(simple_network, network_id, model_dir=temp_db_dir)
        loaded_network = load_network(network_id, temp_db_dir)

        assert loaded_network is not None
        assert isinstance(loaded_network, FeedforwardNetwork)
        assert loaded_network.sizes == simple_network.sizes

    def test_load_nonexistent_network(self, temp_db_dir):
        """Test that loading a non-existent network returns None."""
        loaded_network = load_network("nonexistent", temp_db_dir)
        assert loaded_network is None

    def test_load_preserves_weights(self, trained_network, temp_db_dir):
        """Test that saved weights are preserved after loading."""
        network_id = "test_network_3"

        save_network(trained_network, network_id, model_dir=temp_db_dir)
        loaded_network = load_network(network_id, temp_db_dir)

        assert all_weights(loaded_network) == all_weights(trained_network)
        assert loaded_network.learning_rate == trained_network.learning_rate
        assert loaded_network.predict([0.5, -0.5, 1.0]) == \
            trained_network.predict([0.5, -0.5, 1.0])

    def test_load_corrupt_snapshot(self, simple_network, temp_db_dir):
        """Test that an unreadable snapshot loads as None."""
        save_network(simple_network, "corrupt", model_dir=temp_db_dir)

        conn = sqlite3.connect(os.path.join(temp_db_dir, "networks.db"))
        conn.execute(
            "UPDATE networks SET network_data = ? WHERE network_id = ?",
            ('{"layers": []}', "corrupt")
        )
        conn.commit()
        conn.close()

        assert load_network("corrupt", temp_db_dir) is None

    def test_list_saved_networks_empty(self, temp_db_dir):
        """Test listing networks when database is empty."""
        networks = list_saved_networks(temp_db_dir)
        assert networks == []

    def test_list_saved_networks(self, simple_network, temp_db_dir):
        """Test that listing networks returns correct metadata."""
        # Save multiple networks
        save_network(simple_network, "net1", model_dir=temp_db_dir, trained=True, error=0.01)
        save_network(simple_network, "net2", model_dir=temp_db_dir, trained=False)

        networks = list_saved_networks(temp_db_dir)

        assert len(networks) == 2
        assert any(net['network_id'] == "net1" for net in networks)
        assert any(net['network_id'] == "net2" for net in networks)

    def test_list_saved_networks_includes_metadata(self, simple_network, temp_db_dir):
        """Test that listed networks include all expected metadata fields."""
        network_id = "metadata_test"
        error = 0.25

        save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            error=error
        )

        networks = list_saved_networks(temp_db_dir)
        network = networks[0]

        assert network['network_id'] == network_id
        assert network['architecture'] == [3, 4, 2]
        assert network['trained'] is True
        assert network['error'] == error
        assert network['connection_counts'] == [12, 8]
        assert 'created_at' in network
        assert 'updated_at' in network

    def test_delete_network_success(self, simple_network, temp_db_dir):
        """Test successful network deletion."""
        network_id = "delete_test"

        save_network(simple_network, network_id, model_dir=temp_db_dir)

        # Verify it exists
        assert load_network(network_id, temp_db_dir) is not None

        # Delete it
        success = delete_network(network_id, temp_db_dir)
        assert success is True

        # Verify it's gone
        assert load_network(network_id, temp_db_dir) is None

    def test_delete_nonexistent_network(self, temp_db_dir):
        """Test that deleting a non-existent network returns False."""
        # Initialize database
        ModelDatabase(db_path=f'{temp_db_dir}/networks.db')

        success = delete_network("nonexistent", temp_db_dir)
        assert success is False

    def test_save_untrained_network(self, simple_network, temp_db_dir):
        """Test saving a network that hasn't been trained."""
        network_id = "untrained_test"

        success = save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=False,
            error=None
        )

        assert success is True

        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata['trained'] is False
        assert metadata['error'] is None

    def test_update_network(self, simple_network, temp_db_dir):
        """Test that saving a network with the same ID updates it."""
        network_id = "update_test"

        # Save untrained
        save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=False
        )

        metadata1 = get_network_metadata(network_id, temp_db_dir)
        assert metadata1['trained'] is False

        # Update to trained
        save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            error=0.08
        )

        metadata2 = get_network_metadata(network_id, temp_db_dir)
        assert metadata2['trained'] is True
        assert metadata2['error'] == 0.08
        assert metadata2['created_at'] == metadata1['created_at']

        # Should still be only one network
        networks = list_saved_networks(temp_db_dir)
        assert len(networks) == 1


@pytest.mark.integration
class TestPersistenceIntegration:
    """Integration tests for model persistence."""

    def test_save_load_train_cycle(self, simple_network, temp_db_dir):
        """Test complete cycle: save, load, train, save again."""
        network_id = "cycle_test"

        # Save initial untrained network
        save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=False
        )

        # Load it
        loaded_network = load_network(network_id, temp_db_dir)

        # Train it
        error = loaded_network.train_batch(
            [[0.0, 1.0, 0.5], [1.0, 0.0, -0.5]],
            [[1.0, 0.0], [0.0, 1.0]],
            iterations=10
        )

        # Save trained version
        save_network(
            loaded_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            error=error
        )

        # Load again and verify
        final_network = load_network(network_id, temp_db_dir)
        metadata = get_network_metadata(network_id, temp_db_dir)

        assert final_network is not None
        assert all_weights(final_network) == all_weights(loaded_network)
        assert metadata['trained'] is True
        assert metadata['error'] == error

    def test_multiple_networks_coexist(self, temp_db_dir):
        """Test that multiple networks can coexist in the database."""
        networks_to_create = [
            ((4, [8], 3), "wide_network"),
            ((3, [4], 2), "simple_network"),
            ((2, [5, 5], 2), "deep_network")
        ]

        # Create and save multiple networks
        for topology, network_id in networks_to_create:
            net = FeedforwardNetwork(*topology)
            save_network(net, network_id, model_dir=temp_db_dir)

        # List all networks
        networks = list_saved_networks(temp_db_dir)
        assert len(networks) == len(networks_to_create)

        # Verify each can be loaded
        for (inputs, hidden, outputs), network_id in networks_to_create:
            loaded = load_network(network_id, temp_db_dir)
            assert loaded is not None
            assert loaded.sizes == [inputs, *hidden, outputs]

    def test_loaded_network_keeps_training_identically(
        self, trained_network, temp_db_dir
    ):
        """Test that a reloaded network continues training like the original."""
        save_network(trained_network, "resume", model_dir=temp_db_dir)
        loaded_network = load_network("resume", temp_db_dir)

        inputs = [[0.0, 1.0, 0.5], [1.0, 0.0, -0.5], [0.3, 0.3, 0.3]]
        desired_outputs = [[1.0, 0.0], [0.0, 1.0], [1.0, 0.0]]
        original_error = trained_network.train_batch(
            inputs, desired_outputs, iterations=25, error_threshold=0.0
        )
        loaded_error = loaded_network.train_batch(
            inputs, desired_outputs, iterations=25, error_threshold=0.0
        )

        assert loaded_error == original_error
        assert all_weights(loaded_network) == all_weights(trained_network)

    def test_activations_and_seed_survive_storage(self, temp_db_dir):
        """Test that activation functions and seed are stored with the weights."""
        net = FeedforwardNetwork(
            2, [3, 3], 1,
            seed=7,
            learning_rate=0.05,
            hidden_activation=rectified_linear_unit(0.01),
            output_activation=LOGISTIC
        )
        save_network(net, "activations", model_dir=temp_db_dir)
        loaded = load_network("activations", temp_db_dir)

        assert loaded.seed == 7
        assert loaded.learning_rate == 0.05
        assert [layer.activation_function for layer in loaded.layers] == \
            [layer.activation_function for layer in net.layers]
        assert loaded.predict([-1.0, 2.0]) == net.predict([-1.0, 2.0])

    def test_miswired_snapshot_not_loaded(self, simple_network, temp_db_dir):
        """Test that a stored snapshot with misplaced connections is rejected."""
        save_network(simple_network, "miswired", model_dir=temp_db_dir)
        db_path = os.path.join(temp_db_dir, "networks.db")

        conn = sqlite3.connect(db_path)
        (payload,) = conn.execute(
            "SELECT network_data FROM networks WHERE network_id = ?",
            ("miswired",)
        ).fetchone()
        snapshot = json.loads(payload)
        neurons = snapshot['layers'][0]['neurons']
        neurons[2]['connections'].append(neurons[0]['connections'].pop())
        conn.execute(
            "UPDATE networks SET network_data = ? WHERE network_id = ?",
            (json.dumps(snapshot), "miswired")
        )
        conn.commit()
        conn.close()

        assert load_network("miswired", temp_db_dir) is None
        assert get_network_metadata("miswired", temp_db_dir) is not None


class TestDeleteOldNetworks:
    """Tests for automatic cleanup of old networks."""

    def test_delete_old_networks_basic(self, simple_network, temp_db_dir):
        """Test basic delete_old_networks functionality."""
        network_id = "test_network"
        save_network(simple_network, network_id, model_dir=temp_db_dir)

        age_network(os.path.join(temp_db_dir, "networks.db"), network_id, '-3 days')

        # Delete networks older than 2 days
        deleted_count = delete_old_networks(days=2, model_dir=temp_db_dir)

        assert deleted_count == 1
        assert load_network(network_id, temp_db_dir) is None

    def test_delete_old_networks_preserves_recent(
        self,
        simple_network,
        temp_db_dir
    ):
        """Test that recent networks are not deleted."""
        network_id = "recent_network"
        save_network(simple_network, network_id, model_dir=temp_db_dir)

        deleted_count = delete_old_networks(days=2, model_dir=temp_db_dir)

        assert deleted_count == 0
        assert load_network(network_id, temp_db_dir) is not None

    def test_delete_old_networks_mixed_ages(
        self,
        simple_network,
        temp_db_dir
    ):
        """Test with a mix of old and recent networks."""
        old_ids = ["old_1", "old_2"]
        recent_ids = ["recent_1", "recent_2"]

        for network_id in old_ids + recent_ids:
            save_network(simple_network, network_id, model_dir=temp_db_dir)

        db_path = os.path.join(temp_db_dir, "networks.db")
        for network_id in old_ids:
            age_network(db_path, network_id, '-3 days')

        deleted_count = delete_old_networks(days=2, model_dir=temp_db_dir)

        assert deleted_count == len(old_ids)
        for network_id in old_ids:
            assert load_network(network_id, temp_db_dir) is None
        for network_id in recent_ids:
            assert load_network(network_id, temp_db_dir) is not None

    def test_delete_old_networks_custom_days(
        self,
        simple_network,
        temp_db_dir
    ):
        """Test delete_old_networks with different day thresholds."""
        network_id = "test_network"
        save_network(simple_network, network_id, model_dir=temp_db_dir)

        age_network(os.path.join(temp_db_dir, "networks.db"), network_id, '-5 days')

        # Should not delete (older than 7 days)
        deleted_count = delete_old_networks(days=7, model_dir=temp_db_dir)
        assert deleted_count == 0
        assert load_network(network_id, temp_db_dir) is not None

        # Should delete (older than 3 days)
        deleted_count = delete_old_networks(days=3, model_dir=temp_db_dir)
        assert deleted_count == 1
        assert load_network(network_id, temp_db_dir) is None

    def test_delete_old_networks_empty_db(self, temp_db_dir):
        """Test delete_old_networks on empty database."""
        deleted_count = delete_old_networks(days=2, model_dir=temp_db_dir)
        assert deleted_count == 0

    def test_delete_old_networks_negative_days(self, temp_db_dir):
        """Test that negative days raises ValueError."""
        with pytest.raises(ValueError) as exc_info:
            delete_old_networks(days=-1, model_dir=temp_db_dir)
        assert "non-negative" in str(exc_info.value)

    def test_delete_old_networks_zero_days(
        self,
        simple_network,
        temp_db_dir
    ):
        """Test delete_old_networks with days=0."""
        network_id = "test_network"
        save_network(simple_network, network_id, model_dir=temp_db_dir)

        age_network(os.path.join(temp_db_dir, "networks.db"), network_id, '-1 hour')

        # Should delete anything older than now
        deleted_count = delete_old_networks(days=0, model_dir=temp_db_dir)
        assert deleted_count == 1
        assert load_network(network_id, temp_db_dir) is None

    def test_model_database_delete_old_networks_method(self, temp_db_dir):
        """Test ModelDatabase.delete_old_networks_from_db directly."""
        db = ModelDatabase(db_path=os.path.join(temp_db_dir, "networks.db"))
        net = FeedforwardNetwork(3, [4], 2)

        db.save_network_to_db(net, "test_network", trained=False)
        age_network(db.db_path, "test_network", '-3 days')

        deleted = db.delete_old_networks_from_db(days=2)
        assert deleted == 1
        assert db.load_network_from_db("test_network") is None
