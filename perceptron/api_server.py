"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server hosting multilayer perceptrons.

This module provides endpoints for:
- Creating and managing networks
- Running predictions
- Training networks online (one example) or in batch mode (a training set)
- Exporting and restoring network snapshots
- Persisting networks to/from SQLite database

Training runs synchronously inside the request; the engine is scalar and
meant for small networks.
"""

import os
import sys
import math
import uuid
import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, jsonify
from flask_cors import CORS

from perceptron.codec import from_snapshot, to_snapshot
from perceptron.exceptions import NetworkError
from perceptron.network import FeedforwardNetwork
from perceptron.model_persistence import (
    save_network,
    load_network,
    list_saved_networks,
    delete_network,
    delete_old_networks
)

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    # Set up basic logging format
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # In production, silence noisy third-party logs but keep our logs visible
    if is_production:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('perceptron').setLevel(logging.INFO)
        # per-call training summaries are too chatty for production
        logging.getLogger('perceptron.network').setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})  # Allow requests from any origin

app.config['MODEL_DIR'] = os.getenv('MODEL_DIR', 'models')

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}


def reload_saved_networks() -> None:
    """
    Reload all saved networks from the database into memory.

    Called at startup to restore networks that were saved before the
    application was restarted.
    """
    model_dir = app.config['MODEL_DIR']
    saved_networks = list_saved_networks(model_dir)

    if not saved_networks:
        logger.info("No saved networks to reload")
        return

    loaded_count = 0
    for net_info in saved_networks:
        network_id = net_info['network_id']
        net = load_network(network_id, model_dir)
        if net is not None:
            active_networks[network_id] = {
                'network': net,
                'trained': net_info['trained'],
                'error': net_info['error']
            }
            loaded_count += 1
        else:
            logger.warning(f"Failed to load network {network_id}")

    logger.info(f"Reloaded {loaded_count} network(s) from database")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def json_float(value: Optional[float]) -> Optional[float]:
    """Map non-finite errors (no training pass ran) to null for JSON."""
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def network_summary(network_id: str) -> Dict[str, Any]:
    """Describe an in-memory network for API responses."""
    info = active_networks[network_id]
    net = info['network']
    return {
        'network_id': network_id,
        'architecture': net.sizes,
        'learning_rate': net.learning_rate,
        'seed': net.seed,
        'trained': info['trained'],
        'error': json_float(info['error'])
    }


def get_active_network(network_id: str) -> Tuple[Any, Optional[Tuple]]:
    """
    Look up an in-memory network.

    Returns:
        (network, None) if found, (None, error_response) otherwise
    """
    if network_id not in active_networks:
        logger.warning(f"Request for non-existent network: {network_id}")
        return None, (jsonify({'error': 'Network not found'}), 404)
    return active_networks[network_id]['network'], None


def persist(network_id: str) -> bool:
    """Save an in-memory network together with its training status."""
    info = active_networks[network_id]
    return save_network(
        info['network'],
        network_id,
        model_dir=app.config['MODEL_DIR'],
        trained=info['trained'],
        error=json_float(info['error'])
    )


def is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status and statistics."""
    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks)
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new network.

    Request body:
        {
            'input_count': 2,
            'hidden_counts': [4],
            'output_count': 1,
            'seed': 501935,                    # optional
            'learning_rate': 0.3,              # optional
            'hidden_activation': 'Identity',   # optional
            'output_activation': 'Identity'    # optional
        }

    Returns:
        JSON with network_id, architecture, and status
    """
    data = request.get_json(silent=True) or {}
    input_count = data.get('input_count')
    hidden_counts = data.get('hidden_counts', [])
    output_count = data.get('output_count')

    # Validate the topology
    if not is_positive_int(input_count) or not is_positive_int(output_count):
        return jsonify({
            'error': 'input_count and output_count must be positive integers'
        }), 400
    if not isinstance(hidden_counts, list) or not all(
        is_positive_int(count) for count in hidden_counts
    ):
        logger.warning(f"Invalid hidden layers requested: {hidden_counts}")
        return jsonify({
            'error': 'hidden_counts must be a list of positive integers'
        }), 400

    options = {
        'seed': data.get('seed'),
        'learning_rate': data.get('learning_rate')
    }
    for key in ('hidden_activation', 'output_activation'):
        if key in data:
            options[key] = data[key]

    try:
        net = FeedforwardNetwork(
            input_count, hidden_counts, output_count, **options
        )
    except (NetworkError, TypeError, ValueError) as e:
        logger.warning(f"Rejected network options {options}: {e}")
        return jsonify({'error': str(e)}), 400

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'error': None
    }

    logger.info(f"Created network {network_id} with architecture {net.sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': net.sizes,
        'status': 'created'
    }), 201


@app.route('/api/networks/<network_id>/predict', methods=['POST'])
def predict(network_id: str):
    """
    Run a forward pass.

    Request body:
        {'input': [0, 1]}
    """
    net, error_response = get_active_network(network_id)
    if error_response:
        return error_response

    data = request.get_json(silent=True) or {}
    try:
        output = net.predict(data.get('input', []))
    except (NetworkError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'network_id': network_id, 'output': output}), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Train on a single example with immediate weight updates.

    Request body:
        {'input': [0, 1], 'desired_output': [0]}
    """
    net, error_response = get_active_network(network_id)
    if error_response:
        return error_response

    data = request.get_json(silent=True) or {}
    try:
        error = net.train(
            data.get('input', []), data.get('desired_output', [])
        )
    except (NetworkError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    active_networks[network_id]['trained'] = True
    active_networks[network_id]['error'] = error
    persist(network_id)

    return jsonify({'network_id': network_id, 'error': json_float(error)}), 200


@app.route('/api/networks/<network_id>/train_batch', methods=['POST'])
def train_network_batch(network_id: str):
    """
    Train on a full training set with one weight update per pass.

    Request body:
        {
            'inputs': [[0, 1], [1, 1]],
            'desired_outputs': [[0], [1]],
            'iterations': 5000,          # optional, defaults to 1
            'error_threshold': 0.0001    # optional, defaults to 0.005
        }
    """
    net, error_response = get_active_network(network_id)
    if error_response:
        return error_response

    data = request.get_json(silent=True) or {}
    iterations = data.get('iterations', 1)
    error_threshold = data.get('error_threshold', 0.005)

    # Validate training parameters
    if not isinstance(iterations, int) or iterations < 0:
        return jsonify({'error': 'iterations must be a non-negative integer'}), 400
    if not isinstance(error_threshold, (int, float)) or error_threshold < 0:
        return jsonify({'error': 'error_threshold must be a non-negative number'}), 400

    logger.info(
        f"Batch training network {network_id}: "
        f"iterations={iterations}, threshold={error_threshold}"
    )

    try:
        error = net.train_batch(
            data.get('inputs', []),
            data.get('desired_outputs', []),
            iterations,
            error_threshold
        )
    except (NetworkError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    if math.isfinite(error):
        active_networks[network_id]['trained'] = True
        active_networks[network_id]['error'] = error
    saved = persist(network_id)

    return jsonify({
        'network_id': network_id,
        'error': json_float(error),
        'saved': saved
    }), 200


@app.route('/api/networks/<network_id>/snapshot', methods=['GET'])
def get_snapshot(network_id: str):
    """Export the network's topology and weights."""
    net, error_response = get_active_network(network_id)
    if error_response:
        return error_response
    return jsonify(to_snapshot(net)), 200


@app.route('/api/networks/restore', methods=['POST'])
def restore_network():
    """
    Create a network from a snapshot.

    Request body:
        {'snapshot': {...}}
    """
    data = request.get_json(silent=True) or {}
    snapshot = data.get('snapshot')
    if not isinstance(snapshot, dict):
        return jsonify({'error': 'snapshot must be an object'}), 400

    try:
        net = from_snapshot(snapshot)
    except (NetworkError, TypeError, ValueError) as e:
        logger.warning(f"Rejected snapshot: {e}")
        return jsonify({'error': str(e)}), 400

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'error': None
    }
    logger.info(f"Restored network {network_id} with architecture {net.sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': net.sizes,
        'status': 'restored'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all available networks (both in-memory and saved to disk)."""
    in_memory = []
    for nid in active_networks:
        summary = network_summary(nid)
        summary['status'] = 'in_memory'
        in_memory.append(summary)

    # Get saved networks, excluding duplicates already in memory
    in_memory_ids = set(active_networks.keys())
    saved_only = []
    for net in list_saved_networks(app.config['MODEL_DIR']):
        if net['network_id'] not in in_memory_ids:
            net['status'] = 'saved'
            saved_only.append(net)

    logger.debug(f"Listing networks: {len(in_memory)} in memory, {len(saved_only)} saved")

    return jsonify({'networks': in_memory + saved_only}), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from both memory and disk."""
    deleted_from_memory = False
    if network_id in active_networks:
        del active_networks[network_id]
        deleted_from_memory = True

    deleted_from_disk = delete_network(network_id, app.config['MODEL_DIR'])

    if not deleted_from_memory and not deleted_from_disk:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    logger.info(f"Deleted network {network_id}: memory={deleted_from_memory}, disk={deleted_from_disk}")

    return jsonify({
        'network_id': network_id,
        'deleted_from_memory': deleted_from_memory,
        'deleted_from_disk': deleted_from_disk
    }), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks from both memory and disk."""
    model_dir = app.config['MODEL_DIR']
    in_memory_ids = list(active_networks.keys())
    saved_ids = [net['network_id'] for net in list_saved_networks(model_dir)]
    all_network_ids = list(set(in_memory_ids + saved_ids))

    deleted_from_memory_count = 0
    deleted_from_disk_count = 0

    for network_id in all_network_ids:
        if network_id in active_networks:
            del active_networks[network_id]
            deleted_from_memory_count += 1

        if delete_network(network_id, model_dir):
            deleted_from_disk_count += 1

    logger.info(
        f"Deleted all networks: {len(all_network_ids)} total, "
        f"{deleted_from_memory_count} from memory, {deleted_from_disk_count} from disk"
    )

    return jsonify({
        'deleted_count': len(all_network_ids),
        'deleted_from_memory': deleted_from_memory_count,
        'deleted_from_disk': deleted_from_disk_count,
        'message': f'Successfully deleted {len(all_network_ids)} network(s)'
    }), 200


@app.route('/api/networks/cleanup', methods=['POST'])
def cleanup_old_networks_endpoint():
    """
    Delete saved networks older than the specified number of days.

    Request body (optional):
        {'days': 2}  # defaults to 2

    Returns:
        JSON with deleted_count, days, and message
    """
    data = request.get_json(silent=True) or {}
    days = data.get('days', 2)

    if not isinstance(days, (int, float)) or days < 0:
        return jsonify({'error': 'days must be a non-negative number'}), 400

    try:
        deleted_count = delete_old_networks(
            days=int(days), model_dir=app.config['MODEL_DIR']
        )
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if deleted_count == -1:
        return jsonify({'error': 'Error occurred during cleanup'}), 500

    logger.info(f"Manual cleanup: deleted {deleted_count} network(s) older than {days} day(s)")

    return jsonify({
        'deleted_count': deleted_count,
        'days': days,
        'message': f'Successfully deleted {deleted_count} network(s) older than {days} day(s)'
    }), 200


# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    reload_saved_networks()

    # Check if running in cloud environment (Railway, etc.)
    is_cloud = bool(os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        app.run(host='0.0.0.0', port=port, debug=not is_cloud, use_reloader=False)
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise
