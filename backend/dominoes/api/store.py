from flask import Blueprint, jsonify, request, current_app
from dominoes.services.rooms.store import SqlStore, StoreError

store = Blueprint('store', __name__)

# Only room records are relayed; anything else is not ours to store
ALLOWED_PREFIXES = ('rooms/',)


def _check_key(key):
    return any(key.startswith(prefix) for prefix in ALLOWED_PREFIXES)


@store.route('/<path:key>', methods=['GET'])
def read_value(key):
    if not _check_key(key):
        return jsonify({'error': 'Unknown key'}), 400
    try:
        value = SqlStore().read(key)
    except StoreError as exc:
        current_app.logger.error(f"[store-read] key={key} error={exc}")
        return jsonify({'error': 'Store unavailable'}), 503
    if value is None:
        return jsonify({'error': 'Not found'}), 404
    return jsonify({'key': key, 'value': value})


@store.route('/<path:key>', methods=['PUT'])
def write_value(key):
    if not _check_key(key):
        return jsonify({'error': 'Unknown key'}), 400
    value = request.get_json(silent=True)
    if value is None:
        return jsonify({'error': 'JSON body is required'}), 400
    try:
        SqlStore().write(key, value)
    except StoreError as exc:
        current_app.logger.error(f"[store-write] key={key} error={exc}")
        return jsonify({'error': 'Store unavailable'}), 503
    return jsonify({'key': key, 'value': value})


@store.route('/<path:key>', methods=['DELETE'])
def delete_value(key):
    if not _check_key(key):
        return jsonify({'error': 'Unknown key'}), 400
    try:
        SqlStore().delete(key)
    except StoreError as exc:
        current_app.logger.error(f"[store-delete] key={key} error={exc}")
        return jsonify({'error': 'Store unavailable'}), 503
    return jsonify({'key': key, 'deleted': True})
