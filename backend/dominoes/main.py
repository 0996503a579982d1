from flask import Blueprint, request, jsonify
from dominoes.services.games.history import user_history

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the dominoes server!'})

@main.route('/api/health')
def health():
    return jsonify({'status': 'ok'})

@main.route('/api/history', methods=['GET'])
def get_history():
    user_id = request.args.get('user_id')
    if not user_id:
        return jsonify({'error': 'user_id is required'}), 400
    try:
        limit = int(request.args.get('limit', 20))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    return jsonify([record.to_dict() for record in user_history(user_id, limit=limit)])
