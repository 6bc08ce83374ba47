from flask import Blueprint, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Word chain server is running!'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok'})
