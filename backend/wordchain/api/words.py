from flask import Blueprint, current_app, jsonify, request

words = Blueprint('words', __name__)


@words.route('/check', methods=['POST'])
def check_word():
    data = request.get_json(silent=True) or {}
    word = data.get('word')
    if not word or not isinstance(word, str):
        return jsonify({'valid': False, 'message': 'Word required'}), 400
    dictionary = current_app.extensions['wordchain.dictionary']
    valid, message = dictionary.check(word, data.get('requiredStartLetter'))
    return jsonify({'valid': valid, 'message': message})
