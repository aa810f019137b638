"""JSON envelope used by every action endpoint: {"data": ..., "error": ...}"""
from flask import jsonify

def success(data=None, status=200):
    return jsonify({'data': data, 'error': None}), status

def failure(message, status=400, data=None):
    return jsonify({'data': data, 'error': message}), status
