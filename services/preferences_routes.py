from flask import current_app, jsonify, request

from services.entity_routes import json_payload
from services.entity_store import PreferencesRepository
from services.errors import ApiError, ValidationError
from services.session_service import get_store, require_user_id


def handle_preferences_request():
    user_id = require_user_id()
    repository = PreferencesRepository(get_store())
    action = request.values.get('action') or ('update' if request.method == 'POST' else 'get')

    if action == 'get':
        result = repository.get(user_id)
    elif action == 'update':
        if request.method != 'POST':
            raise ApiError('Method not allowed', 405)
        result = repository.upsert(user_id, json_payload())
        if result.success:
            current_app.logger.info(f"Preferences updated for user {user_id}")
    else:
        raise ValidationError('Invalid action')
    return jsonify(result.to_dict()), result.status
