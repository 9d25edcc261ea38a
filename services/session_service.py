from flask import current_app, request, session

from json_store import JsonDocumentStore
from services.entity_store import UserRepository
from services.errors import UnauthorizedError


def get_store():
    return JsonDocumentStore(current_app.config['DATA_DIR'])


def current_user_id():
    """Resolve the user id from a shared API key + user id header, else the session."""
    api_key = request.headers.get('X-API-Key')
    api_user_id = request.headers.get('X-User-Id')
    shared_key = current_app.config.get('API_SHARED_KEY')
    if shared_key and api_key and api_user_id and api_key == shared_key:
        if UserRepository(get_store()).get(api_user_id):
            return api_user_id
    return session.get('user_id')


def require_user_id():
    user_id = current_user_id()
    if not user_id:
        raise UnauthorizedError('Unauthorized')
    return user_id


def current_user():
    user_id = current_user_id()
    if not user_id:
        return None
    return UserRepository(get_store()).get(user_id)
