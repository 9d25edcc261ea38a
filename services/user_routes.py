"""Google sign-in and session routes. Only the opaque user id leaves this module."""

import secrets
from urllib.parse import urlencode

import requests
from flask import current_app, jsonify, redirect, session

from services.entity_store import UserRepository
from services.errors import ApiError, StorageError, UnauthorizedError, ValidationError
from services.session_service import current_user, get_store
from text_helpers import is_valid_email

OAUTH_TIMEOUT_SECONDS = 10


def google_login():
    config = current_app.config
    if not config.get('GOOGLE_CLIENT_ID'):
        raise ApiError('Google sign-in is not configured', 503)
    state = secrets.token_urlsafe(16)
    session['oauth_state'] = state
    params = {
        'client_id': config['GOOGLE_CLIENT_ID'],
        'redirect_uri': config['GOOGLE_REDIRECT_URI'],
        'response_type': 'code',
        'scope': config['GOOGLE_AUTH_SCOPE'],
        'access_type': 'online',
        'state': state,
        'prompt': 'select_account',
    }
    return redirect(f"{config['GOOGLE_AUTH_ENDPOINT']}?{urlencode(params)}")


def _exchange_code(code):
    config = current_app.config
    try:
        token_response = requests.post(
            config['GOOGLE_TOKEN_ENDPOINT'],
            data={
                'code': code,
                'client_id': config['GOOGLE_CLIENT_ID'],
                'client_secret': config['GOOGLE_CLIENT_SECRET'],
                'redirect_uri': config['GOOGLE_REDIRECT_URI'],
                'grant_type': 'authorization_code',
            },
            headers={'Accept': 'application/json'},
            timeout=OAUTH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        current_app.logger.error(f"Error exchanging code for token: {exc}")
        raise ApiError('Failed to connect to Google authentication service. Please try again later.', 502)
    if token_response.status_code != 200:
        current_app.logger.error(f"Token endpoint returned HTTP {token_response.status_code}: {token_response.text}")
        raise ApiError('Failed to authenticate with Google. Please try again.', 502)
    access_token = token_response.json().get('access_token')
    if not access_token:
        current_app.logger.error('No access token in token endpoint response')
        raise ApiError('Invalid response from Google authentication service.', 502)
    return access_token


def _fetch_profile(access_token):
    config = current_app.config
    try:
        response = requests.get(
            config['GOOGLE_USERINFO_ENDPOINT'],
            headers={'Authorization': f"Bearer {access_token}", 'Accept': 'application/json'},
            timeout=OAUTH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        current_app.logger.error(f"Error fetching user info: {exc}")
        raise ApiError('Failed to retrieve user information from Google. Please try again.', 502)
    if response.status_code != 200:
        current_app.logger.error(f"Userinfo endpoint returned HTTP {response.status_code}")
        raise ApiError('Failed to retrieve user information from Google.', 502)
    info = response.json()
    if not info.get('id') or not info.get('email'):
        raise ApiError('Incomplete user information received from Google.', 502)
    if not is_valid_email(info['email']):
        raise ValidationError('Invalid email address received from Google.')
    return {
        'google_id': info['id'],
        'email': info['email'],
        'name': info.get('name') or info['email'],
        'picture': info.get('picture'),
    }


def google_callback(args):
    if args.get('error'):
        current_app.logger.error(f"OAuth error: {args.get('error')}")
        raise UnauthorizedError('Google authentication was cancelled or failed. Please try again.')
    code = args.get('code')
    if not code:
        raise ValidationError('No authorization code received from Google.')
    expected_state = session.pop('oauth_state', None)
    if not expected_state or args.get('state') != expected_state:
        raise ValidationError('Invalid OAuth state. Please try signing in again.')

    profile = _fetch_profile(_exchange_code(code))
    try:
        user = UserRepository(get_store()).upsert_google_user(profile)
    except StorageError:
        raise ApiError('Failed to save user. Please try again.', 500)

    session.clear()
    session['user_id'] = user.id
    session.permanent = True
    return redirect('/')


def session_status():
    user = current_user()
    if not user:
        return jsonify({'authenticated': False, 'user': None})
    return jsonify({
        'authenticated': user.is_authenticated,
        'user': {
            'id': user.id,
            'email': user.email,
            'name': user.name,
            'picture': user.picture,
        },
    })


def logout_user():
    user_id = session.get('user_id')
    session.clear()
    if user_id:
        current_app.logger.info(f"User {user_id} logged out")
    return jsonify({'success': True, 'data': None, 'error': None})
