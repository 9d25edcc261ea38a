import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from services import calendar_routes, entity_routes, preferences_routes, user_routes
from services.errors import ApiError

load_dotenv()

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=24)
app.config['SESSION_COOKIE_NAME'] = os.environ.get('SESSION_COOKIE_NAME', 'LC_IDENTIFIER')
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['DATA_DIR'] = os.environ.get('DATA_DIR', os.path.join(app.root_path, 'data'))
app.config['API_SHARED_KEY'] = os.environ.get('API_SHARED_KEY')  # Optional shared key for API callers

# Google OAuth collaborator
app.config['GOOGLE_CLIENT_ID'] = os.environ.get('GOOGLE_CLIENT_ID')
app.config['GOOGLE_CLIENT_SECRET'] = os.environ.get('GOOGLE_CLIENT_SECRET')
app.config['GOOGLE_REDIRECT_URI'] = os.environ.get('GOOGLE_REDIRECT_URI', 'http://localhost:5000/auth/google/callback')
app.config['GOOGLE_AUTH_SCOPE'] = os.environ.get('GOOGLE_AUTH_SCOPE', 'openid email profile')
app.config['GOOGLE_AUTH_ENDPOINT'] = os.environ.get('GOOGLE_AUTH_ENDPOINT', 'https://accounts.google.com/o/oauth2/v2/auth')
app.config['GOOGLE_TOKEN_ENDPOINT'] = os.environ.get('GOOGLE_TOKEN_ENDPOINT', 'https://oauth2.googleapis.com/token')
app.config['GOOGLE_USERINFO_ENDPOINT'] = os.environ.get('GOOGLE_USERINFO_ENDPOINT', 'https://www.googleapis.com/oauth2/v2/userinfo')


@app.errorhandler(ApiError)
def handle_api_error(exc):
    if exc.status_code >= 500:
        app.logger.error(f"{request.method} {request.path} failed: {exc.message}")
    else:
        app.logger.warning(f"{request.method} {request.path} rejected ({exc.status_code}): {exc.message}")
    return jsonify({'success': False, 'data': None, 'error': exc.message}), exc.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(exc):
    if isinstance(exc, HTTPException):
        return jsonify({'success': False, 'data': None, 'error': exc.description}), exc.code
    app.logger.exception(f"Unhandled error on {request.method} {request.path}")
    return jsonify({'success': False, 'data': None, 'error': f"Server error: {exc}"}), 500


@app.after_request
def _disable_api_caching(response):
    if request.path.startswith('/api/'):
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate'
        response.headers['Pragma'] = 'no-cache'
    return response


@app.route('/')
def index():
    return jsonify({'success': True, 'data': {'service': 'vivacity-calendar'}, 'error': None})


# Auth boundary
@app.route('/auth/google')
def google_login():
    return user_routes.google_login()


@app.route('/auth/google/callback')
def google_callback():
    return user_routes.google_callback(request.args)


@app.route('/api/auth/session')
def session_status():
    return user_routes.session_status()


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    return user_routes.logout_user()


# Entity API
@app.route('/api/tasks', methods=['GET', 'POST'])
def tasks_api():
    return entity_routes.handle_entity_request('tasks')


@app.route('/api/events', methods=['GET', 'POST'])
def events_api():
    return entity_routes.handle_entity_request('events')


@app.route('/api/events/conflicts')
def event_conflicts():
    return calendar_routes.event_conflicts()


@app.route('/api/timeblocks', methods=['GET', 'POST'])
def timeblocks_api():
    return entity_routes.handle_entity_request('timeblocks')


@app.route('/api/preferences', methods=['GET', 'POST'])
def preferences_api():
    return preferences_routes.handle_preferences_request()


# Calendar views
@app.route('/api/calendar/month')
def calendar_month():
    return calendar_routes.calendar_month()


@app.route('/api/calendar/day')
def calendar_day():
    return calendar_routes.calendar_day()


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
