"""Action-dispatched CRUD handlers for tasks, events and time blocks."""

import json

from flask import current_app, jsonify, request

from services.entity_store import EventRepository, TaskRepository, TimeBlockRepository
from services.errors import ApiError, ValidationError
from services.session_service import get_store, require_user_id

WRITE_ACTIONS = ('create', 'update', 'delete')

ENTITY_HANDLERS = {
    'tasks': (TaskRepository, 'taskId', 'Task'),
    'events': (EventRepository, 'eventId', 'Event'),
    'timeblocks': (TimeBlockRepository, 'timeBlockId', 'Time block'),
}


def parse_filters(raw):
    if not raw:
        return {}
    try:
        filters = json.loads(raw)
    except ValueError:
        raise ValidationError('Invalid filters parameter')
    if not isinstance(filters, dict):
        raise ValidationError('Invalid filters parameter')
    return filters


def json_payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid JSON payload')
    return data


def _entity_id(source, id_key, label):
    entity_id = source.get(id_key) or source.get('id')
    if not entity_id:
        raise ValidationError(f"{label} ID required")
    return str(entity_id)


def handle_entity_request(entity):
    user_id = require_user_id()
    repository_cls, id_key, label = ENTITY_HANDLERS[entity]
    repository = repository_cls(get_store())

    action = request.values.get('action')
    if not action:
        raise ValidationError('Action parameter required')
    if action in WRITE_ACTIONS and request.method != 'POST':
        raise ApiError('Method not allowed', 405)

    if action == 'list':
        result = repository.list(user_id, parse_filters(request.args.get('filters')))
    elif action == 'get':
        result = repository.get(_entity_id(request.values, id_key, label), user_id)
    elif action == 'create':
        result = repository.create(user_id, json_payload())
    elif action == 'update':
        payload = json_payload()
        entity_id = _entity_id(payload, id_key, label)
        changes = {k: v for k, v in payload.items() if k not in (id_key, 'id')}
        result = repository.update(entity_id, user_id, changes)
    elif action == 'delete':
        source = request.values
        if not (source.get(id_key) or source.get('id')):
            body = request.get_json(silent=True)
            source = body if isinstance(body, dict) else {}
        result = repository.delete(_entity_id(source, id_key, label), user_id)
    else:
        raise ValidationError('Invalid action')

    if action in WRITE_ACTIONS:
        if result.success:
            current_app.logger.info(f"{label} {action} by user {user_id}: {(result.data or {}).get('id')}")
        else:
            current_app.logger.warning(f"{label} {action} rejected for user {user_id}: {result.error}")
    return jsonify(result.to_dict()), result.status
