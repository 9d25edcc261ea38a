import json
import logging

import requests

from services.calendar_controller import ENTITY_EVENTS, ENTITY_TASKS, ENTITY_TIMEBLOCKS

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10

ENTITY_ENDPOINTS = {
    ENTITY_TASKS: '/api/tasks',
    ENTITY_EVENTS: '/api/events',
    ENTITY_TIMEBLOCKS: '/api/timeblocks',
}


class SyncError(Exception):
    pass


class ApiClient:
    """Thin requests wrapper over the entity list endpoints."""

    def __init__(self, base_url, session=None, headers=None):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    def list_entities(self, entity, filters=None):
        path = ENTITY_ENDPOINTS.get(entity)
        if path is None:
            raise SyncError(f"Unknown entity collection: {entity}")
        params = {'action': 'list'}
        if filters:
            params['filters'] = json.dumps(filters)
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                params=params,
                headers={'Cache-Control': 'no-store'},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise SyncError(f"Failed to fetch {entity}: {exc}") from exc

        if not response.ok:
            raise SyncError(f"Failed to fetch {entity}: HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise SyncError(f"Failed to parse {entity} response") from exc
        if not isinstance(payload, dict) or not payload.get('success'):
            raise SyncError(f"Failed to fetch {entity}")
        data = payload.get('data') or []
        logger.debug(f"{entity} synced: {len(data)} records")
        return data

    def list_all(self):
        return {entity: self.list_entities(entity) for entity in ENTITY_ENDPOINTS}
