"""
NoteSync Sync Function
======================
JSON-in/JSON-out entry point for the sync engine.

The desktop shell (or any other caller) sends one action per request:

    {
        "action": "sync",
        "config": {
            "provider": "dropbox",
            "remotePath": "/Notes",
            "localPath": "/home/me/Notes",
            "syncDirection": "bidirectional",
            "auth": {"clientId": "...", "refreshToken_encrypted": "..."}
        }
    }

Actions: test, authenticate, oauth_callback, refresh_auth, sync,
sync_local_to_remote, sync_remote_to_local, sync_bidirectional, cancel,
providers, clear_state.

Version: 1.0.0-notesync
"""

import json
import uuid
from typing import Dict, Any, Optional

# Import from NoteSync Core library
from notesync import (
    CloudStorageManager,
    SyncConfig,
    SHARED_VERSION,
    mask_credentials,
    setup_logger,
)

# Function version
VERSION = f"1.0.0-sync-notesync-{SHARED_VERSION}"

logger = setup_logger("notesync")

# Built once per process; providers are still created per call
_manager = CloudStorageManager()

CONFIG_ACTIONS = (
    'test', 'authenticate', 'oauth_callback', 'refresh_auth', 'sync',
    'sync_local_to_remote', 'sync_remote_to_local', 'sync_bidirectional',
    'clear_state',
)
SUPPORTED_ACTIONS = CONFIG_ACTIONS + ('cancel', 'providers')


def _response(status_code: int, body: Dict[str, Any], correlation_id: str) -> Dict[str, Any]:
    body = dict(body)
    body['correlation_id'] = correlation_id
    body['version'] = VERSION
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body),
    }


def _parse_event_data(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Parse and extract data from the supported event formats"""
    # Body wrapper format
    if 'body' in event:
        body = event.get('body')
        if isinstance(body, str):
            try:
                return json.loads(body)
            except json.JSONDecodeError:
                return None
        if isinstance(body, dict):
            return body
        return None

    # Direct format (fields at top level)
    if 'action' in event:
        return event

    return None


def _dispatch(action: str, data: Dict[str, Any], manager: CloudStorageManager) -> Dict[str, Any]:
    """Run one action and return its result body."""
    if action == 'providers':
        return {
            'success': True,
            'providers': manager.get_supported_providers(),
            'available': manager.get_available_providers(),
        }

    if action == 'cancel':
        return manager.cancel_sync()

    config = SyncConfig.from_dict(data['config'])

    if action == 'test':
        return manager.test_connection(config)
    if action == 'authenticate':
        return manager.authenticate(config)
    if action == 'oauth_callback':
        return manager.handle_oauth_callback(config, data.get('code', ''))
    if action == 'refresh_auth':
        return manager.refresh_auth(config)
    if action == 'clear_state':
        return manager.clear_sync_state(config)
    if action == 'sync':
        return manager.sync(config).to_dict()
    if action == 'sync_local_to_remote':
        return manager.sync_local_to_remote(config).to_dict()
    if action == 'sync_remote_to_local':
        return manager.sync_remote_to_local(config).to_dict()
    return manager.sync_bidirectional(config).to_dict()


def main(event: Dict[str, Any], context: Any = None, manager: Optional[CloudStorageManager] = None) -> Dict[str, Any]:
    """
    NoteSync Sync Function

    Validates the request, builds a SyncConfig and dispatches the action
    to the CloudStorageManager.

    Status codes:
    - 200: action ran (the body's ``success`` says how it went)
    - 400: malformed request (bad JSON, unknown action, invalid config)
    - 500: unexpected error
    """
    correlation_id = str(uuid.uuid4())
    manager = manager or _manager

    try:
        if not isinstance(event, dict):
            return _response(400, {'error': 'Invalid data format'}, correlation_id)
        correlation_id = event.get('correlation_id') or correlation_id

        data = _parse_event_data(event)
        if not data or not isinstance(data, dict):
            return _response(400, {'error': 'Invalid data format'}, correlation_id)
        correlation_id = data.get('correlation_id') or correlation_id

        action = data.get('action')
        if not action:
            return _response(400, {'error': 'action is required'}, correlation_id)
        if action not in SUPPORTED_ACTIONS:
            return _response(
                400,
                {'error': f"Unknown action: '{action}'. Supported: {', '.join(SUPPORTED_ACTIONS)}"},
                correlation_id,
            )

        if action in CONFIG_ACTIONS:
            if not isinstance(data.get('config'), dict):
                return _response(400, {'error': 'config is required'}, correlation_id)
            if action == 'oauth_callback' and not data.get('code'):
                return _response(400, {'error': 'code is required'}, correlation_id)
            logger.info(
                f"Action '{action}' for provider '{data['config'].get('provider')}' "
                f"[ID: {correlation_id}] auth={mask_credentials(data['config'].get('auth') or {})}"
            )
        else:
            logger.info(f"Action '{action}' [ID: {correlation_id}]")

        try:
            result = _dispatch(action, data, manager)
        except ValueError as e:
            return _response(400, {'error': str(e)}, correlation_id)

        return _response(200, result, correlation_id)

    except Exception as e:
        logger.exception(f"Sync function failed [ID: {correlation_id}]: {e}")
        return _response(500, {'error': str(e)}, correlation_id)
