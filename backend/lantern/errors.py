"""Typed failures raised by the lantern services.

Routes and socket handlers turn these into JSON error payloads; nothing
above the persistence façade ever sees a raw SQLAlchemy exception.
"""

from typing import Any, Dict, Optional


class LanternError(Exception):
    kind = 'general'
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'kind': self.kind}
        payload.update(self.extra)
        return payload


class NotFound(LanternError):
    kind = 'not_found'
    status_code = 404

    def __init__(self, name: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(f'{name} does not exist', extra)


class Conflict(LanternError):
    kind = 'conflict'
    status_code = 409

    def __init__(self, name: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(f'{name} already exists', extra)


class InvalidState(LanternError):
    kind = 'invalid_state'
    status_code = 409


class InvalidData(LanternError):
    kind = 'invalid_data'
    status_code = 400


class NotAllowed(LanternError):
    kind = 'not_allowed'
    status_code = 403


class TooFrequent(LanternError):
    kind = 'too_frequent'
    status_code = 429


class StorageFailure(LanternError):
    kind = 'storage'
    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        # Storage details stay in the logs
        return {'error': 'Something went wrong', 'kind': self.kind}
