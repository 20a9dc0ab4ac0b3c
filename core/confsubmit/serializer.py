"""JSON serialization for the submission workflow."""

import json
import re
from datetime import datetime, date
from enum import Enum
from typing import Any

from dataclasses import asdict, is_dataclass
from dateutil.parser import isoparse

from .domain import Agent, agent_factory

ISO8601 = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}')


class EventJSONEncoder(json.JSONEncoder):
    """Encodes domain objects in this package for serialization."""

    def default(self, obj: object) -> Any:
        """Look for domain objects, and use their dict-coercion methods."""
        if isinstance(obj, Agent):
            data = asdict(obj)
            data['__type__'] = 'agent'
        elif is_dataclass(obj) and not isinstance(obj, type):
            data = asdict(obj)
        elif isinstance(obj, Enum):
            data = obj.value
        elif isinstance(obj, (datetime, date)):
            data = obj.isoformat()
        elif isinstance(obj, (set, tuple)):
            data = list(obj)
        else:
            data = super(EventJSONEncoder, self).default(obj)
        return data


class EventJSONDecoder(json.JSONDecoder):
    """Decode timestamps and agents from JSON data."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        """Pass :func:`object_hook` to the base constructor."""
        kwargs['object_hook'] = kwargs.get('object_hook', self.object_hook)
        super(EventJSONDecoder, self).__init__(*args, **kwargs)

    def object_hook(self, obj: dict, **extra: Any) -> Any:
        """Decode ISO-8601 timestamps and tagged domain objects."""
        for key, value in obj.items():
            if isinstance(value, str) and ISO8601.match(value):
                try:
                    obj[key] = isoparse(value)
                except ValueError:
                    pass    # Looked like a timestamp, but isn't one.
        if obj.get('__type__') == 'agent':
            obj.pop('__type__')
            return agent_factory(**obj)
        return obj


def dumps(obj: Any) -> str:
    """Generate JSON from a Python object."""
    return json.dumps(obj, cls=EventJSONEncoder)


def loads(data: str) -> Any:
    """Load a Python object from JSON."""
    return json.loads(data, cls=EventJSONDecoder)


def to_native(obj: Any) -> Any:
    """Coerce a domain object to JSON-friendly native types."""
    return json.loads(dumps(obj))
