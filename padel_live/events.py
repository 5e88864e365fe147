"""Fan-out of domain events to connected clients.

Events are dicts of the form ``{'type': ..., 'data': ...}`` emitted on the
Socket.IO ``update`` channel. Delivery is fire-and-forget: clients that miss
an event catch up by polling.
"""
import logging

from padel_live.app import socketio

logger = logging.getLogger(__name__)

UPDATE_CHANNEL = 'update'


def make_event(event_type, data):
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    return {'type': event_type, 'data': data}


def publish(event):
    try:
        socketio.emit(UPDATE_CHANNEL, event)
    except Exception:
        logger.warning('Failed to emit %s event', event.get('type'), exc_info=True)

