"""
Dispatch Module - Black Box Interface

Purpose: Deliver successful authentication results
Interface: ResultDispatcher.dispatch(), ResultDispatcher.drain()
Hidden: Channel selection, HTTP delivery, failure isolation

Replaceable with any object exposing dispatch(event, identity).
"""

from .dispatcher import DeliveryChannel, DeliveryEvent, ResultDispatcher

__all__ = ["DeliveryChannel", "DeliveryEvent", "ResultDispatcher"]
