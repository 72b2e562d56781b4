"""
Trackline client

Talks to the Trackline API and keeps locally displayed state ahead of the
server with optimistic updates that are confirmed or rolled back once the
durable mutation settles.
"""

__version__ = "0.1.0"
