"""
Reference task store service.

A FastAPI app exposing an in-memory task table over REST together with an
NDJSON change feed; HttpGateway is its client.
"""
