"""
WebSocket gateway: relays order events from Redis to connected dashboards.
"""
