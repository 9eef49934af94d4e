"""
fleet_app_client

This package provides an asynchronous client for a remote
fleet-management App Service (organizations, locations, robots, robot
parts, logs, authorizations and invites), reached over MQTT v5
request/response.
"""
__version__ = "0.1.0"
