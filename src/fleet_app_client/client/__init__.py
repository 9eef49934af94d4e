"""
Client-side components: the MQTT v5 request/response connection, the
App Service stub and the `AppClient` facade built on top of them.
"""
from fleet_app_client.client.app import AppClient
from fleet_app_client.client.broadcast import BroadcastStream, Subscription
from fleet_app_client.client.connection import RPCConnection, ResponseStream
from fleet_app_client.client.stub import AppServiceStub

__all__ = [
    "AppClient",
    "AppServiceStub",
    "BroadcastStream",
    "ResponseStream",
    "RPCConnection",
    "Subscription",
]
