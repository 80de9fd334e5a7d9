from pos_assistant.gateway.base import ModelBackend
from pos_assistant.gateway.factory import create_backend, create_gateway
from pos_assistant.gateway.gateway import (
    ModelGateway,
    NativeToolStrategy,
    RetryPolicy,
    TextDirectiveStrategy,
)
from pos_assistant.gateway.scripted import ScriptedBackend

__all__ = [
    "ModelBackend",
    "ModelGateway",
    "NativeToolStrategy",
    "RetryPolicy",
    "ScriptedBackend",
    "TextDirectiveStrategy",
    "create_backend",
    "create_gateway",
]
