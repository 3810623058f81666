"""Conversation ownership core: classify webhooks, track who owns each conversation, respond."""

from app.core.classifier import classify
from app.core.dispatcher import WebhookDispatcher
from app.core.formatting import clean
from app.core.reconciler import OwnershipReconciler
from app.core.settings import BrokerSettings
from app.core.store import OwnershipStore
from app.core.transitions import TransitionEngine

__all__ = [
    "BrokerSettings",
    "OwnershipReconciler",
    "OwnershipStore",
    "TransitionEngine",
    "WebhookDispatcher",
    "classify",
    "clean",
]
