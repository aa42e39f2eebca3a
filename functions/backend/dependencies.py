"""
Dependency wiring for the Cloud Functions entry points.

Each collaborator is built once per process and shared by every invocation
the instance serves.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend.billing import BillingClient, InMemoryBillingClient, StripeBillingClient
from backend.config import Settings, get_settings
from backend.messaging import FirebaseMessenger, InMemoryMessenger, Messenger
from backend.store import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore

_store: DocumentStore | None = None
_billing_client: BillingClient | None = None
_messenger: Messenger | None = None
_services: "Services | None" = None


@dataclass(frozen=True)
class Services:
    """Service handles injected into every operation."""

    store: DocumentStore
    billing: BillingClient
    messenger: Messenger
    settings: Settings


def get_store() -> DocumentStore:
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _store = InMemoryDocumentStore()
    else:
        _store = FirestoreDocumentStore()
    return _store


def get_billing_client() -> BillingClient:
    global _billing_client
    if _billing_client:
        return _billing_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.stripe_secret_key:
        _billing_client = InMemoryBillingClient(
            webhook_secret=settings.stripe_webhook_secret
        )
    else:
        _billing_client = StripeBillingClient(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            api_version=settings.stripe_api_version,
        )
    return _billing_client


def get_messenger() -> Messenger:
    global _messenger
    if _messenger:
        return _messenger

    settings = get_settings()
    if settings.use_in_memory_backends:
        _messenger = InMemoryMessenger()
    else:
        _messenger = FirebaseMessenger(
            smtp_server=settings.smtp_server,
            smtp_port=settings.smtp_port,
            sender_email=settings.sender_email,
            sender_password=settings.sender_password,
        )
    return _messenger


def get_services() -> Services:
    """
    Return the process-wide service bundle.
    """
    global _services
    if _services:
        return _services

    _services = Services(
        store=get_store(),
        billing=get_billing_client(),
        messenger=get_messenger(),
        settings=get_settings(),
    )
    return _services


def reset_services() -> None:
    """Drop cached handles so the next call rebuilds them (useful in tests)."""
    global _store, _billing_client, _messenger, _services
    _store = None
    _billing_client = None
    _messenger = None
    _services = None
    get_settings.cache_clear()
