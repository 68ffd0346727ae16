"""Request dependencies for the external collaborators, chosen from settings once per process."""
from functools import lru_cache

from config import settings
from services.collaborators import (
    HttpPropertyCatalog,
    HttpUserDirectory,
    InMemoryPropertyCatalog,
    InMemoryUserDirectory,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    PropertyCatalog,
    UserDirectory,
    WebhookNotificationDispatcher,
)


@lru_cache
def get_user_directory() -> UserDirectory:
    if settings.user_directory_url:
        return HttpUserDirectory(settings.user_directory_url, settings.collaborator_timeout_seconds)
    return InMemoryUserDirectory()


@lru_cache
def get_property_catalog() -> PropertyCatalog:
    if settings.property_catalog_url:
        return HttpPropertyCatalog(settings.property_catalog_url, settings.collaborator_timeout_seconds)
    return InMemoryPropertyCatalog()


@lru_cache
def get_notifier() -> NotificationDispatcher:
    if settings.notification_webhook_url:
        return WebhookNotificationDispatcher(settings.notification_webhook_url, settings.collaborator_timeout_seconds)
    return LoggingNotificationDispatcher()
