"""
HTTP — the FastAPI surface over the services.

    app = create_app(Settings.from_env())

    # tests: share a session factory and capture side effects
    app = create_app(settings, session_factory=factory, mailer=MemoryMailer(), alerts=MemoryAlertSink())

Every JSON body is an envelope: `{"success": true, "data": ..., "message": ...}`
on success, `{"success": false, "message": ..., "code": ...}` on failure. The
PayFast webhook is the exception: it always answers 200 with `OK`.
"""

from storefront.http._app import API_PREFIX, create_app, install_error_handlers
from storefront.http._deps import AppState, settle

__all__ = ("API_PREFIX", "create_app", "install_error_handlers", "AppState", "settle")
