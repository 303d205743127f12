# Overview: Flask extensions giving each request its own backend client and its sale draft.

from __future__ import annotations

from typing import Optional

from flask import Flask, current_app, g, session

from .services.api_client import BackendClient
from .services.assignment_service import AssignmentEpoch
from .services.sales_service import SaleDraft


class Backend:
    """Builds BackendClient instances from app config, one per app context."""

    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["surveydesk.backend"] = self
        app.teardown_appcontext(self._teardown)

    def create_client(self, token: Optional[str] = None, app: Optional[Flask] = None) -> BackendClient:
        config = (app or current_app).config
        return BackendClient(
            config["BACKEND_API_URL"],
            token=token or config.get("BACKEND_TOKEN"),
            timeout=config.get("BACKEND_TIMEOUT", 30.0),
            transport=config.get("BACKEND_TRANSPORT"),
        )

    def client(self) -> BackendClient:
        """Client bound to the token established by require_token, reused within the request."""
        if "backend_client" not in g:
            g.backend_client = self.create_client(token=g.get("backend_token"))
        return g.backend_client

    @staticmethod
    def _teardown(exc):
        client = g.pop("backend_client", None)
        if client is not None:
            client.close()


class Drafts:
    """
    Sale drafts kept in the session cookie, with their epochs held app-wide.

    The registry is the only draft state shared between requests; each
    cookie reflects the request that carried it.
    """

    SESSION_KEY = "sale_draft"

    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["surveydesk.drafts"] = self
        app.extensions["surveydesk.draft_epochs"] = AssignmentEpoch()

    @property
    def epochs(self) -> AssignmentEpoch:
        return current_app.extensions["surveydesk.draft_epochs"]

    def load(self) -> SaleDraft:
        return SaleDraft.from_dict(session.get(self.SESSION_KEY), epochs=self.epochs)

    def save(self, draft: SaleDraft) -> None:
        draft.touch()
        session[self.SESSION_KEY] = draft.to_dict()


backend = Backend()
drafts = Drafts()
