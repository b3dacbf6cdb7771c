"""API routers for the MP Apps service."""

from mpapps.routers import (
    admin_simulation,
    auth,
    budgets,
    cancellations,
    counter,
    events,
    files,
    permissions,
    platform,
    prayers,
    projects,
    rsvp,
    users,
    webhooks,
    widgets,
)  # noqa: F401
