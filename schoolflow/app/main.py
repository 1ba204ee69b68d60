"""FastAPI service for the school request/review workflows.

Covers expenditure requests, financial reports and exam reports:
- owners create, edit and submit
- reviewers approve or reject
- approved expenditures are checked against revenue for their period

The caller's identity arrives in X-User-* headers set by the auth gateway.
"""

from __future__ import annotations

from fastapi import FastAPI

from schoolflow.api.errors import register_error_handlers
from schoolflow.api.routes import register_routes

tags_metadata = [
    {
        "name": "Workflow",
        "description": "Create, review and track expenditures, financial reports and exam reports"
    },
    {
        "name": "Notifications",
        "description": "Per-user inbox of workflow notifications"
    }
]

app = FastAPI(
    title='SchoolFlow',
    version='1.0.0',
    description='Approval workflows for school administration',
    openapi_tags=tags_metadata
)

# Register all API routes
register_routes(app)
register_error_handlers(app)
