"""Approval workflows for takeoff versions and project estimates."""

from costimator.workflow.estimates import (
    approve_estimate,
    create_estimate,
    get_estimate,
    list_estimates,
    reject_estimate,
    submit_estimate,
)

__all__ = [
    "create_estimate",
    "get_estimate",
    "list_estimates",
    "submit_estimate",
    "approve_estimate",
    "reject_estimate",
]
