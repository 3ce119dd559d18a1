"""
app/database/enums.py

Enumerations

Defines enumerations used across the platform:
- UserRole: Roles assigned to users (Customer, Craftsman, Admin)
- JobStatus: Lifecycle of a job posting
- JobUrgency: How soon the customer needs the work done
- ApplicationStatus: State of a craftsman's application on a job
"""

from enum import Enum

# ---------------------------------------------------
# User Role Enumeration
# ---------------------------------------------------


class UserRole(str, Enum):
    """
    Enum representing user roles for access control.
    """

    CUSTOMER = "customer"
    CRAFTSMAN = "craftsman"
    ADMIN = "admin"


# ---------------------------------------------------
# Job Enumerations
# ---------------------------------------------------


class JobStatus(str, Enum):
    """
    Enum representing the lifecycle of a job.

    Transitions: OPEN -> IN_PROGRESS -> COMPLETED
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class JobUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------
# Application Status Enumeration
# ---------------------------------------------------


class ApplicationStatus(str, Enum):
    """
    Enum representing the status of a job application.

    Values:
    - PENDING
    - ACCEPTED
    - REJECTED
    - COMPLETED
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
