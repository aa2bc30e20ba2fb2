"""
Celery tasks package.

Tasks are organized by domain:
- email_tasks: verification, password reset and security alert emails
- notification_tasks: campaign email delivery and scheduled dispatch
- subscription_tasks: expiry sweep
- property_tasks: free listing expiry
"""

from marketplace.tasks import email_tasks, notification_tasks, property_tasks, subscription_tasks

__all__ = ["email_tasks", "notification_tasks", "property_tasks", "subscription_tasks"]
