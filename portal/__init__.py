"""
Workspace Portal client for on-demand cloud desktop instances.

This package keeps a user's session in sync with the workspace API:
- Tracks authentication state by polling the session endpoint
- Reconciles session and instance data into a single view state
- Polls the instance list and instance-type catalog on the dashboard
- Auto-logs in when exactly one login method is configured
- Gates the persistent-storage option at instance creation
- Hands off to the instance once it is running
"""

__version__ = "1.0.0"
