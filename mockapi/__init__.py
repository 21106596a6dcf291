"""
Mock Dashboard API

In-memory FastAPI stand-in for the dashboard backend, used for local runs of
the console probe and for the integration tests.
Serves:
- Rider fleet vehicles and fleet summary
- Task approvals queue with approve, reject and bulk approve
- Operational alerts and alert actions
- Communication chats and messages
- System health devices and summary
"""
