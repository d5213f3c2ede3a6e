"""
Application services for the REST API.

- domain/: business logic, one service per area, no commits
- events/: post-commit notification to dashboards
"""
