"""
API routers, one package per area.

Routers stay thin: check access, call a domain service, commit once,
then publish order changes after the commit.
"""
