"""
drsnap Test Suite.

This package contains:
- unit/: Unit tests (scripted runners, no network or database)
- integration/: Full action flows against a fake DR host in a temp directory
"""
