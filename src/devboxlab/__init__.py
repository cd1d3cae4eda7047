"""
devboxlab: lifecycle manager for small container training labs.

Declares a handful of hosts on a private network, renders them into a
docker-compose project and drives build/start/stop/probe/cleanup from a
single verb-based CLI.
"""

__version__ = "0.3.0"
