"""procward: process lifecycle supervisor for long-running servers.

Starts server instances in the foreground, as detached daemons, or as a
cluster on sequential ports; tracks them with PID files; and signals them
for shutdown.
"""

__version__ = "0.1.0"
