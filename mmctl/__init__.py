"""
Command handlers for the Mattermost admin CLI.

Each handler has the signature ``handler(svc, args, printer)`` and is wired
into the command table in ``cli.py``.
"""
