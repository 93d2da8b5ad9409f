"""Frontends - ways for a person to drive a LilaSession.

Available frontends:
    cli/    ``lila`` command (eval, repl, status)
    tui/    rich console sinks and the interactive prompt loop
"""
