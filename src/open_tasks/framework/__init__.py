"""
open-tasks framework services: diagnostic logging and user-facing output.
"""
