"""
LGTM Bot

A GitHub App webhook service that manages the 'lgtm' label on pull
requests in response to /lgtm commands and review approvals.
"""

__version__ = "1.0.0"
__author__ = "LGTM Bot Team"
