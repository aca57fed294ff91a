"""
Request dependencies
"""

from fastapi import Request

from fleetsync.console import FleetConsole


def get_console(request: Request) -> FleetConsole:
    """The console session owned by the running application"""
    return request.app.state.console
