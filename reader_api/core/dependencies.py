"""
FastAPI dependencies - injection for the database (SOLID: Dependency Inversion).
Challenge: One Database per app instance; tests swap it via dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends, Request

from reader_api.db.database import Database


def get_database(request: Request) -> Database:
    """The Database built by create_app()."""
    return request.app.state.db


DatabaseDep = Annotated[Database, Depends(get_database)]
