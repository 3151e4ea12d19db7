"""
Backhaul freight matching API.

    uvicorn main:app --reload
"""

import uvicorn

from backhaul.api.app import create_app
from backhaul.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=True)
