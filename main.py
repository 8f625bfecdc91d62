from __future__ import annotations

import logging

from timeblocks.app import app
from timeblocks.config import HOST, PORT

__all__ = ["app"]


if __name__ == "__main__":
  import uvicorn

  logging.basicConfig(level=logging.INFO)
  uvicorn.run(app, host=HOST, port=PORT)
