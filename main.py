import os

import uvicorn

from app.main import app  # noqa: F401  (uvicorn main:app)

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
