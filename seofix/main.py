from fastapi import FastAPI
from seofix.config import APP_NAME
from seofix.logger import configure_logging
from seofix.routes import router

configure_logging()

app = FastAPI(
    title=APP_NAME,
    version="1.0.0"
)

# ---------------------------
# Routes
# ---------------------------
app.include_router(router)

# ---------------------------
# Health check
# ---------------------------
@app.get("/", tags=["health"])
def health():
    return {
        "status": "ok",
        "service": APP_NAME
    }
