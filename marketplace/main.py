from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.src import schemas
from marketplace.src.constants import API_TITLE, API_VERSION
from marketplace.api.controller import app_admin, app_rider


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/admin", app_admin, "Admin API")
app.mount("/rider", app_rider, "Rider API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
