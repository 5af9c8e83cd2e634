import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env before settings are built
load_dotenv()

from dctopo.middleware import install_correlation_middleware, install_svg_headers  # noqa: E402
from dctopo.settings import settings  # noqa: E402
from dctopo.startup import register_startup_events  # noqa: E402
from dctopo.topology import router as topology_router  # noqa: E402

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Azure DC Topology API")
register_startup_events(app)
install_correlation_middleware(app)
install_svg_headers(app)


@app.get("/health")
def health():
    return {"ok": True, "azure_configured": settings.azure_configured}


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):\d+",
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(topology_router.router)  # /api/azure-dc/...
