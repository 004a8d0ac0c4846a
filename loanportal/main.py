from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from loanportal.api.v1 import api_router
from loanportal.core.errors import register_exception_handlers
from loanportal.core.health import APP_VERSION
from loanportal.core.limiter import limiter
from loanportal.core.logging import configure_logging
from loanportal.core.response_envelope import register_response_envelope
from loanportal.core.settings import settings
from loanportal.events import register_event_handlers
from loanportal.middlewares.request_context import RequestContextMiddleware
from loanportal.middlewares.security_headers import SecurityHeadersMiddleware
from loanportal.middlewares.trust_proxies import TrustedProxiesMiddleware

OPENAPI_TAGS = [
    {"name": "auth", "description": "Registration, login and password changes for applicants and DSAs"},
    {"name": "applications", "description": "Education loan applications, status changes and DSA reviews"},
    {"name": "documents", "description": "Supporting documents attached to an application"},
    {"name": "admin", "description": "User verification, account status and system logs"},
    {"name": "support", "description": "Support tickets and their conversation threads"},
    {"name": "chat", "description": "Direct conversations between applicants, DSAs and admins"},
]


def _install_middlewares(app: FastAPI) -> None:
    # added innermost first; CORS ends up outermost
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=settings.proxies_count)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Loan Portal API", version=APP_VERSION, openapi_tags=OPENAPI_TAGS)
    app.state.limiter = limiter
    register_exception_handlers(app)
    register_response_envelope(app)
    _install_middlewares(app)
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
