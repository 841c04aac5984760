import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from salon360.config import settings
from salon360.routers import admin, approvals, attendance, auth, kiosk, reports, tickets
from salon360.rpc import BackendError
from salon360.security.csrf import install_csrf_cookie_middleware
from salon360.security.headers import install_security_headers
from salon360.security.sessions import install_auth_session_middleware

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(title='Salon360')

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(kiosk.router)
app.include_router(tickets.router)
app.include_router(approvals.router)
app.include_router(attendance.router)
app.include_router(reports.router)
app.include_router(admin.router)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error('Procedure %s failed on %s %s: %s', exc.procedure, request.method, request.url.path, exc.message)
    return JSONResponse({'detail': 'The database service is unavailable. Please try again.'}, status_code=502)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
