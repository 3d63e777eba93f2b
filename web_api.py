from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from identity.api.http_setup import register_exception_handlers, register_http_middleware
from identity.api.runtime_routes import RuntimeRouteDeps, register_runtime_routes
from identity.auth.blacklist import BlacklistSweeper, TokenBlacklist
from identity.auth.google import GoogleIdentityVerifier
from identity.auth.keys import build_key_provider
from identity.auth.middleware import create_auth_middleware
from identity.auth.otp import OtpService
from identity.auth.otp_store import build_otp_store
from identity.auth.repository import UserDirectory
from identity.auth.router import create_auth_router, create_user_router
from identity.auth.service import AuthService
from identity.auth.tokens import TokenCodec
from identity.core.config import AppConfig
from identity.core.logging import setup_logging
from identity.notifications.mailer import OtpNotifier, build_mailer

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent
RUNTIME_DIR = APP_ROOT / "runtime"
RUNTIME_DIR.mkdir(parents=True, exist_ok=True)


def create_app(config: AppConfig = APP_CONFIG, app_root: Path = APP_ROOT) -> FastAPI:
    app = FastAPI(title="Identity API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Registration-Token",
            "X-Reset-Token",
        ],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    state_db_path = (app_root / config.store.sqlite_path).resolve()
    state_db_path.parent.mkdir(parents=True, exist_ok=True)
    blacklist = TokenBlacklist(database_path=state_db_path)
    codec = TokenCodec(build_key_provider(config.auth), issuer=config.auth.issuer)
    directory = UserDirectory(app_root)
    otp_store = build_otp_store(config.store.redis_url)
    notifier = OtpNotifier(
        build_mailer(config.mail),
        ttl_minutes=max(1, config.auth.otp_ttl_seconds // 60),
    )
    otp_service = OtpService(
        directory=directory,
        store=otp_store,
        codec=codec,
        blacklist=blacklist,
        notifier=notifier,
        otp_ttl_seconds=config.auth.otp_ttl_seconds,
        exchange_token_ttl_seconds=config.auth.exchange_token_ttl_seconds,
    )
    auth_service = AuthService(
        directory=directory,
        codec=codec,
        blacklist=blacklist,
        otp=otp_service,
        google=GoogleIdentityVerifier(config.google.client_id),
        config=config.auth,
    )
    auth_service.bootstrap_admin_user()

    app.include_router(create_auth_router(auth_service, otp_service))
    app.include_router(create_user_router(auth_service))
    app.middleware("http")(create_auth_middleware(auth_service))

    def close_resources() -> None:
        notifier.shutdown()
        blacklist.close()

    register_runtime_routes(
        app,
        deps=RuntimeRouteDeps(
            sweeper=BlacklistSweeper(
                blacklist, interval_seconds=config.store.sweep_interval_seconds
            ),
            on_shutdown=close_resources,
        ),
    )

    app.state.auth_service = auth_service
    app.state.otp_store = otp_store
    app.state.blacklist = blacklist
    return app


app = create_app()
